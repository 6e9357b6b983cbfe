"""
Hairstyle generator clients
"""
from typing import Optional

from ...config import Settings
from .base import BaseGenerator
from .gemini import GeminiGenerator


def get_generator(provider: str = "gemini", settings: Optional[Settings] = None) -> BaseGenerator:
    """
    Factory function to get the appropriate generator.

    Args:
        provider: 'gemini' (only Gemini is currently supported)
        settings: Configuration resolved at process start

    Returns:
        BaseGenerator instance
    """
    provider = provider.lower()
    if provider == "gemini":
        return GeminiGenerator(settings or Settings.from_env())
    else:
        raise ValueError(f"Unknown provider: {provider}. Use 'gemini'.")

__all__ = ["get_generator", "BaseGenerator", "GeminiGenerator"]
