"""
Base Generator class for hairstyle generation.
"""
from typing import List


class BaseGenerator:
    """Abstract base class for hairstyle image generators."""

    def is_configured(self) -> bool:
        return True

    def get_missing_config(self) -> List[str]:
        return []

    def generate(self, source_image: str, style_name: str, style_description: str) -> str:
        """
        Render the person in source_image with the requested hairstyle.
        Must be implemented by subclasses.

        Args:
            source_image: Photo as a data URI
            style_name: Display name of the hairstyle
            style_description: Prompt fragment describing the hairstyle

        Returns:
            Edited image as a data URI

        Raises:
            GenerationError: classified failure of the single request
        """
        raise NotImplementedError("Subclasses must implement generate")
