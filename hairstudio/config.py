"""
Process-wide configuration, resolved once from the environment at startup.

Environment Variables:
    GEMINI_API_KEY: Gemini API key (falls back to API_KEY)
    GEMINI_MODEL: Model name (default: gemini-2.5-flash-image)
    GEMINI_ENDPOINT: Base URL of the models API
    GEMINI_TIMEOUT: Request timeout in seconds (default: 120)
    GEMINI_SAFETY_THRESHOLD: Safety block threshold (default: BLOCK_ONLY_HIGH)
    MAX_IMAGE_SIZE: Longest side sent to the model in pixels (default: 1024)
    JPEG_QUALITY: Re-encode quality (default: 80)
    STYLES_FILE: Path to a styles.json catalog (default: packaged file)
    LOG_LEVEL: Logging level (default: INFO)
    HOST / PORT: Bind address for the web server (default: 127.0.0.1:8000)
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


# Packaged hairstyle catalog
STYLES_FILE_PATH = Path(__file__).parent / "styles.json"


@dataclass(frozen=True)
class Settings:
    # Environment variable names
    ENV_API_KEY = "GEMINI_API_KEY"
    ENV_API_KEY_FALLBACK = "API_KEY"
    ENV_MODEL = "GEMINI_MODEL"
    ENV_ENDPOINT = "GEMINI_ENDPOINT"
    ENV_TIMEOUT = "GEMINI_TIMEOUT"
    ENV_SAFETY_THRESHOLD = "GEMINI_SAFETY_THRESHOLD"

    DEFAULT_MODEL = "gemini-2.5-flash-image"
    DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models"

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 120.0
    safety_threshold: str = "BLOCK_ONLY_HIGH"
    max_image_size: int = 1024
    jpeg_quality: int = 80
    styles_file: str = str(STYLES_FILE_PATH)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get(cls.ENV_API_KEY) or env.get(cls.ENV_API_KEY_FALLBACK) or None,
            model=env.get(cls.ENV_MODEL, cls.DEFAULT_MODEL),
            endpoint=env.get(cls.ENV_ENDPOINT, cls.DEFAULT_ENDPOINT).rstrip("/"),
            timeout=float(env.get(cls.ENV_TIMEOUT, "120")),
            safety_threshold=env.get(cls.ENV_SAFETY_THRESHOLD, "BLOCK_ONLY_HIGH"),
            max_image_size=int(env.get("MAX_IMAGE_SIZE", "1024")),
            jpeg_quality=int(env.get("JPEG_QUALITY", "80")),
            styles_file=env.get("STYLES_FILE", str(STYLES_FILE_PATH)),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            host=env.get("HOST", "127.0.0.1"),
            port=int(env.get("PORT", "8000")),
        )

    @property
    def generate_url(self) -> str:
        return f"{self.endpoint}/{self.model}:generateContent"
