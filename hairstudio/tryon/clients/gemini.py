"""
Gemini Generator for hairstyle try-on.
Uses the Gemini generateContent REST endpoint for image editing.

Required Environment Variables:
    GEMINI_API_KEY: Gemini API key
    GEMINI_MODEL: Model name (default: gemini-2.5-flash-image)
"""
import base64
import logging
import time
from typing import Any, Dict, List

import requests

from ...config import Settings
from ..errors import (
    EmptyResponse,
    MissingCredential,
    ModelRefusal,
    NoCandidates,
    UpstreamError,
)
from ..imaging import detect_encoding, normalize_image, strip_envelope
from .base import BaseGenerator

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# Markers Gemini puts in error bodies for a rejected key
INVALID_KEY_MARKERS = ("API_KEY_INVALID", "API key not valid", "API key expired")

PROMPT_TEMPLATE = """Instructions: Replace the person's hair with a {style_name}.
Style details: {style_description}.

Strict Constraints:
1. RETAIN the person's exact face, identity, facial features, skin tone, and expression.
2. RETAIN the original background and lighting.
3. Change ONLY the hair. Do not alter anything else in the photo.
4. The result must be photorealistic and seamlessly blended.
5. Do not add accessories (glasses, hats) unless the style implies it."""


def build_prompt(style_name: str, style_description: str) -> str:
    """Edit instruction for the model, restricted to the hair."""
    return PROMPT_TEMPLATE.format(
        style_name=style_name,
        style_description=style_description.strip().rstrip("."),
    )


def parse_response(result: Dict[str, Any]) -> str:
    """
    Extract the edited image from a generateContent response.

    Returns:
        The first inline image of the first candidate as a PNG data URI

    Raises:
        NoCandidates: no candidate was returned
        ModelRefusal: the candidate only contains text
        EmptyResponse: the candidate contains neither image nor text
    """
    candidates = result.get("candidates") or []
    if not candidates:
        block_reason = (result.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise NoCandidates(f"No image generated. The request was blocked by safety filters ({block_reason}).")
        raise NoCandidates()

    parts: List[Dict[str, Any]] = (candidates[0].get("content") or {}).get("parts") or []

    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            return f"data:image/png;base64,{inline['data']}"

    for part in parts:
        if part.get("text"):
            logger.warning(f"Model response text: {part['text']}")
            raise ModelRefusal(part["text"])

    finish_reason = candidates[0].get("finishReason")
    if finish_reason:
        logger.warning(f"Candidate finished without content: {finish_reason}")
    raise EmptyResponse()


class GeminiGenerator(BaseGenerator):
    """Gemini image editing generator."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def model(self) -> str:
        return self.settings.model

    def is_configured(self) -> bool:
        """Check if the Gemini generator has a credential."""
        return bool(self.settings.api_key)

    def get_missing_config(self) -> list:
        """Return list of missing configuration variables."""
        missing = []
        if not self.settings.api_key:
            missing.append(Settings.ENV_API_KEY)
        return missing

    def build_payload(self, image_data: bytes, mime_type: str, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {
                            "inlineData": {
                                "mimeType": mime_type,
                                "data": base64.b64encode(image_data).decode("utf-8"),
                            }
                        },
                        {"text": prompt},
                    ],
                }
            ],
            "safetySettings": [
                {"category": category, "threshold": self.settings.safety_threshold}
                for category in SAFETY_CATEGORIES
            ],
        }

    def generate(self, source_image: str, style_name: str, style_description: str) -> str:
        """Render source_image with the given hairstyle using Gemini."""
        if not self.is_configured():
            missing = self.get_missing_config()
            raise MissingCredential(
                f"API key is not configured. Set {', '.join(missing)} and restart the server."
            )

        optimized = normalize_image(
            source_image,
            max_size=self.settings.max_image_size,
            quality=self.settings.jpeg_quality,
        )
        image_data = strip_envelope(optimized)
        mime_type = detect_encoding(image_data)
        prompt = build_prompt(style_name, style_description)

        url = self.settings.generate_url
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.settings.api_key,
        }

        logger.info(f"Generating: {style_name}")
        logger.info(f"Using Model: {self.model} ({mime_type}, {len(image_data)} bytes)")

        start_time = time.time()
        try:
            response = requests.post(
                url,
                headers=headers,
                json=self.build_payload(image_data, mime_type, prompt),
                timeout=self.settings.timeout,
            )
            latency = time.time() - start_time
            logger.info(f"Status: {response.status_code} Latency: {latency:.2f}s")

            response.raise_for_status()

        except requests.exceptions.HTTPError as e:
            raise self._classify_http_error(e)

        except requests.exceptions.RequestException as e:
            logger.error(f"Gemini request failed: {e}")
            raise UpstreamError(f"Could not reach the image generation service: {e}")

        try:
            result = response.json()
        except ValueError as e:
            logger.error(f"Gemini returned a non-JSON body: {e}")
            raise UpstreamError("The image generation service returned an unreadable response.")

        return parse_response(result)

    def _classify_http_error(self, e: requests.exceptions.HTTPError) -> UpstreamError:
        status = e.response.status_code if e.response is not None else None
        details = e.response.text if e.response is not None else str(e)
        logger.error(f"API Error ({status}): {details[:400]}")

        if status in (401, 403) or any(marker in details for marker in INVALID_KEY_MARKERS):
            return MissingCredential(
                f"API key was rejected by the image generation service. "
                f"Check {Settings.ENV_API_KEY} and restart the server.",
                status_code=status,
            )
        if status == 400:
            return UpstreamError(
                "Image processing failed. The photo might be too large or the format is unsupported.",
                status_code=status,
            )
        if status == 429:
            return UpstreamError(
                "The image generation service is rate limiting requests. Please try again shortly.",
                status_code=status,
            )
        return UpstreamError(f"Image generation service error ({status}).", status_code=status)
