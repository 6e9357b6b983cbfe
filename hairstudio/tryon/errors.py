"""
Classified errors for the try-on workflow.
Callers branch on ``kind`` and show ``message`` to the user.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Tag carried by every try-on error."""
    DECODE = "decode_error"
    STYLE_NOT_FOUND = "style_not_found"
    MISSING_CREDENTIAL = "missing_credential"
    UPSTREAM = "upstream_error"
    NO_CANDIDATES = "no_candidates"
    EMPTY_RESPONSE = "empty_response"
    MODEL_REFUSAL = "model_refusal"


class TryOnError(Exception):
    """Base class for all classified try-on errors."""
    kind: ErrorKind = ErrorKind.UPSTREAM
    default_message = "Unknown error occurred during generation."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DecodeError(TryOnError):
    kind = ErrorKind.DECODE
    default_message = "The uploaded file is not a valid image."


class StyleNotFound(TryOnError):
    kind = ErrorKind.STYLE_NOT_FOUND

    def __init__(self, style_id: str):
        self.style_id = style_id
        super().__init__(f"Unknown hairstyle: {style_id}")


class GenerationError(TryOnError):
    """Any failure of a single generation attempt."""


class UpstreamError(GenerationError):
    kind = ErrorKind.UPSTREAM
    default_message = "The image generation service request failed."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MissingCredential(UpstreamError):
    kind = ErrorKind.MISSING_CREDENTIAL
    default_message = "API key is missing or invalid. Check the server configuration."


class NoCandidates(GenerationError):
    kind = ErrorKind.NO_CANDIDATES
    default_message = "No image generated. The AI might have been blocked by safety filters."


class EmptyResponse(GenerationError):
    kind = ErrorKind.EMPTY_RESPONSE
    default_message = "The AI returned a response but it contained no image."


class ModelRefusal(GenerationError):
    kind = ErrorKind.MODEL_REFUSAL

    # Length of the model text kept on the error
    TEXT_LIMIT = 100

    def __init__(self, text: str):
        self.text = text[:self.TEXT_LIMIT]
        suffix = "..." if len(text) > self.TEXT_LIMIT else ""
        super().__init__(f"AI processing note: {self.text}{suffix}")
