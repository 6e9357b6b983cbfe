import io
import threading
from typing import List, Optional, Tuple

import pytest
from PIL import Image

from hairstudio.tryon.catalog import StyleCatalog, load_catalog
from hairstudio.tryon.clients.base import BaseGenerator
from hairstudio.tryon.imaging import to_data_uri


def make_image(width: int = 64, height: int = 48, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    color = (200, 120, 40, 255) if mode == "RGBA" else (200, 120, 40)
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeGenerator(BaseGenerator):
    """Generator returning a canned image or raising a canned error."""

    def __init__(self, result: str = "data:image/png;base64,UkVTVUxU", error: Optional[Exception] = None,
                 gate: Optional[threading.Event] = None):
        self.result = result
        self.error = error
        self.gate = gate
        self.calls: List[Tuple[str, str, str]] = []

    def generate(self, source_image: str, style_name: str, style_description: str) -> str:
        self.calls.append((source_image, style_name, style_description))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def png_bytes() -> bytes:
    return make_image()


@pytest.fixture
def photo() -> str:
    return to_data_uri(make_image(), "image/png")


@pytest.fixture
def catalog() -> StyleCatalog:
    return load_catalog()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()
