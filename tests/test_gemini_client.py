import base64
import json

import pytest
import requests

from conftest import make_image
from hairstudio.config import Settings
from hairstudio.tryon.clients import GeminiGenerator, get_generator
from hairstudio.tryon.clients import gemini
from hairstudio.tryon.clients.gemini import build_prompt, parse_response
from hairstudio.tryon.errors import (
    EmptyResponse,
    ErrorKind,
    MissingCredential,
    ModelRefusal,
    NoCandidates,
    UpstreamError,
)
from hairstudio.tryon.imaging import to_data_uri


def make_response(status_code=200, body=None, text=None):
    response = requests.Response()
    response.status_code = status_code
    response.url = "https://example.test/models/m:generateContent"
    if text is None:
        text = json.dumps(body if body is not None else {})
    response._content = text.encode("utf-8")
    return response


class RecordingPost:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def image_body(*parts):
    return {"candidates": [{"content": {"parts": list(parts)}}]}


@pytest.fixture
def settings():
    return Settings(api_key="test-key", model="test-model", endpoint="https://example.test/models", timeout=5)


@pytest.fixture
def generator(settings):
    return GeminiGenerator(settings)


@pytest.fixture
def source():
    return to_data_uri(make_image(200, 100, fmt="PNG"), "image/png")


def install(monkeypatch, post):
    monkeypatch.setattr(gemini.requests, "post", post)
    return post


def test_prompt_names_style_and_preservation_constraints():
    prompt = build_prompt("Buzz Cut", "Very short clipper cut.")
    assert "Buzz Cut" in prompt
    assert "Very short clipper cut" in prompt
    for phrase in ("identity", "facial features", "skin tone", "expression", "background", "lighting"):
        assert phrase in prompt
    assert "ONLY the hair" in prompt


def test_generate_returns_first_inline_image_as_png(monkeypatch, generator, source):
    post = install(monkeypatch, RecordingPost(make_response(body=image_body(
        {"text": "Here you go"},
        {"inlineData": {"mimeType": "image/jpeg", "data": "FIRST"}},
        {"inlineData": {"mimeType": "image/png", "data": "SECOND"}},
    ))))

    result = generator.generate(source, "Buzz Cut", "Very short")

    assert result == "data:image/png;base64,FIRST"
    assert len(post.calls) == 1


def test_generate_request_contract(monkeypatch, generator, source):
    post = install(monkeypatch, RecordingPost(make_response(body=image_body(
        {"inlineData": {"data": "IMG"}}
    ))))

    generator.generate(source, "Buzz Cut", "Very short")

    call = post.calls[0]
    assert call["url"] == "https://example.test/models/test-model:generateContent"
    assert call["headers"]["x-goog-api-key"] == "test-key"
    assert call["timeout"] == 5

    parts = call["json"]["contents"][0]["parts"]
    inline = parts[0]["inlineData"]
    # Normalized to JPEG before sending, and declared as such
    assert inline["mimeType"] == "image/jpeg"
    assert base64.b64decode(inline["data"]).startswith(b"\xff\xd8\xff")
    assert "Buzz Cut" in parts[1]["text"]

    safety = call["json"]["safetySettings"]
    assert {s["threshold"] for s in safety} == {"BLOCK_ONLY_HIGH"}
    assert len(safety) == 4


def test_generate_text_only_is_model_refusal(monkeypatch, generator, source):
    install(monkeypatch, RecordingPost(make_response(body=image_body(
        {"text": "I can't edit photos of real people."}
    ))))

    with pytest.raises(ModelRefusal) as exc:
        generator.generate(source, "Buzz Cut", "Very short")

    assert exc.value.kind == ErrorKind.MODEL_REFUSAL
    assert "I can't edit photos of real people." in exc.value.message
    assert exc.value.text == "I can't edit photos of real people."


def test_generate_zero_candidates(monkeypatch, generator, source):
    install(monkeypatch, RecordingPost(make_response(body={"candidates": []})))

    with pytest.raises(NoCandidates):
        generator.generate(source, "Buzz Cut", "Very short")


def test_generate_missing_credential_skips_network(monkeypatch, source):
    post = install(monkeypatch, RecordingPost(make_response(body=image_body())))
    generator = GeminiGenerator(Settings(api_key=None))

    with pytest.raises(MissingCredential) as exc:
        generator.generate(source, "Buzz Cut", "Very short")

    assert post.calls == []
    assert Settings.ENV_API_KEY in exc.value.message
    assert generator.get_missing_config() == [Settings.ENV_API_KEY]


@pytest.mark.parametrize("status, text", [
    (403, '{"error": {"status": "PERMISSION_DENIED"}}'),
    (401, '{"error": {"status": "UNAUTHENTICATED"}}'),
    (400, '{"error": {"message": "API key not valid. Please pass a valid API key.", '
          '"details": [{"reason": "API_KEY_INVALID"}]}}'),
])
def test_rejected_key_is_missing_credential(monkeypatch, generator, source, status, text):
    install(monkeypatch, RecordingPost(make_response(status, text=text)))

    with pytest.raises(MissingCredential) as exc:
        generator.generate(source, "Buzz Cut", "Very short")

    assert exc.value.status_code == status


def test_bad_request_is_upstream_error(monkeypatch, generator, source):
    install(monkeypatch, RecordingPost(make_response(400, text='{"error": {"status": "INVALID_ARGUMENT"}}')))

    with pytest.raises(UpstreamError) as exc:
        generator.generate(source, "Buzz Cut", "Very short")

    assert not isinstance(exc.value, MissingCredential)
    assert "too large" in exc.value.message


def test_server_error_is_upstream_error(monkeypatch, generator, source):
    install(monkeypatch, RecordingPost(make_response(500, text="oops")))

    with pytest.raises(UpstreamError) as exc:
        generator.generate(source, "Buzz Cut", "Very short")

    assert exc.value.kind == ErrorKind.UPSTREAM
    assert exc.value.status_code == 500


def test_transport_failure_is_upstream_error(monkeypatch, generator, source):
    post = install(monkeypatch, RecordingPost(error=requests.exceptions.ConnectionError("refused")))

    with pytest.raises(UpstreamError):
        generator.generate(source, "Buzz Cut", "Very short")

    assert len(post.calls) == 1


def test_non_json_body_is_upstream_error(monkeypatch, generator, source):
    install(monkeypatch, RecordingPost(make_response(200, text="<html>proxy error</html>")))

    with pytest.raises(UpstreamError):
        generator.generate(source, "Buzz Cut", "Very short")


def test_parse_response_block_reason():
    with pytest.raises(NoCandidates) as exc:
        parse_response({"promptFeedback": {"blockReason": "SAFETY"}})
    assert "SAFETY" in exc.value.message


def test_parse_response_without_image_or_text():
    with pytest.raises(EmptyResponse):
        parse_response(image_body())
    with pytest.raises(EmptyResponse):
        parse_response({"candidates": [{"finishReason": "IMAGE_SAFETY"}]})


def test_parse_response_truncates_long_refusal():
    with pytest.raises(ModelRefusal) as exc:
        parse_response(image_body({"text": "x" * 500}))
    assert len(exc.value.text) == ModelRefusal.TEXT_LIMIT
    assert exc.value.message.endswith("...")


def test_get_generator(settings):
    assert isinstance(get_generator("Gemini", settings), GeminiGenerator)
    with pytest.raises(ValueError):
        get_generator("stability", settings)


def test_settings_from_env():
    settings = Settings.from_env({
        "API_KEY": "fallback",
        "GEMINI_MODEL": "other-model",
        "GEMINI_ENDPOINT": "https://proxy.test/v1/models/",
        "MAX_IMAGE_SIZE": "512",
    })
    assert settings.api_key == "fallback"
    assert settings.generate_url == "https://proxy.test/v1/models/other-model:generateContent"
    assert settings.max_image_size == 512
    assert Settings.from_env({}).api_key is None
