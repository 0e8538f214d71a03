import pytest
import requests

from foodrescue import config, gemini_client
from foodrescue.errors import ValidationError, VerificationRejected, VerificationTimeout

from .conftest import BIRYANI_REPLY, png_data_url


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "test-key")


def test_verify_food_returns_model_text(monkeypatch):
    seen = {}

    def fake_post(url, params=None, json=None, timeout=None):
        seen.update(url=url, params=params, json=json, timeout=timeout)
        return FakeResponse(body=gemini_body(BIRYANI_REPLY))

    monkeypatch.setattr(gemini_client.requests, "post", fake_post)
    assert gemini_client.verify_food(png_data_url(), timeout=5) == BIRYANI_REPLY

    assert config.GEMINI_MODEL in seen["url"]
    assert seen["params"] == {"key": "test-key"}
    assert seen["timeout"] == 5
    parts = seen["json"]["contents"][0]["parts"]
    assert "foodType" in parts[0]["text"]
    assert parts[1]["inline_data"]["mime_type"] == "image/png"


def test_timeout_is_distinct_from_rejection(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(gemini_client.requests, "post", fake_post)
    with pytest.raises(VerificationTimeout):
        gemini_client.verify_food(png_data_url())


def test_connection_error_is_rejection(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(gemini_client.requests, "post", fake_post)
    with pytest.raises(VerificationRejected):
        gemini_client.verify_food(png_data_url())


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=500, text="internal"),
    FakeResponse(body=None),
    FakeResponse(body={"candidates": []}),
])
def test_unusable_responses_are_rejections(monkeypatch, response):
    monkeypatch.setattr(gemini_client.requests, "post", lambda *a, **k: response)
    with pytest.raises(VerificationRejected):
        gemini_client.verify_food(png_data_url())


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    with pytest.raises(VerificationRejected):
        gemini_client.verify_food(png_data_url())


def test_bad_image_never_reaches_the_model(monkeypatch):
    def fake_post(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(gemini_client.requests, "post", fake_post)
    with pytest.raises(ValidationError):
        gemini_client.verify_food("not base64 at all!")
