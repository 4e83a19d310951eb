"""Pytest fixtures for the Gemini proxy tests."""

import pytest
import requests

import main


class FakeResponse:
    """Stand-in for requests.Response with only what the proxy reads."""

    def __init__(self, status_code=200, json_body=None, text=None):
        self.status_code = status_code
        self._json_body = json_body
        self.text = text if text is not None else ""

    def json(self):
        if self._json_body is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_body


class RecordingPost:
    """Replaces requests.post; records each call and returns a canned result."""

    def __init__(self):
        self.calls = []
        self.response = FakeResponse(
            json_body={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
        )
        self.error = None

    def __call__(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def payload(self):
        return self.calls[-1]["json"]


@pytest.fixture
def client():
    main.app.config["TESTING"] = True
    with main.app.test_client() as test_client:
        yield test_client


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return "test-key"


@pytest.fixture
def fake_post(monkeypatch):
    recorder = RecordingPost()
    monkeypatch.setattr(requests, "post", recorder)
    return recorder


@pytest.fixture
def fake_response():
    return FakeResponse
