import json

import pytest
import requests

from chat_relay.core.errors import ProviderError, RateLimitError
from chat_relay.llm import client as client_module
from chat_relay.llm.client import OpenAIChatClient, get_llm_client
from chat_relay.models.request import ChatMessage, ChatMessageRole


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self.text = text if text is not None else json.dumps(body)
        self.closed = False

    def json(self):
        return json.loads(self.text)

    def close(self):
        self.closed = True


@pytest.fixture
def calls(monkeypatch):
    """Record requests.post calls and answer with the queued response."""
    recorded = {"calls": [], "response": FakeResponse(body={"choices": [{"message": {"content": " hi "}}]})}

    def fake_post(url, **kwargs):
        recorded["calls"].append((url, kwargs))
        response = recorded["response"]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(client_module.requests, "post", fake_post)
    return recorded


MESSAGES = [
    ChatMessage(role=ChatMessageRole.SYSTEM, content="sys"),
    ChatMessage(role=ChatMessageRole.USER, content="question"),
]


def make_client():
    return OpenAIChatClient(api_key="sk-test", base_url="https://llm.example/v1/", model="m", max_tokens=1024, temperature=0.5, timeout=5)


def test_buffered_request_shape(calls):
    reply = make_client().complete(MESSAGES)

    assert reply == " hi "
    assert len(calls["calls"]) == 1
    url, kwargs = calls["calls"][0]
    assert url == "https://llm.example/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["json"] == {
        "model": "m",
        "messages": [{"role": "system", "content": "sys"}, {"role": "user", "content": "question"}],
        "max_tokens": 1024,
        "temperature": 0.5,
        "stream": False,
    }
    assert kwargs["stream"] is False
    assert kwargs["timeout"] == 5


def test_streaming_returns_open_response(calls):
    upstream = FakeResponse(status_code=200, text="")
    calls["response"] = upstream

    result = make_client().complete(MESSAGES, stream=True)

    assert result is upstream
    assert not upstream.closed
    assert calls["calls"][0][1]["json"]["stream"] is True


def test_rate_limit_is_classified_and_not_retried(calls):
    calls["response"] = FakeResponse(status_code=429, text='{"error": "slow down"}')

    with pytest.raises(RateLimitError) as exc_info:
        make_client().complete(MESSAGES, stream=True)

    assert exc_info.value.status_code == 429
    assert "slow down" in exc_info.value.body
    assert calls["response"].closed
    assert len(calls["calls"]) == 1


def test_other_status_is_provider_error(calls):
    calls["response"] = FakeResponse(status_code=500, text="boom")

    with pytest.raises(ProviderError) as exc_info:
        make_client().complete(MESSAGES)

    assert not isinstance(exc_info.value, RateLimitError)
    assert exc_info.value.status_code == 500


def test_network_failure_is_provider_error(calls):
    calls["response"] = requests.exceptions.ConnectionError("refused")

    with pytest.raises(ProviderError):
        make_client().complete(MESSAGES)


def test_malformed_buffered_reply_is_provider_error(calls):
    calls["response"] = FakeResponse(status_code=200, text="<html>")
    with pytest.raises(ProviderError):
        make_client().complete(MESSAGES)

    calls["response"] = FakeResponse(status_code=200, body={"choices": []})
    with pytest.raises(ProviderError):
        make_client().complete(MESSAGES)


def test_client_requires_key():
    with pytest.raises(ValueError):
        OpenAIChatClient(api_key="")


def test_get_llm_client_builds_from_settings_key(monkeypatch):
    monkeypatch.setattr(client_module, "llm_client", None)
    monkeypatch.setattr(client_module.settings, "OPENAI_API_KEY", "sk-env")

    client = get_llm_client()

    assert isinstance(client, OpenAIChatClient)
    assert client.api_key == "sk-env"
    assert get_llm_client() is client


def test_get_llm_client_without_key_is_none(monkeypatch):
    monkeypatch.setattr(client_module, "llm_client", None)
    monkeypatch.setattr(client_module.settings, "OPENAI_API_KEY", None)

    assert get_llm_client() is None
