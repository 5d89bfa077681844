import requests

from chat_relay.core.errors import ProviderError, RateLimitError
from chat_relay.llm import client as client_module
from chat_relay.models.request import ChatRequest
from chat_relay.models.response import ChatReply
from chat_relay.rag.prompt import PromptBuilder, PromptTemplate
from chat_relay.services.chat_service import ChatService, RelayStream, apology_message, not_configured_message


def make_builder():
    return PromptBuilder(persona_template=PromptTemplate("Bot.\n{articles}"))


class FakeUpstream:
    """Stands in for a streaming requests.Response"""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def iter_content(self, chunk_size=None):
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error

    def close(self):
        self.closed = True


class FakeLLM:
    model = "fake-model"

    def __init__(self, reply="This is an answer", upstream=None, error=None):
        self.reply = reply
        self.upstream = upstream
        self.error = error
        self.calls = []

    def complete(self, messages, stream=False):
        self.calls.append((messages, stream))
        if self.error:
            raise self.error
        return self.upstream if stream else self.reply


REQUEST = ChatRequest.from_payload({"question": "Hello world", "context": [{"title": "A", "body": "b"}]})


def test_generate_response_returns_reply():
    llm = FakeLLM()
    svc = ChatService(llm_client=llm, prompt_builder=make_builder())

    result = svc.generate_response(REQUEST)

    assert result == ChatReply(reply="This is an answer")
    messages, stream = llm.calls[0]
    assert stream is False
    assert messages[0].role.value == "system"
    assert "## [Article 1] A\nb" in messages[0].content
    assert messages[-1].content == "Hello world"


def test_generate_response_apologises_on_provider_error():
    for error in (ProviderError("boom", status_code=500), RateLimitError("slow", status_code=429)):
        svc = ChatService(llm_client=FakeLLM(error=error), prompt_builder=make_builder())
        assert svc.generate_response(REQUEST).reply == apology_message()


def test_stream_response_relays_tokens_and_closes_upstream():
    upstream = FakeUpstream([
        b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\ndata: {"choi',
        b'ces":[{"delta":{"content":"lo"}}]}\n\ndata: [DONE]\n\n',
    ])
    svc = ChatService(llm_client=FakeLLM(upstream=upstream), prompt_builder=make_builder())

    stream = svc.stream_response(REQUEST)
    assert isinstance(stream, RelayStream)

    events = list(stream)
    assert events == [
        'data: {"token": "Hel"}\n\n',
        'data: {"token": "lo"}\n\n',
        "data: [DONE]\n\n",
    ]
    assert upstream.closed


def test_stream_interrupted_mid_way_ends_without_done():
    upstream = FakeUpstream(
        [b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n'],
        error=requests.exceptions.ChunkedEncodingError("connection reset"),
    )
    svc = ChatService(llm_client=FakeLLM(upstream=upstream), prompt_builder=make_builder())

    events = list(svc.stream_response(REQUEST))

    assert events == ['data: {"token": "Hel"}\n\n']
    assert upstream.closed


def test_closing_stream_early_releases_upstream():
    upstream = FakeUpstream([b'data: {"choices":[{"delta":{"content":"a"}}]}\n'] * 5)
    svc = ChatService(llm_client=FakeLLM(upstream=upstream), prompt_builder=make_builder())

    stream = svc.stream_response(REQUEST)
    next(iter(stream))
    stream.close()

    assert upstream.closed


def test_stream_connection_failure_falls_back_to_reply():
    svc = ChatService(llm_client=FakeLLM(error=ProviderError("down")), prompt_builder=make_builder())
    assert svc.stream_response(REQUEST) == ChatReply(reply=apology_message())


def test_unconfigured_service_makes_no_outbound_call(monkeypatch):
    posts = []
    monkeypatch.setattr(client_module.requests, "post", lambda *a, **kw: posts.append(a))
    svc = ChatService(llm_client=None, prompt_builder=make_builder())

    assert svc.generate_response(REQUEST).reply == not_configured_message()
    assert svc.stream_response(REQUEST).reply == not_configured_message()
    assert posts == []
