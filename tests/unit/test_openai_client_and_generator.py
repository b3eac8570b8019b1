"""Unit tests for chat-completions failure classification, generation, and verse fetching."""

from __future__ import annotations

import json

import pytest
import requests
from pytest import MonkeyPatch

from fluidbible.errors import ProviderError
from fluidbible.llm.generator import ChatFluidGenerator, load_json_response
from fluidbible.llm.openai_client import ChatCompletionClient
from fluidbible.llm.verse_source import ChatVerseSource
from fluidbible.models.datatypes import ChapterKey, Verse, verses_from_texts

_KEY = ChapterKey(language="pt", book="genesis", chapter=1)


class _MockRequestsResponse:
    """Minimal requests response mock used by provider client tests."""

    def __init__(self, *, payload: bytes, status_code: int = 200) -> None:
        """Initialize response with payload bytes and status code."""

        self.content = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        """Raise HTTP error when status code indicates failure."""

        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class _RecordingRateLimiter:
    """Rate limiter test double that records acquire keys."""

    def __init__(self) -> None:
        self.keys: list[str] = []

    def acquire(self, key: str) -> None:
        self.keys.append(key)


class _FakeChatClient:
    """Chat client double returning canned text and recording prompts."""

    def __init__(self, responses: list[str | Exception]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, object]] = []

    def chat_completion_text(self, **kwargs: object) -> str:
        self.calls.append(kwargs)
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _chat_payload(content: str) -> bytes:
    return json.dumps({"choices": [{"message": {"content": content}}]}).encode("utf-8")


def _error_payload(code: str, message: str = "details") -> bytes:
    return json.dumps({"error": {"code": code, "message": message}}).encode("utf-8")


def _client(monkeypatch: MonkeyPatch, response: _MockRequestsResponse) -> ChatCompletionClient:
    monkeypatch.setattr(
        "fluidbible.llm.openai_client.requests.post",
        lambda *args, **kwargs: response,
    )
    return ChatCompletionClient(api_key="sk-test", rate_limiter=_RecordingRateLimiter())  # type: ignore[arg-type]


def test_chat_completion_returns_text_and_uses_rate_limiter(monkeypatch: MonkeyPatch) -> None:
    """Successful calls should extract the first message and acquire a provider slot."""

    captured: dict[str, object] = {}

    def _fake_post(url: str, **kwargs: object) -> _MockRequestsResponse:
        captured["url"] = url
        captured.update(kwargs)
        return _MockRequestsResponse(payload=_chat_payload("  resposta  "))

    monkeypatch.setattr("fluidbible.llm.openai_client.requests.post", _fake_post)
    limiter = _RecordingRateLimiter()
    client = ChatCompletionClient(
        api_key="sk-test", provider_id="openrouter", rate_limiter=limiter  # type: ignore[arg-type]
    )

    text = client.chat_completion_text(
        model="m", system_prompt="s", user_prompt="u", json_response=True
    )

    assert text == "resposta"
    assert captured["url"] == "https://openrouter.ai/api/v1/chat/completions"
    assert captured["json"]["response_format"] == {"type": "json_object"}  # type: ignore[index]
    assert limiter.keys == ["openrouter:chat:m"]


@pytest.mark.parametrize(
    ("status_code", "payload", "failure_kind", "transient"),
    [
        (429, b"", "rate_limited", True),
        (429, _error_payload("insufficient_quota"), "insufficient_quota", True),
        (400, _error_payload("RESOURCE_EXHAUSTED"), "rate_limited", True),
        (401, _error_payload("invalid_api_key"), "invalid_api_key", False),
        (404, _error_payload("model_not_found"), "invalid_model", False),
        (504, b"gateway timeout", "timeout", False),
        (500, b"boom", "http_error", False),
    ],
)
def test_http_failures_are_classified_from_status_and_code(
    monkeypatch: MonkeyPatch,
    status_code: int,
    payload: bytes,
    failure_kind: str,
    transient: bool,
) -> None:
    """Classification should depend on status and structured code, not message text."""

    client = _client(monkeypatch, _MockRequestsResponse(payload=payload, status_code=status_code))

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert error_info.value.failure_kind == failure_kind
    assert error_info.value.transient is transient
    assert error_info.value.status_code == status_code


def test_message_text_mentioning_quota_is_not_transient(monkeypatch: MonkeyPatch) -> None:
    """A fatal error whose message merely mentions quota must stay fatal."""

    client = _client(
        monkeypatch,
        _MockRequestsResponse(
            payload=_error_payload("invalid_request_error", "quota 429 RESOURCE_EXHAUSTED"),
            status_code=400,
        ),
    )

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert error_info.value.transient is False


def test_transport_timeout_is_classified(monkeypatch: MonkeyPatch) -> None:
    """Network timeouts should map to the fatal `timeout` kind."""

    def _raise_timeout(*args: object, **kwargs: object) -> _MockRequestsResponse:
        raise requests.Timeout("timed out")

    monkeypatch.setattr("fluidbible.llm.openai_client.requests.post", _raise_timeout)
    client = ChatCompletionClient(api_key="sk-test", rate_limiter=_RecordingRateLimiter())  # type: ignore[arg-type]

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert error_info.value.failure_kind == "timeout"


def test_missing_api_key_fails_before_any_request(monkeypatch: MonkeyPatch) -> None:
    """Calls without a key should fail fast as `invalid_api_key`."""

    def _unexpected_post(*args: object, **kwargs: object) -> _MockRequestsResponse:
        raise AssertionError("request must not be sent")

    monkeypatch.setattr("fluidbible.llm.openai_client.requests.post", _unexpected_post)
    client = ChatCompletionClient(api_key="  ")

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert error_info.value.failure_kind == "invalid_api_key"


def test_malformed_chat_payload_is_fatal(monkeypatch: MonkeyPatch) -> None:
    """Responses without choices are malformed."""

    client = _client(monkeypatch, _MockRequestsResponse(payload=b'{"choices": []}'))

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert error_info.value.failure_kind == "malformed_response"


def test_non_utf8_chat_payload_is_fatal(monkeypatch: MonkeyPatch) -> None:
    """Undecodable response bodies are classified, not raised raw."""

    client = _client(monkeypatch, _MockRequestsResponse(payload=b"\xff\xfe not utf-8"))

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert error_info.value.failure_kind == "malformed_response"
    assert error_info.value.transient is False


def test_provider_messages_redact_api_keys(monkeypatch: MonkeyPatch) -> None:
    """Error details must not echo key-like tokens."""

    client = _client(
        monkeypatch,
        _MockRequestsResponse(
            payload=_error_payload("invalid_api_key", "Incorrect key sk-abcdefghijklmnop"),
            status_code=401,
        ),
    )

    with pytest.raises(ProviderError) as error_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert "sk-abcdefghijklmnop" not in str(error_info.value)
    assert "[redacted-key]" in str(error_info.value)


def test_load_json_response_strips_code_fences() -> None:
    """Markdown fences around JSON should be tolerated."""

    assert load_json_response('```json\n{"title": "X"}\n```') == {"title": "X"}
    assert load_json_response('{"title": "Y"}') == {"title": "Y"}


def test_load_json_response_rejects_non_json() -> None:
    """Free text is a malformed provider response."""

    with pytest.raises(ProviderError) as error_info:
        load_json_response("Desculpe, não posso ajudar.")

    assert error_info.value.failure_kind == "malformed_response"


def test_generator_builds_grounded_portuguese_prompt() -> None:
    """The rewrite prompt should name the Portuguese book and embed the verses."""

    client = _FakeChatClient(['{"title": "A Criação", "paragraphs": ["p1", "p2"]}'])
    generator = ChatFluidGenerator(model="m", client=client)  # type: ignore[arg-type]

    content = generator.generate(_KEY, verses_from_texts(["No princípio.", "Houve luz."]))

    assert content.title == "A Criação"
    assert content.paragraphs == ("p1", "p2")
    prompt = str(client.calls[0]["user_prompt"])
    assert "capítulo 1 do livro de Gênesis" in prompt
    assert "1. No princípio.\n2. Houve luz." in prompt
    assert client.calls[0]["json_response"] is True


def test_generator_omits_grounding_without_verses() -> None:
    """Without canonical verses the prompt relies on the chapter reference only."""

    client = _FakeChatClient(['{"title": "T", "paragraphs": ["p"]}'])
    generator = ChatFluidGenerator(model="m", client=client)  # type: ignore[arg-type]

    generator.generate(ChapterKey("en", "genesis", 1), ())

    prompt = str(client.calls[0]["user_prompt"])
    assert "TEXTO ORIGINAL" not in prompt
    assert "English" in prompt


def test_generator_rejects_invalid_structure() -> None:
    """Non-list paragraphs are a malformed response, not content."""

    client = _FakeChatClient(['{"title": "T", "paragraphs": "p"}'])
    generator = ChatFluidGenerator(model="m", client=client)  # type: ignore[arg-type]

    with pytest.raises(ProviderError) as error_info:
        generator.generate(_KEY, ())

    assert error_info.value.failure_kind == "malformed_response"


def test_generator_returns_empty_content_for_the_resolver_to_reject() -> None:
    """Empty paragraph lists parse but are flagged as empty."""

    client = _FakeChatClient(['{"title": "X", "paragraphs": []}'])
    generator = ChatFluidGenerator(model="m", client=client)  # type: ignore[arg-type]

    assert generator.generate(_KEY, ()).is_empty


def test_verse_source_parses_and_orders_verses() -> None:
    """Fetched verses should be ordered and numbered from 1."""

    client = _FakeChatClient(
        [
            json.dumps(
                {
                    "verses": [
                        {"number": 2, "text": "And God said."},
                        {"number": 1, "text": "In the beginning."},
                        {"number": 3, "text": "  "},
                    ]
                }
            )
        ]
    )
    source = ChatVerseSource(client=client, model="m")  # type: ignore[arg-type]

    verses = source.fetch(ChapterKey("en", "genesis", 1))

    assert verses == (Verse(1, "In the beginning."), Verse(2, "And God said."))


def test_verse_source_failures_return_none(loguru_messages: list[str]) -> None:
    """Provider failures and unusable payloads should be logged and yield `None`."""

    client = _FakeChatClient(
        [
            ProviderError("Provider rate limit reached", failure_kind="rate_limited"),
            '{"unexpected": true}',
        ]
    )
    source = ChatVerseSource(client=client, model="m")  # type: ignore[arg-type]
    key = ChapterKey("en", "genesis", 1)

    assert source.fetch(key) is None
    assert source.fetch(key) is None
    assert any("Canonical text fetch failed" in message for message in loguru_messages)
