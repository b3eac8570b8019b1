"""HTTP client for OpenAI-compatible chat-completions providers.

Responsibilities:
- Send chat-completions requests to OpenAI or OpenRouter REST APIs.
- Normalize response extraction for deterministic generator integrations.
- Classify failures into typed kinds so callers never inspect message text.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests

from ..errors import ProviderError
from .rate_limiter import RateLimiter

PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "openrouter": "https://openrouter.ai/api/v1",
}

_RATE_LIMIT_CODES = frozenset({"rate_limit_exceeded", "resource_exhausted", "rate_limited"})
_QUOTA_CODES = frozenset({"insufficient_quota", "quota_exceeded"})


class ChatCompletionClient:
    """Minimal requests-based chat-completions client."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None,
        provider_id: str = "openai",
        base_url: str | None = None,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize HTTP settings; `base_url` defaults to the provider's public API."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.provider_id = provider_id
        resolved_base = base_url or PROVIDER_BASE_URLS.get(provider_id)
        if resolved_base is None:
            raise ValueError(f"Unsupported chat provider `{provider_id}`.")
        self.base_url = resolved_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        json_response: bool = False,
    ) -> str:
        """Return the first assistant text response from a chat-completions request."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if json_response:
            payload["response_format"] = {"type": "json_object"}

        self.rate_limiter.acquire(f"{self.provider_id}:chat:{model}")
        raw_payload = self._post_json_text("/chat/completions", payload)
        return self._extract_message_text(raw_payload)

    def _require_api_key(self) -> None:
        """Require API key presence before issuing requests."""

        if not self.api_key:
            raise ProviderError(
                f"Missing API key for provider `{self.provider_id}`. Set it in config, "
                "the environment, or via `fluidbible credentials --set-api-key`.",
                failure_kind="invalid_api_key",
            )

    def _post_json_text(self, endpoint_path: str, payload: dict[str, Any]) -> str:
        """POST a JSON payload and map every failure to a classified `ProviderError`."""

        endpoint = f"{self.base_url}{endpoint_path}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            return bytes(response.content).decode("utf-8")
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = "Provider request timed out."
            else:
                detail = f"Provider transport error: {self._short_message(str(exc))}"
            raise ProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise ProviderError("Provider request timed out.", failure_kind="timeout") from exc
        except UnicodeDecodeError as exc:
            raise ProviderError(
                "Provider response is not valid UTF-8.",
                failure_kind="malformed_response",
            ) from exc

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        try:
            return bytes(response.content).decode("utf-8", errors="replace").strip()
        except (TypeError, ValueError):
            return ""

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        return re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider message and the structured error code/status."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                # OpenAI uses `code`; Google-backed routes report `status`.
                for code_field in ("code", "status", "type"):
                    code_value = error_payload.get(code_field)
                    if isinstance(code_value, str) and code_value.strip():
                        provider_code = code_value.strip()
                        break
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body
        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(status_code: int, provider_code: str | None) -> str:
        """Classify HTTP errors from status code and structured provider code only."""

        normalized_code = provider_code.lower() if provider_code is not None else ""

        if normalized_code in _QUOTA_CODES:
            return "insufficient_quota"
        if status_code == 429 or normalized_code in _RATE_LIMIT_CODES:
            return "rate_limited"
        if status_code in {401, 403} or normalized_code == "invalid_api_key":
            return "invalid_api_key"
        if normalized_code == "model_not_found" or status_code == 404:
            return "invalid_model"
        if status_code in {408, 504}:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> ProviderError:
        """Convert HTTP errors into classified provider exceptions."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_code)

        headline = {
            "invalid_api_key": "Provider authentication failed",
            "insufficient_quota": "Provider quota exceeded",
            "rate_limited": "Provider rate limit reached",
            "invalid_model": "Provider rejected the selected model",
            "timeout": "Provider request timed out",
        }.get(failure_kind, "Provider request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return ProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )

    @staticmethod
    def _extract_message_text(raw_payload: str) -> str:
        """Extract first assistant message text from a chat-completions JSON payload."""

        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise ProviderError(
                "Provider returned invalid JSON payload.", failure_kind="malformed_response"
            ) from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ProviderError(
                "Provider response missing non-empty `choices` list.",
                failure_kind="malformed_response",
            )

        first_choice = choices[0]
        message = first_choice.get("message") if isinstance(first_choice, dict) else None
        if not isinstance(message, dict):
            raise ProviderError(
                "Provider response missing `choices[0].message` object.",
                failure_kind="malformed_response",
            )

        text = ChatCompletionClient._message_content_to_text(message.get("content"))
        normalized = text.strip()
        if not normalized:
            raise ProviderError(
                "Provider response message content is empty.",
                failure_kind="malformed_response",
            )
        return normalized

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert message content variants into a plain text string."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if not isinstance(item, dict):
                    continue
                if item.get("type") == "text" and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            return "".join(parts)
        return ""
