"""Unit tests for CLI provider runtime resolution helpers."""

from __future__ import annotations

import pytest

from fluidbible.cli_runtime import resolve_provider_runtime_sources
from fluidbible.errors import CommandError


class InMemoryCredentialStore:
    """In-memory credential store implementation for runtime-resolution tests."""

    def __init__(self, initial_api_key: str | None = None) -> None:
        """Initialize the store with an optional initial API key."""

        self._api_key = initial_api_key
        self.stored_values: list[str] = []

    def get_api_key(self) -> str | None:
        """Return currently stored API key value."""

        return self._api_key

    def set_api_key(self, api_key: str) -> None:
        """Persist API key value and keep a history for assertions."""

        self._api_key = api_key
        self.stored_values.append(api_key)


class FailingCredentialStore:
    """Credential store that raises when persisting API key values."""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id

    def get_api_key(self) -> str | None:
        """Return no pre-existing secure API key."""

        return None

    def set_api_key(self, api_key: str) -> None:
        """Raise deterministic storage failure used for error-path assertions."""

        raise RuntimeError("no keyring backend")


def test_resolve_provider_runtime_sources_collects_cli_and_secure_values() -> None:
    """Resolver should normalize CLI overrides and include secure API key fallback."""

    store = InMemoryCredentialStore(initial_api_key="secure-api-key")
    requested_providers: list[str] = []

    def _factory(provider_id: str) -> InMemoryCredentialStore:
        requested_providers.append(provider_id)
        return store

    runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
        provider=" openrouter ",
        model=" cli-model ",
        api_key=None,
        prompt_api_key=False,
        store_api_key=True,
        credential_store_factory=_factory,
    )

    assert runtime_cli_values == {"provider": "openrouter", "model": "cli-model"}
    assert runtime_secure_values == {"api_key": "secure-api-key"}
    assert requested_providers == ["openrouter"]
    assert store.stored_values == []


def test_resolve_provider_runtime_sources_uses_configured_provider_for_secure_lookup() -> None:
    """Without a CLI provider the configured default selects the stored key."""

    requested_providers: list[str] = []

    def _factory(provider_id: str) -> InMemoryCredentialStore:
        requested_providers.append(provider_id)
        return InMemoryCredentialStore()

    resolve_provider_runtime_sources(
        provider=None,
        model=None,
        api_key=None,
        prompt_api_key=False,
        store_api_key=False,
        default_provider="openrouter",
        credential_store_factory=_factory,
    )

    assert requested_providers == ["openrouter"]


def test_resolve_provider_runtime_sources_stores_explicit_api_key() -> None:
    """An API key entered on the command line is persisted when storage is enabled."""

    store = InMemoryCredentialStore()

    runtime_cli_values, _ = resolve_provider_runtime_sources(
        provider=None,
        model=None,
        api_key=" explicit-api-key ",
        prompt_api_key=False,
        store_api_key=True,
        credential_store_factory=lambda provider_id: store,
    )

    assert runtime_cli_values == {"api_key": "explicit-api-key"}
    assert store.stored_values == ["explicit-api-key"]


def test_resolve_provider_runtime_sources_prompted_api_key_respects_no_store(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A prompted key is used for the run but not stored with `--no-store-api-key`."""

    monkeypatch.setattr(
        "fluidbible.cli_runtime.typer.prompt", lambda *args, **kwargs: " prompted-api-key "
    )
    store = InMemoryCredentialStore()

    runtime_cli_values, _ = resolve_provider_runtime_sources(
        provider=None,
        model=None,
        api_key=None,
        prompt_api_key=True,
        store_api_key=False,
        credential_store_factory=lambda provider_id: store,
    )

    assert runtime_cli_values["api_key"] == "prompted-api-key"
    assert store.stored_values == []


def test_resolve_provider_runtime_sources_prompt_api_key_blank_skips_storage(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Blank prompted API key should not be added to CLI runtime values nor stored."""

    def _fake_prompt(*args: object, **kwargs: object) -> str:
        """Return blank input for one-off API-key prompt invocation."""

        del args, kwargs
        return "   "

    monkeypatch.setattr("fluidbible.cli_runtime.typer.prompt", _fake_prompt)

    store = InMemoryCredentialStore()
    runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
        provider=None,
        model=None,
        api_key=None,
        prompt_api_key=True,
        store_api_key=True,
        credential_store_factory=lambda provider_id: store,
    )

    assert "api_key" not in runtime_cli_values
    assert runtime_secure_values == {}
    assert store.stored_values == []


def test_resolve_provider_runtime_sources_storage_failure_raises_stage_error() -> None:
    """Credential-store persistence errors should map to credentials stage diagnostics."""

    with pytest.raises(CommandError) as exc_info:
        resolve_provider_runtime_sources(
            provider=None,
            model=None,
            api_key="explicit-api-key",
            prompt_api_key=False,
            store_api_key=True,
            credential_store_factory=FailingCredentialStore,
        )

    assert exc_info.value.stage == "credentials"
    assert "Failed to store API key securely:" in exc_info.value.detail
    assert "--no-store-api-key" in (exc_info.value.hint or "")
