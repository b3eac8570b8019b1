"""Configuration model and loaders for fluidbible.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider, model, and API key.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `FluidBibleConfig`: normalized runtime settings for resolution and batches.
- `ProviderRuntimeConfig`: resolved provider/model runtime values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `FluidBibleConfig`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_non_negative_seconds,
    parse_positive_int,
)

_DEFAULT_MODEL = "gpt-4.1-mini"
_SUPPORTED_PROVIDER_IDS = frozenset({"openai", "openrouter"})
_API_KEY_ENV_KEYS = {
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}
_ENV_PREFIX = "FLUIDBIBLE_"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved provider identifiers for one command invocation."""

    provider: str
    model: str
    api_key: str | None = None


@dataclass(slots=True)
class FluidBibleConfig:
    """Runtime configuration for chapter resolution and batch generation.

    Attributes:
        language: Default language for reads and batches.
        primary_language: Language the static corpus covers.
        provider: Chat provider id (`openai` or `openrouter`).
        model: Chat model id.
        api_key: Optional provider API key.
        temperature: Sampling temperature for fluid rewrites.
        store_dir: Directory of the file-backed persistent store.
        store_url: Base URL of an HTTP store; overrides `store_dir` when set.
        store_timeout_seconds: HTTP store timeout for interactive reads.
        batch_store_timeout_seconds: HTTP store timeout during batch runs.
        corpus_path: Static corpus JSON; `None` uses the bundled sample.
        cache_max_entries: Optional entry quota for the ephemeral cache.
        backoff_base_seconds: Base of the exponential backoff on transient failures.
        max_attempts: Transient failures tolerated per chapter.
        inter_chapter_delay_seconds: Politeness delay between generated chapters.
        min_request_interval_seconds: Minimum spacing of provider requests.
        provider_timeout_seconds: HTTP timeout for provider requests.
        runtime_sources: Optional runtime source overrides injected by CLI.
    """

    language: str = "pt"
    primary_language: str = "pt"
    provider: str = "openai"
    model: str = _DEFAULT_MODEL
    api_key: str | None = None
    temperature: float = 0.7
    store_dir: Path = Path("data/fluid")
    store_url: str | None = None
    store_timeout_seconds: float = 5.0
    batch_store_timeout_seconds: float = 30.0
    corpus_path: Path | None = None
    cache_max_entries: int | None = None
    backoff_base_seconds: float = 2.0
    max_attempts: int = 5
    inter_chapter_delay_seconds: float = 2.0
    min_request_interval_seconds: float = 0.5
    provider_timeout_seconds: float = 60.0
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)

    def validate(self) -> None:
        """Validate configuration values before any provider or store is built."""

        self._validate_provider_id(self.provider)
        self._require_non_empty(self.model, "model")
        self._require_non_empty(self.language, "language")
        self._require_non_empty(self.primary_language, "primary_language")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("`temperature` must be between 0 and 2.")
        if self.max_attempts <= 0:
            raise ValueError("`max_attempts` must be a positive integer.")
        if self.cache_max_entries is not None and self.cache_max_entries <= 0:
            raise ValueError("`cache_max_entries` must be a positive integer.")
        for field_name in (
            "store_timeout_seconds",
            "batch_store_timeout_seconds",
            "backoff_base_seconds",
            "inter_chapter_delay_seconds",
            "min_request_interval_seconds",
            "provider_timeout_seconds",
        ):
            if getattr(self, field_name) < 0:
                raise ValueError(f"`{field_name}` must be a non-negative number of seconds.")

    def with_runtime_sources(self, sources: RuntimeConfigSources) -> FluidBibleConfig:
        """Return a copy carrying `sources` for later runtime resolution."""

        return replace(self, runtime_sources=sources)

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider, model, and API key with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        The API key environment variable follows the resolved provider.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        provider = self._resolve_runtime_value(
            key="provider",
            env_key=f"{_ENV_PREFIX}PROVIDER",
            default_value=self.provider,
            sources=resolved_sources,
        )
        self._validate_provider_id(provider)
        model = self._resolve_runtime_value(
            key="model",
            env_key=f"{_ENV_PREFIX}MODEL",
            default_value=self.model,
            sources=resolved_sources,
        )
        api_key = self._resolve_optional_runtime_value(
            key="api_key",
            env_key=_API_KEY_ENV_KEYS[provider],
            default_value=self.api_key,
            sources=resolved_sources,
        )
        return ProviderRuntimeConfig(provider=provider, model=model, api_key=api_key)

    def _resolve_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a required runtime value from sources in precedence order."""

        resolved = self._resolve_optional_runtime_value(key, env_key, default_value, sources)
        if resolved is None:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or defaults."
            )
        return resolved

    def _resolve_optional_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in precedence order."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            value = self._normalized_lookup(mapping, lookup_key)
            if value is not None:
                return value
        return normalize_optional_string(default_value)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _validate_provider_id(provider_id: str) -> None:
        """Validate provider identifiers against supported providers."""

        if provider_id not in _SUPPORTED_PROVIDER_IDS:
            supported = ", ".join(sorted(_SUPPORTED_PROVIDER_IDS))
            raise ValueError(f"Unsupported `provider` value `{provider_id}`; supported: {supported}.")

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


def _parse_string(value: object, field_name: str) -> str | None:
    return normalize_optional_string(value)


def _parse_path(value: object, field_name: str) -> Path | None:
    normalized = normalize_optional_string(value)
    return Path(normalized) if normalized is not None else None


def _parse_temperature(value: object, field_name: str) -> float:
    try:
        return parse_non_negative_seconds(value, field_name)
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a non-negative number.") from exc


_FIELD_PARSERS: dict[str, Callable[[object, str], Any]] = {
    "language": _parse_string,
    "primary_language": _parse_string,
    "provider": _parse_string,
    "model": _parse_string,
    "api_key": _parse_string,
    "temperature": _parse_temperature,
    "store_dir": _parse_path,
    "store_url": _parse_string,
    "store_timeout_seconds": parse_non_negative_seconds,
    "batch_store_timeout_seconds": parse_non_negative_seconds,
    "corpus_path": _parse_path,
    "cache_max_entries": parse_positive_int,
    "backoff_base_seconds": parse_non_negative_seconds,
    "max_attempts": parse_positive_int,
    "inter_chapter_delay_seconds": parse_non_negative_seconds,
    "min_request_interval_seconds": parse_non_negative_seconds,
    "provider_timeout_seconds": parse_non_negative_seconds,
}


class ConfigLoader:
    """Factory methods for creating `FluidBibleConfig` from external sources."""

    _SUPPORTED_KEYS = frozenset(_FIELD_PARSERS)
    _RUNTIME_ENV_KEYS = frozenset(
        {f"{_ENV_PREFIX}PROVIDER", f"{_ENV_PREFIX}MODEL", *_API_KEY_ENV_KEYS.values()}
    )

    @staticmethod
    def from_yaml(path: Path) -> FluidBibleConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = yaml.safe_load(path_text)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")

        unknown = sorted(str(key) for key in set(payload).difference(ConfigLoader._SUPPORTED_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"YAML `{path}` includes unsupported key(s): {key_list}.")

        return ConfigLoader._build_config(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> FluidBibleConfig:
        """Create a validated config from `FLUIDBIBLE_*` environment variables.

        The API key is read from `OPENAI_API_KEY` or `OPENROUTER_API_KEY`
        depending on the configured provider.
        """

        env_map: Mapping[str, str] = os.environ if env is None else env

        payload: dict[str, object] = {}
        for key in _FIELD_PARSERS:
            if key == "api_key":
                continue
            env_key = f"{_ENV_PREFIX}{key.upper()}"
            if normalize_optional_string(env_map.get(env_key)) is not None:
                payload[key] = env_map[env_key]

        provider = normalize_optional_string(payload.get("provider")) or "openai"
        api_key_env = _API_KEY_ENV_KEYS.get(provider)
        if api_key_env is not None and normalize_optional_string(env_map.get(api_key_env)):
            payload["api_key"] = env_map[api_key_env]

        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_string(value) is not None
        }

        config = ConfigLoader._build_config(payload, source_label="Environment")
        return config.with_runtime_sources(RuntimeConfigSources(env=runtime_env))

    @staticmethod
    def _build_config(payload: Mapping[str, Any], source_label: str) -> FluidBibleConfig:
        """Parse known fields from a mapping and build a validated config."""

        values: dict[str, Any] = {}
        for key, parser in _FIELD_PARSERS.items():
            if key not in payload or payload[key] is None:
                continue
            try:
                parsed = parser(payload[key], key)
            except ValueError as exc:
                raise ValueError(f"{source_label} field {exc}") from exc
            if parsed is not None:
                values[key] = parsed

        config = FluidBibleConfig(**values)
        config.validate()
        return config
