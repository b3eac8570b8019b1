"""Provider factory helpers for generation, verse fetching, and persistence.

Responsibilities:
- Resolve provider identifiers to concrete client implementations.
- Keep the resolver and orchestrator independent from concrete construction.

Notes:
- `openai` and `openrouter` share the OpenAI-compatible chat-completions client.
"""

from __future__ import annotations

from .config import FluidBibleConfig, ProviderRuntimeConfig
from .io.storage import FileFluidStore, FluidStore, HttpFluidStore
from .llm.generator import ChatFluidGenerator, FluidGenerator
from .llm.openai_client import PROVIDER_BASE_URLS, ChatCompletionClient
from .llm.rate_limiter import RateLimiter
from .llm.verse_source import ChatVerseSource, VerseSource
from .text.books import DEFAULT_CATALOG, BookCatalog


class ProviderFactory:
    """Factory for provider-backed clients and store gateways."""

    @staticmethod
    def create_client(
        runtime: ProviderRuntimeConfig,
        *,
        timeout_seconds: float = 60.0,
        min_request_interval_seconds: float = 0.5,
    ) -> ChatCompletionClient:
        """Create the shared chat-completions client for a configured provider."""

        if runtime.provider not in PROVIDER_BASE_URLS:
            raise ValueError(f"Unsupported chat provider `{runtime.provider}`.")
        return ChatCompletionClient(
            api_key=runtime.api_key,
            provider_id=runtime.provider,
            timeout_seconds=timeout_seconds,
            rate_limiter=RateLimiter(min_interval_seconds=min_request_interval_seconds),
        )

    @staticmethod
    def create_generator(
        runtime: ProviderRuntimeConfig,
        client: ChatCompletionClient,
        *,
        temperature: float = 0.7,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> FluidGenerator:
        """Create the fluid generator bound to `client`."""

        return ChatFluidGenerator(
            model=runtime.model,
            provider_id=runtime.provider,
            temperature=temperature,
            client=client,
            catalog=catalog,
        )

    @staticmethod
    def create_verse_source(
        runtime: ProviderRuntimeConfig,
        client: ChatCompletionClient,
        *,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> VerseSource:
        """Create the best-effort canonical-text source bound to `client`."""

        return ChatVerseSource(client=client, model=runtime.model, catalog=catalog)

    @staticmethod
    def create_store(
        config: FluidBibleConfig,
        *,
        batch: bool = False,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> FluidStore:
        """Create the persistent store gateway; an HTTP `store_url` wins over `store_dir`."""

        if config.store_url is not None:
            timeout = (
                config.batch_store_timeout_seconds if batch else config.store_timeout_seconds
            )
            return HttpFluidStore(config.store_url, timeout_seconds=timeout)
        return FileFluidStore(config.store_dir, catalog=catalog)
