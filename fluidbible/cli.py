"""Command-line interface for fluidbible.

Responsibilities:
- Expose user-facing commands for chapter reads and whole-book batches.
- Convert CLI arguments into `FluidBibleConfig` and run the service.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_batch_progress,
    echo_batch_summary,
    echo_book_rows,
    echo_fluid_content,
    exit_with_command_error,
)
from .cli_runtime import resolve_provider_runtime_sources
from .config import ConfigLoader, FluidBibleConfig, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import CommandError
from .models.datatypes import BatchRun
from .parsing import normalize_optional_string
from .pipeline import BatchHandle, FluidBibleService
from .telemetry.logger import RunLogger
from .text.books import DEFAULT_CATALOG

app = typer.Typer(
    name="fluidbible",
    no_args_is_help=True,
    help="Fluid Bible chapter resolution and batch generation.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with command defaults."),
]
LanguageOption = Annotated[
    str | None, typer.Option("--lang", help="Target language code (default from config).")
]
ProviderOption = Annotated[
    str | None, typer.Option("--provider", help="Chat provider id: `openai` or `openrouter`.")
]
ModelOption = Annotated[str | None, typer.Option("--model", help="Chat model id override.")]
ApiKeyOption = Annotated[
    str | None,
    typer.Option(
        "--api-key",
        help="Provider API key override. Prefer `--prompt-api-key` to avoid shell history.",
    ),
]
PromptApiKeyOption = Annotated[
    bool,
    typer.Option("--prompt-api-key", help="Prompt for API key with hidden input."),
]
StoreApiKeyOption = Annotated[
    bool,
    typer.Option(
        "--store-api-key/--no-store-api-key",
        help="Persist CLI-entered API key to secure credential storage.",
    ),
]
StoreDirOption = Annotated[
    Path | None, typer.Option("--store-dir", help="Directory of the file-backed store.")
]
StoreUrlOption = Annotated[
    str | None, typer.Option("--store-url", help="Base URL of an HTTP fluid-content store.")
]

_POLL_INTERVAL_SECONDS = 0.5


def _load_base_config(config_path: Path | None) -> FluidBibleConfig:
    """Load YAML config when requested, else environment config, as stage errors."""

    if config_path is None:
        try:
            return ConfigLoader.from_env()
        except ValueError as exc:
            raise CommandError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Fix the `FLUIDBIBLE_*` environment variables and rerun.",
            ) from exc

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise CommandError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise CommandError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def _resolve_command_config(
    *,
    config_file: Path | None,
    language: str | None,
    provider: str | None,
    model: str | None,
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
    store_dir: Path | None,
    store_url: str | None,
) -> FluidBibleConfig:
    """Resolve effective command config from file/env defaults and CLI overrides."""

    base_config = _load_base_config(config_file)
    overrides: dict[str, object] = {}
    normalized_language = normalize_optional_string(language)
    if normalized_language is not None:
        overrides["language"] = normalized_language.lower()
    if store_dir is not None:
        overrides["store_dir"] = store_dir
    normalized_store_url = normalize_optional_string(store_url)
    if normalized_store_url is not None:
        overrides["store_url"] = normalized_store_url

    runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
        provider=provider,
        model=model,
        api_key=api_key,
        prompt_api_key=prompt_api_key,
        store_api_key=store_api_key,
        default_provider=base_config.provider,
        credential_store_factory=create_credential_store,
    )
    config = replace(
        base_config,
        runtime_sources=RuntimeConfigSources(
            cli=runtime_cli_values,
            secure=runtime_secure_values,
            env=os.environ,
        ),
        **overrides,
    )
    try:
        config.validate()
        config.resolved_provider_runtime()
    except ValueError as exc:
        raise CommandError(
            stage="config",
            detail=str(exc),
            hint="Check `--provider`, `--model`, and `--lang` values.",
        ) from exc
    return config


def _wait_for_batch(handle: BatchHandle) -> BatchRun:
    """Wait for a batch, turning Ctrl+C into cooperative cancellation."""

    try:
        while True:
            try:
                return handle.wait(timeout=_POLL_INTERVAL_SECONDS)
            except TimeoutError:
                continue
    except KeyboardInterrupt:
        typer.echo("Cancelling after the current chapter step...")
        handle.cancel()
        return handle.wait()


@app.command("read")
def read_command(
    book: Annotated[str, typer.Argument(help="Book name, id, or abbreviation, e.g. `Gênesis`.")],
    chapter: Annotated[int, typer.Argument(help="1-based chapter number.")],
    language: LanguageOption = None,
    config_file: ConfigOption = None,
    provider: ProviderOption = None,
    model: ModelOption = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
    store_dir: StoreDirOption = None,
    store_url: StoreUrlOption = None,
) -> None:
    """Print the fluid rendering of one chapter, generating it when missing."""

    try:
        config = _resolve_command_config(
            config_file=config_file,
            language=language,
            provider=provider,
            model=model,
            api_key=api_key,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
            store_dir=store_dir,
            store_url=store_url,
        )
        with FluidBibleService.from_config(config) as service:
            content = service.resolve_chapter(config.language, book, chapter)
    except Exception as exc:
        exit_with_command_error("read", exc)

    echo_fluid_content(content)


@app.command("generate-book")
def generate_book_command(
    book: Annotated[str, typer.Argument(help="Book name, id, or abbreviation.")],
    chapters: Annotated[
        int | None,
        typer.Option(
            "--chapters",
            min=0,
            help="Process only the first N chapters (default: the whole book).",
        ),
    ] = None,
    language: LanguageOption = None,
    config_file: ConfigOption = None,
    provider: ProviderOption = None,
    model: ModelOption = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
    store_dir: StoreDirOption = None,
    store_url: StoreUrlOption = None,
) -> None:
    """Generate and persist every missing chapter of a book. Ctrl+C cancels."""

    try:
        config = _resolve_command_config(
            config_file=config_file,
            language=language,
            provider=provider,
            model=model,
            api_key=api_key,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
            store_dir=store_dir,
            store_url=store_url,
        )
        with FluidBibleService.from_config(config, run_logger=RunLogger()) as service:
            handle = service.start_batch(book, chapters, on_snapshot=echo_batch_progress)
            final = _wait_for_batch(handle)
    except Exception as exc:
        exit_with_command_error("generate-book", exc)

    echo_batch_summary(final)
    if final.cancelled:
        raise typer.Exit(code=130)


@app.command("books")
def books_command() -> None:
    """List supported books with their ids and chapter counts."""

    echo_book_rows(DEFAULT_CATALOG)


@app.command("credentials")
def credentials_command(
    provider: Annotated[
        str,
        typer.Option("--provider", help="Provider whose API key is managed."),
    ] = "openai",
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored provider credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            CommandError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store(provider)
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                f"{provider} API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                CommandError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                CommandError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    has_stored_key = credential_store.get_api_key() is not None
    status = "present" if has_stored_key else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored {provider} API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
