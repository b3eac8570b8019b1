"""Persistent fluid-content store gateways.

Responsibilities:
- Address previously generated fluid content by `(language, book, chapter)`.
- Keep "not found" (`None`) distinct from infrastructure failure (`StoreError`).
- Provide a filesystem gateway and an HTTP gateway for the site's `/api/fluid` routes.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import requests

from ..errors import StoreError
from ..models.datatypes import ChapterKey, FluidContent
from ..text.books import DEFAULT_CATALOG, BookCatalog


class FluidStore(Protocol):
    """Protocol for the durable, shared fluid-content store."""

    def get(self, key: ChapterKey) -> FluidContent | None:
        """Return stored content, `None` when absent; raise `StoreError` on failure."""

    def put(self, key: ChapterKey, content: FluidContent) -> None:
        """Persist content for a key; raise `StoreError` on failure."""

    def exists(self, key: ChapterKey) -> bool:
        """Return whether content is stored for a key; raise `StoreError` on failure."""


class FileFluidStore:
    """Filesystem-backed store writing one `{lang}_{book}_{chapter}.json` per chapter."""

    def __init__(self, root: Path, catalog: BookCatalog = DEFAULT_CATALOG) -> None:
        """Initialize the store with a data directory."""

        self.root = root
        self._catalog = catalog

    @staticmethod
    def filename(key: ChapterKey) -> str:
        """Return the canonical filename for a chapter key."""

        return f"{key.language}_{key.book}_{key.chapter}.json".lower()

    def _candidate_paths(self, key: ChapterKey) -> list[Path]:
        """Return the canonical path followed by legacy Portuguese-name paths."""

        paths = [self.root / self.filename(key)]
        book = self._catalog.get(key.book)
        if book is not None:
            for stem in book.legacy_storage_names():
                paths.append(self.root / f"{key.language}_{stem}_{key.chapter}.json".lower())
        return list(dict.fromkeys(paths))

    def get(self, key: ChapterKey) -> FluidContent | None:
        """Load content for a key, trying legacy filenames when the canonical one is absent."""

        for path in self._candidate_paths(key):
            if not path.exists():
                continue
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
                return FluidContent.from_payload(payload)
            except (OSError, ValueError) as exc:
                raise StoreError(operation="get", detail=f"{path}: {exc}") from exc
        return None

    def put(self, key: ChapterKey, content: FluidContent) -> None:
        """Write content atomically under the canonical filename."""

        path = self.root / self.filename(key)
        temp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(
                json.dumps(content.to_payload(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(temp_path, path)
        except OSError as exc:
            raise StoreError(operation="put", detail=f"{path}: {exc}") from exc

    def exists(self, key: ChapterKey) -> bool:
        """Return whether any canonical or legacy file exists for a key."""

        return any(path.exists() for path in self._candidate_paths(key))


class HttpFluidStore:
    """Store gateway speaking to the site's `/api/fluid` HTTP routes."""

    def __init__(self, base_url: str, *, timeout_seconds: float | None = 5.0) -> None:
        """Initialize the gateway; `timeout_seconds=None` disables the client timeout."""

        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _chapter_url(self, key: ChapterKey) -> str:
        """Return the GET URL for one chapter key."""

        return (
            f"{self.base_url}/api/fluid/{quote(key.language, safe='')}/"
            f"{quote(key.book, safe='')}/{key.chapter}"
        )

    def get(self, key: ChapterKey) -> FluidContent | None:
        """Fetch content; HTTP 404 means not found, any other failure is a `StoreError`."""

        try:
            response = requests.get(self._chapter_url(key), timeout=self.timeout_seconds)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise StoreError(operation="get", detail=str(exc)) from exc
        except ValueError as exc:
            raise StoreError(operation="get", detail=f"invalid JSON body: {exc}") from exc

        try:
            return FluidContent.from_payload(payload)
        except ValueError as exc:
            raise StoreError(operation="get", detail=str(exc)) from exc

    def put(self, key: ChapterKey, content: FluidContent) -> None:
        """POST content for a key."""

        body = {
            "lang": key.language,
            "book": key.book,
            "chapter": key.chapter,
            "content": content.to_payload(),
        }
        try:
            response = requests.post(
                f"{self.base_url}/api/fluid",
                json=body,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError(operation="put", detail=str(exc)) from exc

    def exists(self, key: ChapterKey) -> bool:
        """Return whether the server holds content for a key."""

        return self.get(key) is not None
