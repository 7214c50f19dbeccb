"""Document sinks: where rendered sanction letters and schedules end up."""

from __future__ import annotations

import logging
import secrets
from pathlib import Path

from origination.collaborators.base import DocumentSink

log = logging.getLogger("origination.collaborators.documents")


def _reference(kind: str) -> str:
    return f"{kind}_{secrets.token_hex(6)}"


class InMemoryDocumentSink(DocumentSink):
    """Keeps payloads in a dict keyed by reference."""

    def __init__(self) -> None:
        self._documents: dict[str, bytes] = {}

    async def persist(self, kind: str, payload: bytes) -> str:
        ref = _reference(kind)
        self._documents[ref] = payload
        log.info("Stored %s (%d bytes) as %s", kind, len(payload), ref)
        return ref

    def fetch(self, reference: str) -> bytes | None:
        return self._documents.get(reference)

    def __len__(self) -> int:
        return len(self._documents)


class FileDocumentSink(DocumentSink):
    """Writes each payload to ``<directory>/<reference>.json``."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    async def persist(self, kind: str, payload: bytes) -> str:
        ref = _reference(kind)
        path = self._directory / f"{ref}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        log.info("Wrote %s to %s", kind, path)
        return ref

    def path_for(self, reference: str) -> Path:
        return self._directory / f"{reference}.json"
