"""
Anti-Detection Document Store

Opaque key -> JSON document store with atomic writes and SHA-256
content checksums. Keys are '/'-separated relative paths.

Backends:
    JsonFileStore       local directory, temp file + os.replace
    RedisDocumentStore  see persistence.redis_store

File layout (JsonFileStore):
    <root>/<key>   {"sha256": <hex digest>, "document": <JSON document>}

The digest is taken over the canonical document bytes and travels in the
same file as the document, so one os.replace swaps both together.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import PersistenceError


logger = logging.getLogger(__name__)

ENVELOPE_DIGEST = "sha256"
ENVELOPE_DOCUMENT = "document"


# =============================================================================
# Data Models
# =============================================================================

@dataclass(frozen=True)
class StoreEntry:
    """Metadata of a saved document."""
    key: str
    saved_at: datetime
    checksum_sha256: str
    content_length: int


def encode_document(document: Dict[str, Any]) -> bytes:
    """Canonical UTF-8 JSON bytes (stable key order for stable checksums)."""
    return json.dumps(document, ensure_ascii=False, sort_keys=True).encode("utf-8")


def checksum(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


# =============================================================================
# Abstract Store
# =============================================================================

class DocumentStore(ABC):
    """
    Async key -> document store.

    Implementations guarantee that a reader never observes a partially
    written document and that tampered documents fail to load.
    """

    @abstractmethod
    async def save(self, key: str, document: Dict[str, Any]) -> StoreEntry:
        """Atomically write a document, replacing any previous version."""

    @abstractmethod
    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Read and verify a document; None when it does not exist."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """Keys under a prefix, sorted."""


# =============================================================================
# Local JSON File Store
# =============================================================================

class JsonFileStore(DocumentStore):
    """
    Directory-backed store.

    Writes go to '<file>.tmp-<uuid>' and are moved into place with
    os.replace, so readers see either the old or the new document
    together with its own digest.
    Blocking file I/O runs in worker threads via asyncio.to_thread.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        if not str(root).strip():
            raise PersistenceError("Store root directory must not be empty")
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    # -------------------------------------------------------------------------
    # Path Resolution
    # -------------------------------------------------------------------------

    def _resolve(self, key: str) -> Path:
        if not key or not key.strip():
            raise PersistenceError("Document key must not be empty")
        normalized = key.replace("\\", "/").lstrip("/")
        path = (self.root / normalized).resolve()
        if path != self.root and self.root not in path.parents:
            raise PersistenceError(f"Key {key} escapes the store root")
        return path

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    # -------------------------------------------------------------------------
    # Sync Primitives (run in worker threads)
    # -------------------------------------------------------------------------

    def _write_atomic(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp = path.with_name(f"{path.name}.tmp-{uuid.uuid4().hex}")
        try:
            temp.write_bytes(payload)
            os.replace(temp, path)
        finally:
            if temp.exists():
                temp.unlink()

    def _save_sync(self, key: str, document: Dict[str, Any]) -> StoreEntry:
        path = self._resolve(key)
        payload = encode_document(document)
        digest = checksum(payload)
        envelope = encode_document({ENVELOPE_DIGEST: digest, ENVELOPE_DOCUMENT: document})
        try:
            self._write_atomic(path, envelope)
        except OSError as e:
            raise PersistenceError(f"Failed to save {key}: {e}") from e

        return StoreEntry(
            key=self._relative(path),
            saved_at=datetime.now(timezone.utc),
            checksum_sha256=digest,
            content_length=len(payload),
        )

    def _load_sync(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._resolve(key)
        if not path.exists():
            return None
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Failed to read {key}: {e}") from e

        try:
            envelope = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Corrupted document {key}: {e}") from e

        if not isinstance(envelope, dict) or set(envelope) != {ENVELOPE_DIGEST, ENVELOPE_DOCUMENT}:
            raise PersistenceError(f"Corrupted document {key}: missing checksum envelope")

        document = envelope[ENVELOPE_DOCUMENT]
        if envelope[ENVELOPE_DIGEST] != checksum(encode_document(document)):
            logger.error(f"Checksum mismatch for {key}")
            raise PersistenceError(f"Checksum mismatch for {key}")
        return document

    def _delete_sync(self, key: str) -> bool:
        path = self._resolve(key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Failed to delete {key}: {e}") from e
        return True

    def _list_sync(self, prefix: str) -> List[str]:
        base = self._resolve(prefix) if prefix.strip() else self.root
        if not base.is_dir():
            return []
        return sorted(
            self._relative(p)
            for p in base.rglob("*.json")
            if p.is_file()
        )

    # -------------------------------------------------------------------------
    # Async API
    # -------------------------------------------------------------------------

    async def save(self, key: str, document: Dict[str, Any]) -> StoreEntry:
        return await asyncio.to_thread(self._save_sync, key, document)

    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._load_sync, key)

    async def exists(self, key: str) -> bool:
        path = self._resolve(key)
        return await asyncio.to_thread(path.exists)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, key)

    async def list(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._list_sync, prefix)
