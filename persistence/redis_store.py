"""
Anti-Detection Redis Document Store

Redis-backed DocumentStore for deployments that share state across
processes. Document and checksum are written in one MULTI/EXEC so a
reader never sees a document without its matching digest.

Key Schemas:
    DOC:{key}         -> JSON document
    DOC_SHA256:{key}  -> hex SHA-256 of the document bytes
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from core.errors import PersistenceError
from .document_store import DocumentStore, StoreEntry, checksum, encode_document


logger = logging.getLogger(__name__)


class RedisDocumentStore(DocumentStore):
    """
    Async Redis implementation of DocumentStore.

    Unlike a cache, failures are not swallowed: the orchestrator relies on
    PersistenceError to tell callers a decision may not have been saved.
    """

    def __init__(self, client: Any) -> None:
        self.client = client

    # -------------------------------------------------------------------------
    # Key Builders
    # -------------------------------------------------------------------------

    def _doc_key(self, key: str) -> str:
        return f"DOC:{key.strip('/')}"

    def _checksum_key(self, key: str) -> str:
        return f"DOC_SHA256:{key.strip('/')}"

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def save(self, key: str, document: Dict[str, Any]) -> StoreEntry:
        if not key or not key.strip():
            raise PersistenceError("Document key must not be empty")
        payload = encode_document(document)
        digest = checksum(payload)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(self._doc_key(key), payload.decode("utf-8"))
            pipe.set(self._checksum_key(key), digest)
            await pipe.execute()
        except RedisError as e:
            logger.error(f"Redis error saving {key}: {e}")
            raise PersistenceError(f"Failed to save {key}: {e}") from e

        return StoreEntry(
            key=key.strip("/"),
            saved_at=datetime.now(timezone.utc),
            checksum_sha256=digest,
            content_length=len(payload),
        )

    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw, stored = await self.client.mget(self._doc_key(key), self._checksum_key(key))
        except RedisError as e:
            logger.error(f"Redis error loading {key}: {e}")
            raise PersistenceError(f"Failed to read {key}: {e}") from e

        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if isinstance(stored, bytes):
            stored = stored.decode("ascii")

        if stored is not None and stored != checksum(raw.encode("utf-8")):
            logger.error(f"Checksum mismatch for {key}")
            raise PersistenceError(f"Checksum mismatch for {key}")

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupted document {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            return await self.client.exists(self._doc_key(key)) > 0
        except RedisError as e:
            raise PersistenceError(f"Failed to check {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            removed = await self.client.delete(self._doc_key(key), self._checksum_key(key))
        except RedisError as e:
            raise PersistenceError(f"Failed to delete {key}: {e}") from e
        return removed > 0

    async def list(self, prefix: str = "") -> List[str]:
        pattern = f"DOC:{prefix.strip('/')}*" if prefix.strip() else "DOC:*"
        keys: List[str] = []
        try:
            async for raw in self.client.scan_iter(match=pattern):
                name = raw.decode("utf-8") if isinstance(raw, bytes) else raw
                keys.append(name[len("DOC:"):])
        except RedisError as e:
            raise PersistenceError(f"Failed to list {prefix}: {e}") from e
        return sorted(keys)
