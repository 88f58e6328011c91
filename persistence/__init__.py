"""
Anti-Detection Persistence Layer

Public exports for document stores, the context repository and the
audit mirror.
"""

from .connection import get_redis_client, ping_redis
from .document_store import DocumentStore, JsonFileStore, StoreEntry
from .redis_store import RedisDocumentStore
from .context_repository import (
    ContextRepository,
    ContextState,
    timestamp_file_name,
    sanitize_context_id,
)
from .audit_logger import AuditLogger

__all__ = [
    "get_redis_client",
    "ping_redis",
    "DocumentStore",
    "JsonFileStore",
    "StoreEntry",
    "RedisDocumentStore",
    "ContextRepository",
    "ContextState",
    "timestamp_file_name",
    "sanitize_context_id",
    "AuditLogger",
]
