"""
Anti-Detection Audit Logger

Fire-and-forget mirror that inserts structured audit entries into the
Supabase `antidetect_audit` table whenever the orchestrator persists an
adjustment or the injection pipeline records a decision.

The document store stays the source of truth; this table exists for
dashboards and cross-host querying.

Schema:
    antidetect_audit (
        event_id TEXT PRIMARY KEY,
        kind     TEXT,
        payload  JSONB,
        created_at TIMESTAMPTZ DEFAULT now()
    )
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import create_client, Client

from core.schemas.outputs import Adjustment

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Builds and inserts audit payloads into Supabase.

    All writes are best-effort: errors are logged but never raised so the
    decision path is never blocked by the mirror.
    """

    TABLE = "antidetect_audit"
    ENGINE_VERSION = "v1.0.0"

    def __init__(self, client: Optional[Client] = None, environment: Optional[str] = None) -> None:
        self.environment = environment or os.getenv("ANTIDETECT_ENV", "production")
        if client is not None:
            self._client: Optional[Client] = client
            return

        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            logger.warning("Supabase credentials missing, audit mirror disabled")
            self._client = None
            return
        self._client = create_client(url, key)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_adjustment(self, adjustment: Adjustment, file_name: str) -> None:
        """Mirror a persisted pacing adjustment."""
        self._insert("adjustment", {
            "context_id": adjustment.context_id,
            "workflow": adjustment.workflow,
            "file_name": file_name,
            "decision": adjustment.model_dump(mode="json"),
        })

    def log_injection(self, name: str, record: Dict[str, Any]) -> None:
        """Mirror a UI injection audit record (blocked / executed / failed)."""
        self._insert("injection", {"name": name, "record": record})

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def _insert(self, kind: str, body: Dict[str, Any]) -> None:
        if self._client is None:
            return

        try:
            entry = self._build_entry(kind, body)
            self._client.table(self.TABLE).insert({
                "event_id": entry["event_id"],
                "kind": kind,
                "payload": entry,
            }).execute()
            logger.debug(f"Audit entry inserted: {entry['event_id']}")
        except Exception as e:
            logger.error(f"Audit entry insertion failed: {e}")

    def _build_entry(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event_id": f"evt_{uuid.uuid4()}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": self.environment,
            "engine_version": self.ENGINE_VERSION,
            "kind": kind,
            **body,
        }
