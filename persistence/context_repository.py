"""
Anti-Detection Context Repository

Document layout for per-context orchestrator state and its audit trail,
on top of an opaque DocumentStore.

Key Schemas:
    {state_directory}/{context}.json                 -> ContextState
    {adjustment_directory}/{context}/{ts}.json       -> Adjustment
    {adjustment_directory}/{context}/manifest.json   -> AdjustmentManifest

{context} is the context id with every non-alphanumeric character
replaced by '_'; {ts} is the issue time as yyyyMMddHHmmssfff.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from core.config import OrchestratorSettings
from core.errors import PersistenceError
from core.schemas.inputs import Signal
from core.schemas.outputs import (
    Adjustment,
    AdjustmentManifest,
    AdjustmentSummary,
    PacingProfile,
)
from .document_store import DocumentStore


logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================

class ContextState(BaseModel):
    """
    Orchestrator-owned state of one context.

    Callers only ever receive copies; mutating one has no effect on the
    orchestrator.
    """
    context_id: str
    workflow: str = ""
    signals: List[Signal] = Field(default_factory=list, description="Sliding window, oldest first")
    current_pacing: PacingProfile = PacingProfile.NORMAL
    smoothed_human_like_score: float = Field(1.0, ge=0.0, le=1.0, description="EWMA, alpha 0.2")
    last_adjustment: Optional[Adjustment] = None
    last_adjustment_at: Optional[datetime] = None
    history: List[Adjustment] = Field(default_factory=list, description="Persisted adjustments, oldest first")


def sanitize_context_id(context_id: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in context_id)


def timestamp_file_name(moment: datetime) -> str:
    return f"{moment.strftime('%Y%m%d%H%M%S')}{moment.microsecond // 1000:03d}.json"


# =============================================================================
# Repository
# =============================================================================

class ContextRepository:
    """
    Reads and writes context state, adjustment documents and manifests.

    Every store failure surfaces as PersistenceError; nothing is retried
    here (re-driving record() is idempotent at the statistics level).
    """

    MANIFEST_NAME = "manifest.json"

    def __init__(self, store: DocumentStore, settings: OrchestratorSettings) -> None:
        self.store = store
        self.settings = settings

    # -------------------------------------------------------------------------
    # Key Builders
    # -------------------------------------------------------------------------

    def state_key(self, context_id: str) -> str:
        return f"{self.settings.state_directory}/{sanitize_context_id(context_id)}.json"

    def adjustment_directory(self, context_id: str) -> str:
        return f"{self.settings.adjustment_directory}/{sanitize_context_id(context_id)}"

    def manifest_key(self, context_id: str) -> str:
        return f"{self.adjustment_directory(context_id)}/{self.MANIFEST_NAME}"

    # -------------------------------------------------------------------------
    # State Operations
    # -------------------------------------------------------------------------

    async def load_state(self, context_id: str) -> Optional[ContextState]:
        """Load state, None for a context that has never been recorded."""
        document = await self.store.load(self.state_key(context_id))
        if document is None:
            return None
        try:
            return ContextState.model_validate(document)
        except SchemaError as e:
            raise PersistenceError(f"Malformed state document for {context_id}: {e}") from e

    async def save_state(self, state: ContextState) -> None:
        await self.store.save(self.state_key(state.context_id), state.model_dump(mode="json"))

    # -------------------------------------------------------------------------
    # Audit Artifacts
    # -------------------------------------------------------------------------

    async def load_manifest(self, context_id: str) -> Optional[AdjustmentManifest]:
        document = await self.store.load(self.manifest_key(context_id))
        if document is None:
            return None
        try:
            return AdjustmentManifest.model_validate(document)
        except SchemaError as e:
            raise PersistenceError(f"Malformed manifest for {context_id}: {e}") from e

    async def write_adjustment_artifacts(self, adjustment: Adjustment) -> str:
        """
        Write one adjustment document and fold it into the manifest.

        The manifest keeps the newest history_depth summaries, newest first.
        Returns the adjustment document name.
        """
        context_id = adjustment.context_id
        file_name = timestamp_file_name(adjustment.issued_at)
        await self.store.save(
            f"{self.adjustment_directory(context_id)}/{file_name}",
            adjustment.model_dump(mode="json"),
        )

        manifest = await self.load_manifest(context_id) or AdjustmentManifest(context_id=context_id)
        manifest.latest = adjustment
        manifest.items.append(AdjustmentSummary(
            issued_at=adjustment.issued_at,
            pacing_profile=adjustment.pacing_profile,
            reason=adjustment.reason,
            confidence=adjustment.confidence,
            file_name=file_name,
        ))
        manifest.items = sorted(
            manifest.items, key=lambda item: item.issued_at, reverse=True
        )[:self.settings.history_depth]

        await self.store.save(self.manifest_key(context_id), manifest.model_dump(mode="json"))
        logger.debug(f"Adjustment artifact written: {context_id}/{file_name}")
        return file_name
