"""
Adaptive Pacing API

FastAPI application exposing the anti-detection control plane:
- POST /signals → pacing Adjustment (JSON)
- GET /contexts/{context_id}/state → ContextState snapshot
- GET /contexts/{context_id}/adjustments → persisted adjustments, newest first
- POST /baseline/validate → ValidationResult

The document store backend is chosen by ANTIDETECT_STORE_BACKEND
(file | redis).
"""

from contextlib import asynccontextmanager
import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from core.config import OrchestratorSettings, StoreSettings
from core.errors import PersistenceError, ValidationError
from core.models.baseline import validate
from core.orchestrator import AdaptivePacingOrchestrator
from core.schemas.inputs import BaselineCheckPayload, Signal
from core.schemas.outputs import Adjustment, ValidationResult
from persistence.audit_logger import AuditLogger
from persistence.connection import get_redis_client, ping_redis
from persistence.context_repository import ContextState
from persistence.document_store import DocumentStore, JsonFileStore
from persistence.redis_store import RedisDocumentStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    orchestrator: Optional[AdaptivePacingOrchestrator] = None
    store: Optional[DocumentStore] = None


state = AppState()


async def build_store(settings: StoreSettings) -> DocumentStore:
    """Create the configured document store."""
    if settings.backend == "redis":
        client = get_redis_client()
        await ping_redis(client)
        return RedisDocumentStore(client)
    return JsonFileStore(settings.root)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Adaptive Pacing API...")
    store_settings = StoreSettings.from_env()
    state.store = await build_store(store_settings)
    state.orchestrator = AdaptivePacingOrchestrator(
        store=state.store,
        settings=OrchestratorSettings.from_env(),
        audit_logger=AuditLogger(environment=store_settings.environment),
    )
    logger.info(f"Adaptive Pacing API ready (store={store_settings.backend})")

    yield

    # Shutdown
    logger.info("Shutting down Adaptive Pacing API...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Adaptive Pacing Control Plane",
    description="Anti-detection pacing orchestrator and baseline validator",
    version=API_VERSION,
    lifespan=lifespan,
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": API_VERSION}


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    return RedirectResponse(url="/docs")


# =============================================================================
# Orchestrator Endpoints
# =============================================================================

@app.post("/signals", response_model=Adjustment)
async def record_signal(signal: Signal):
    """
    Record one observation window and return the live decision.

    - 422 on a blank context id
    - 503 when the decision could not be persisted (safe to retry)
    """
    try:
        return await state.orchestrator.record(signal)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except PersistenceError as e:
        logger.error(f"Signal persistence error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Decision may not have been saved; retry the signal"
        )


@app.get("/contexts/{context_id}/state", response_model=ContextState)
async def get_context_state(context_id: str):
    """Read-only snapshot of a context."""
    try:
        snapshot = await state.orchestrator.get_state(context_id)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except PersistenceError as e:
        logger.error(f"State read error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="State store unavailable"
        )

    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown context: {context_id}"
        )
    return snapshot


@app.get("/contexts/{context_id}/adjustments", response_model=List[Adjustment])
async def get_recent_adjustments(context_id: str, take: int = Query(5, ge=1)):
    """Persisted adjustments, newest first."""
    try:
        return await state.orchestrator.get_recent_adjustments(context_id, take)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except PersistenceError as e:
        logger.error(f"History read error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="State store unavailable"
        )


# =============================================================================
# Baseline Validation
# =============================================================================

@app.post("/baseline/validate", response_model=ValidationResult)
async def validate_baseline(payload: BaselineCheckPayload):
    """Check an environment snapshot against a whitelist."""
    return validate(payload.snapshot, payload.whitelist)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
