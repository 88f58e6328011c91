"""
Audited Injection Pipeline

Last-resort executor for UI injection fallbacks (e.g. a synthetic
dispatchEvent click). Every attempt is checked against the anti-detection
policy, throttled by a token bucket and leaves an audit record.

Audit Records:
    {audit_prefix}/ui-injection-blocked-{ts}.json    policy denied
    {audit_prefix}/ui-injection-executed-{ts}.json   action ran
    {audit_prefix}/ui-injection-failed-{ts}.json     action raised

{ts} is yyyyMMddHHmmssfff (UTC). Records are mirrored to Supabase when
an AuditLogger is attached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from core.automation import InjectionAction
from core.errors import PersistenceError
from core.policy import InjectionGate
from core.schemas.inputs import utc_now
from persistence.audit_logger import AuditLogger
from persistence.context_repository import timestamp_file_name
from persistence.document_store import DocumentStore


logger = logging.getLogger(__name__)


AUDIT_BLOCKED = "ui-injection-blocked"
AUDIT_EXECUTED = "ui-injection-executed"
AUDIT_FAILED = "ui-injection-failed"


# =============================================================================
# Rate Limiting
# =============================================================================

class InjectionRateLimiter:
    """
    Async token bucket. acquire() suspends until a token is available;
    waiters are served in arrival order.
    """

    def __init__(
        self,
        rate_per_second: float = 1.0,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = rate_per_second
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last_update = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._last_update, 0.0)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last_update = now

    async def acquire(self) -> None:
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                await self._sleep((1.0 - self._tokens) / self.rate)
                self._refill()
            self._tokens -= 1.0


# =============================================================================
# Pipeline
# =============================================================================

class AuditedInjectionPipeline:
    """
    Policy-checked, rate-limited, audited injection executor.

    try_ui_injection() never raises for a failing action: the failure is
    audited and reported as False so the caller can surface its own
    root-cause error instead.
    """

    def __init__(
        self,
        gate: InjectionGate,
        store: Optional[DocumentStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        rate_limiter: Optional[InjectionRateLimiter] = None,
        audit_prefix: str = "audit/injection",
    ) -> None:
        self.gate = gate
        self.store = store
        self.audit_logger = audit_logger
        self.rate_limiter = rate_limiter or InjectionRateLimiter()
        self.audit_prefix = audit_prefix.rstrip("/")
        self.counts: Dict[str, int] = {AUDIT_BLOCKED: 0, AUDIT_EXECUTED: 0, AUDIT_FAILED: 0}

    async def try_ui_injection(self, target: Any, label: str, action: InjectionAction) -> bool:
        if not self.gate.allows_injection_fallback:
            logger.info(f"UI injection blocked by policy: {label}")
            await self._audit(AUDIT_BLOCKED, {"label": label, "reason": "policy_denied"})
            return False

        await self.rate_limiter.acquire()

        try:
            await action(target)
        except Exception as e:
            logger.warning(f"UI injection failed ({label}): {e}")
            await self._audit(AUDIT_FAILED, {"label": label, "ok": False, "error": str(e)})
            return False

        logger.info(f"UI injection executed: {label}")
        await self._audit(AUDIT_EXECUTED, {"label": label, "ok": True})
        return True

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def _audit(self, name: str, payload: Dict[str, Any]) -> None:
        """Best-effort: audit failures are logged, never raised."""
        self.counts[name] += 1
        now = utc_now()
        record = {"ts": now.isoformat(), **payload}

        if self.store is not None:
            key = f"{self.audit_prefix}/{name}-{timestamp_file_name(now)}"
            try:
                await self.store.save(key, record)
            except PersistenceError as e:
                logger.error(f"Injection audit write failed ({name}): {e}")

        if self.audit_logger is not None:
            await asyncio.to_thread(self.audit_logger.log_injection, name, record)
