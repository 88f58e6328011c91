"""
Audited Injection Pipeline Tests

Tests the policy check, token bucket and audit trail in front of every
UI injection fallback.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors import PersistenceError
from core.injection import (
    AUDIT_BLOCKED,
    AUDIT_EXECUTED,
    AUDIT_FAILED,
    AuditedInjectionPipeline,
    InjectionRateLimiter,
)
from core.policy import AntiDetectionPolicy, AntiDetectionPolicyView
from persistence.audit_logger import AuditLogger
from tests.conftest import FakeElement


def open_gate():
    return AntiDetectionPolicyView(AntiDetectionPolicy(allow_ui_injection_fallback=True))


async def dispatch(element):
    await element.dispatch_click()


async def explode(element):
    raise RuntimeError("element detached")


class FakeTime:
    """Monotonic clock whose sleep advances time instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


# =============================================================================
# Pipeline
# =============================================================================

class TestPipeline:
    """Policy denial, execution and failure paths."""

    @pytest.mark.asyncio
    async def test_blocked_by_policy(self, store):
        pipeline = AuditedInjectionPipeline(AntiDetectionPolicyView(AntiDetectionPolicy()), store=store)
        element = FakeElement()

        assert not await pipeline.try_ui_injection(element, "click.dispatchEvent", dispatch)

        assert element.calls == []
        assert pipeline.counts[AUDIT_BLOCKED] == 1
        keys = await store.list("audit/injection")
        assert len(keys) == 1
        assert keys[0].startswith("audit/injection/ui-injection-blocked-")
        record = await store.load(keys[0])
        assert record["label"] == "click.dispatchEvent"
        assert record["reason"] == "policy_denied"
        assert "ts" in record

    @pytest.mark.asyncio
    async def test_disabled_master_switch_blocks(self):
        policy = AntiDetectionPolicy(enabled=False, allow_ui_injection_fallback=True)
        pipeline = AuditedInjectionPipeline(AntiDetectionPolicyView(policy))

        assert not await pipeline.try_ui_injection(FakeElement(), "click.dispatchEvent", dispatch)

    @pytest.mark.asyncio
    async def test_executed(self, store):
        pipeline = AuditedInjectionPipeline(open_gate(), store=store)
        element = FakeElement()

        assert await pipeline.try_ui_injection(element, "click.dispatchEvent", dispatch)

        assert element.calls == ["dispatch"]
        assert pipeline.counts[AUDIT_EXECUTED] == 1
        keys = await store.list("audit/injection")
        assert keys[0].startswith("audit/injection/ui-injection-executed-")
        assert (await store.load(keys[0]))["ok"] is True

    @pytest.mark.asyncio
    async def test_failed_action_is_audited_not_raised(self, store):
        pipeline = AuditedInjectionPipeline(open_gate(), store=store)

        assert not await pipeline.try_ui_injection(FakeElement(), "click.dispatchEvent", explode)

        assert pipeline.counts[AUDIT_FAILED] == 1
        keys = await store.list("audit/injection")
        record = await store.load(keys[0])
        assert record["ok"] is False
        assert record["error"] == "element detached"

    @pytest.mark.asyncio
    async def test_audit_write_failure_does_not_block(self):
        store = MagicMock()
        store.save = AsyncMock(side_effect=PersistenceError("disk full"))
        pipeline = AuditedInjectionPipeline(open_gate(), store=store)

        assert await pipeline.try_ui_injection(FakeElement(), "click.dispatchEvent", dispatch)

    @pytest.mark.asyncio
    async def test_audit_mirrored_to_logger(self):
        audit_logger = MagicMock(spec=AuditLogger)
        pipeline = AuditedInjectionPipeline(open_gate(), audit_logger=audit_logger)

        await pipeline.try_ui_injection(FakeElement(), "click.dispatchEvent", dispatch)

        name, record = audit_logger.log_injection.call_args.args
        assert name == AUDIT_EXECUTED
        assert record["label"] == "click.dispatchEvent"


# =============================================================================
# Rate Limiter
# =============================================================================

class TestRateLimiter:
    """Token bucket throttling."""

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            InjectionRateLimiter(rate_per_second=0)
        with pytest.raises(ValueError):
            InjectionRateLimiter(burst=0)

    @pytest.mark.asyncio
    async def test_burst_then_throttle(self):
        fake = FakeTime()
        limiter = InjectionRateLimiter(rate_per_second=2.0, burst=2, clock=fake, sleep=fake.sleep)

        await limiter.acquire()
        await limiter.acquire()
        assert fake.sleeps == []

        await limiter.acquire()
        assert fake.sleeps == [pytest.approx(0.5)]

    @pytest.mark.asyncio
    async def test_refills_over_time(self):
        fake = FakeTime()
        limiter = InjectionRateLimiter(rate_per_second=1.0, burst=1, clock=fake, sleep=fake.sleep)

        await limiter.acquire()
        fake.now += 5.0
        await limiter.acquire()

        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_pipeline_waits_for_token(self):
        fake = FakeTime()
        limiter = InjectionRateLimiter(rate_per_second=1.0, burst=1, clock=fake, sleep=fake.sleep)
        pipeline = AuditedInjectionPipeline(open_gate(), rate_limiter=limiter)

        await asyncio.gather(*[
            pipeline.try_ui_injection(FakeElement(), "click.dispatchEvent", dispatch)
            for _ in range(3)
        ])

        assert pipeline.counts[AUDIT_EXECUTED] == 3
        assert sum(fake.sleeps) == pytest.approx(2.0)
