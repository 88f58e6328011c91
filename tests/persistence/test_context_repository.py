"""
Context Repository Tests

Tests key layout, state round trips and manifest maintenance.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.config import OrchestratorSettings
from core.errors import PersistenceError
from core.schemas.outputs import Adjustment, PacingProfile
from persistence.context_repository import (
    ContextRepository,
    ContextState,
    sanitize_context_id,
    timestamp_file_name,
)
from tests.conftest import make_signal


@pytest.fixture
def repo(store):
    return ContextRepository(store, OrchestratorSettings(history_depth=3))


def adjustment_at(moment, profile=PacingProfile.NORMAL):
    return Adjustment(context_id="acct 7", issued_at=moment, pacing_profile=profile, reason="r")


class TestKeys:
    """Key builders and file names."""

    def test_sanitize(self):
        assert sanitize_context_id("acct:7/eu-west") == "acct_7_eu_west"

    def test_timestamp_file_name_has_milliseconds(self):
        moment = datetime(2025, 3, 4, 5, 6, 7, 891234, tzinfo=timezone.utc)
        assert timestamp_file_name(moment) == "20250304050607891.json"

    def test_keys(self, repo):
        assert repo.state_key("acct 7") == "antidetect/state/acct_7.json"
        assert repo.manifest_key("acct 7") == "antidetect/adjustments/acct_7/manifest.json"


class TestStateRoundTrip:
    """ContextState save / load."""

    @pytest.mark.asyncio
    async def test_round_trip(self, repo):
        state = ContextState(context_id="acct 7", workflow="Comment", signals=[make_signal("acct 7")])

        await repo.save_state(state)
        loaded = await repo.load_state("acct 7")

        assert loaded.model_dump() == state.model_dump()
        assert loaded is not state

    @pytest.mark.asyncio
    async def test_unknown_context(self, repo):
        assert await repo.load_state("never") is None

    @pytest.mark.asyncio
    async def test_malformed_state_rejected(self, repo, store):
        await store.save(repo.state_key("bad"), {"context_id": "bad", "smoothed_human_like_score": 7})

        with pytest.raises(PersistenceError):
            await repo.load_state("bad")


class TestManifest:
    """Adjustment documents and newest-first manifest."""

    @pytest.mark.asyncio
    async def test_artifacts_written_and_capped(self, repo, store):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        names = []
        for i in range(4):
            names.append(await repo.write_adjustment_artifacts(adjustment_at(start + timedelta(minutes=i))))

        manifest = await repo.load_manifest("acct 7")

        assert [item.file_name for item in manifest.items] == list(reversed(names))[:3]
        assert manifest.latest.issued_at == start + timedelta(minutes=3)
        # every adjustment document stays on disk even when it drops off the manifest
        assert len(await store.list("antidetect/adjustments/acct_7")) == 5
