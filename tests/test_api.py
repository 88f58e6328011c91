"""
API Endpoint Tests

Tests for FastAPI endpoints using TestClient with a file-backed store in
a temporary directory. The Supabase audit mirror is disabled by clearing
its credentials.
"""

import pytest
from fastapi.testclient import TestClient

from main import app


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client(tmp_path, monkeypatch):
    """TestClient for FastAPI app with lifespan context."""
    monkeypatch.setenv("ANTIDETECT_STORE_BACKEND", "file")
    monkeypatch.setenv("ANTIDETECT_STORE_ROOT", str(tmp_path / "store"))
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")
    with TestClient(app) as client:
        yield client


def signal_body(context_id="acct-1", **counters):
    body = {
        "context_id": context_id,
        "workflow": "Comment",
        "total_interactions": 100,
    }
    body.update(counters)
    return body


# =============================================================================
# Health Check Tests
# =============================================================================

class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_200(self, client):
        """Health endpoint should return 200."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_root_redirects_to_docs(self, client):
        response = client.get("/", follow_redirects=False)
        assert response.status_code in (302, 307)
        assert response.headers["location"] == "/docs"


# =============================================================================
# Signal Tests
# =============================================================================

class TestSignalEndpoint:
    """POST /signals."""

    def test_clean_signal(self, client):
        """A clean window returns a Normal adjustment."""
        response = client.post("/signals", json=signal_body())
        assert response.status_code == 200

        data = response.json()
        assert data["pacing_profile"] == "Normal"
        assert data["confidence"] == 1.0
        assert data["context_id"] == "acct-1"

    def test_escalation(self, client):
        response = client.post("/signals", json=signal_body(http_403=5))

        data = response.json()
        assert data["pacing_profile"] == "Conservative"
        assert data["rotate_fingerprint"] is True

    def test_blank_context_id_is_422(self, client):
        response = client.post("/signals", json=signal_body(context_id="  "))
        assert response.status_code == 422

    def test_negative_counter_is_422(self, client):
        response = client.post("/signals", json=signal_body(http_429=-3))
        assert response.status_code == 422


# =============================================================================
# Context Query Tests
# =============================================================================

class TestContextEndpoints:
    """GET /contexts/{id}/state and /adjustments."""

    def test_state_after_signal(self, client):
        client.post("/signals", json=signal_body(human_like_score=0.5))

        response = client.get("/contexts/acct-1/state")
        assert response.status_code == 200

        data = response.json()
        assert len(data["signals"]) == 1
        assert data["smoothed_human_like_score"] == pytest.approx(0.9)
        assert data["current_pacing"] == "Normal"

    def test_unknown_context_is_404(self, client):
        assert client.get("/contexts/nobody/state").status_code == 404

    def test_recent_adjustments(self, client):
        client.post("/signals", json=signal_body())
        client.post("/signals", json=signal_body(http_403=5))

        response = client.get("/contexts/acct-1/adjustments", params={"take": 5})
        assert response.status_code == 200

        profiles = [a["pacing_profile"] for a in response.json()]
        assert profiles == ["Conservative", "Normal"]

    def test_unknown_context_has_no_adjustments(self, client):
        response = client.get("/contexts/nobody/adjustments")
        assert response.status_code == 200
        assert response.json() == []

    def test_take_must_be_positive(self, client):
        assert client.get("/contexts/acct-1/adjustments", params={"take": 0}).status_code == 422


# =============================================================================
# Baseline Validation Tests
# =============================================================================

class TestBaselineEndpoint:
    """POST /baseline/validate."""

    def test_empty_whitelist_passes(self, client):
        response = client.post("/baseline/validate", json={"snapshot": {"webdriver": True}})
        assert response.status_code == 200
        assert response.json()["total_violations"] == 0

    def test_webdriver_violation(self, client):
        response = client.post("/baseline/validate", json={
            "snapshot": {"webdriver": True, "platform": "Win32"},
            "whitelist": {"allowedWebdrivers": [False], "maxViolations": 1},
        })

        data = response.json()
        assert data["violations"] == ["WEBDRIVER_NOT_ALLOWED"]
        assert data["degrade_recommended"] is True

    def test_unknown_whitelist_key_is_422(self, client):
        response = client.post("/baseline/validate", json={
            "snapshot": {},
            "whitelist": {"allowedPlatfroms": ["Win32"]},
        })
        assert response.status_code == 422
