"""
Audit Logger Tests

Tests the Supabase audit mirror with a mocked client.
"""

from unittest.mock import MagicMock, patch

from core.schemas.outputs import Adjustment
from persistence.audit_logger import AuditLogger


class TestAuditLogger:
    """Best-effort Supabase inserts."""

    def test_disabled_without_credentials(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)

        audit_logger = AuditLogger()

        assert not audit_logger.enabled
        audit_logger.log_injection("ui-injection-blocked", {"label": "x"})

    def test_client_created_from_env(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "service-key")

        with patch("persistence.audit_logger.create_client") as create_client:
            audit_logger = AuditLogger(environment="staging")

        create_client.assert_called_once_with("https://example.supabase.co", "service-key")
        assert audit_logger.enabled

    def test_adjustment_entry(self):
        client = MagicMock()
        audit_logger = AuditLogger(client=client, environment="staging")
        adjustment = Adjustment(context_id="ctx-1", workflow="Comment", reason="r")

        audit_logger.log_adjustment(adjustment, "20250101120000000.json")

        client.table.assert_called_once_with("antidetect_audit")
        row = client.table.return_value.insert.call_args.args[0]
        assert row["kind"] == "adjustment"
        assert row["event_id"].startswith("evt_")
        payload = row["payload"]
        assert payload["environment"] == "staging"
        assert payload["engine_version"] == AuditLogger.ENGINE_VERSION
        assert payload["file_name"] == "20250101120000000.json"
        assert payload["decision"]["context_id"] == "ctx-1"

    def test_insert_failure_is_swallowed(self):
        client = MagicMock()
        client.table.return_value.insert.return_value.execute.side_effect = RuntimeError("network down")
        audit_logger = AuditLogger(client=client)

        audit_logger.log_injection("ui-injection-executed", {"label": "click.dispatchEvent"})

        client.table.return_value.insert.return_value.execute.assert_called_once()
