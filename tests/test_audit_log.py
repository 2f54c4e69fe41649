"""Tests for the JSONL audit trail."""

import json
import logging
from datetime import datetime, timezone

from core.models import Position
from tests.helpers import make_token


def test_analysis_record(audit, caplog):
    with caplog.at_level(logging.INFO, logger="core.audit_log"):
        audit.log_analysis(
            token_count=2,
            top_tokens=[make_token("BONK", 9.1), make_token("WIF", 7.0)],
            duration_ms=120,
            mode="monitoring",
        )

    record = audit.get_recent(1)[0]
    assert record["type"] == "analysis"
    assert record["token_count"] == 2
    assert [t["symbol"] for t in record["top_tokens"]] == ["BONK", "WIF"]
    assert "ANALYSIS: 2 tokens in 120ms" in caplog.text


def test_trade_record(audit):
    position = Position(symbol="BONK", entry_price=0.00002, amount=0.1)
    audit.log_trade("buy", position, mode="trading")

    record = audit.get_recent(1, record_type="trade")[0]
    assert record["action"] == "buy"
    assert record["position"]["amount"] == 0.1


def test_shutdown_record(audit):
    positions = [Position(symbol="BONK", entry_price=1.0, amount=0.1)]
    audit.log_shutdown(positions, "stopped")

    record = audit.get_recent(1, record_type="shutdown")[0]
    assert record["open_positions"] == 1
    assert record["message"] == "stopped"


def test_explicit_timestamp(audit):
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    audit.log_shutdown([], "stopped", ts=ts)
    assert audit.get_recent(1)[0]["timestamp"] == "2024-01-01T00:00:00+00:00"


def test_recent_is_newest_first_and_filtered(audit):
    for i in range(3):
        audit.log_analysis(i, [], i, "monitoring")
    audit.log_shutdown([], "bye")

    analyses = audit.get_recent(10, record_type="analysis")
    assert [r["token_count"] for r in analyses] == [2, 1, 0]
    assert audit.get_recent(2)[0]["type"] == "shutdown"
    assert len(audit.get_recent(2)) == 2


def test_corrupt_lines_skipped(audit):
    audit.log_shutdown([], "first")
    with open(audit.audit_file, "a") as f:
        f.write("{not json\n")
    records = audit.get_recent(5)
    assert len(records) == 1


def test_missing_file(tmp_path):
    from core.audit_log import AuditLogger
    audit = AuditLogger(audit_file=str(tmp_path / "nested" / "audit.jsonl"))
    assert audit.get_recent() == []


def test_lines_are_json(audit):
    audit.log_analysis(0, [], 5, "monitoring")
    audit.log_shutdown([], "stopped")
    lines = audit.audit_file.read_text().splitlines()
    assert all(json.loads(line)["type"] for line in lines)
