"""
Audit Logger

Structured records of analysis results, trades and shutdowns, one JSON
object per line. Leveled text logging stays on the stdlib `logging` module;
this file is the machine-readable trail next to it.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from core.models import Position, ScoredToken

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    JSONL audit trail.

    Record types:
    - analysis: token count, top tokens, cycle duration
    - trade: one opened or closed position
    - shutdown: open positions left when the bot stopped

    Writes are serialized with a lock because cycles may overlap.
    """

    def __init__(self, audit_file: Optional[str] = None):
        """
        Args:
            audit_file: Path to audit log file (default: logs/bot_audit.jsonl)
        """
        self.audit_file = Path(audit_file) if audit_file else Path("logs/bot_audit.jsonl")
        self.audit_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info(f"Initialized AuditLogger at {self.audit_file}")

    def _write(self, record_type: str, payload: Dict[str, Any], ts: Optional[datetime] = None) -> None:
        entry = {
            "type": record_type,
            "timestamp": (ts or datetime.now(timezone.utc)).isoformat(),
            **payload,
        }
        try:
            line = json.dumps(entry)
            with self._lock:
                with open(self.audit_file, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write audit log: {e}")

    def log_analysis(self, token_count: int, top_tokens: Sequence[ScoredToken],
                     duration_ms: int, mode: str, ts: Optional[datetime] = None) -> None:
        top = [t.to_dict() for t in top_tokens]
        logger.info(
            f"ANALYSIS: {token_count} tokens in {duration_ms}ms"
            + (f", top: {', '.join(f'{t.symbol}({t.score:.2f})' for t in top_tokens)}" if top_tokens else "")
        )
        self._write("analysis", {
            "mode": mode,
            "token_count": token_count,
            "duration_ms": duration_ms,
            "top_tokens": top,
        }, ts)

    def log_trade(self, action: str, position: Position, mode: str,
                  ts: Optional[datetime] = None) -> None:
        logger.info(f"TRADE: {action.upper()} {position.symbol} @ ${position.entry_price}, amount: {position.amount}")
        self._write("trade", {
            "mode": mode,
            "action": action,
            "position": position.to_dict(),
        }, ts)

    def log_shutdown(self, open_positions: Sequence[Position], message: str,
                     ts: Optional[datetime] = None) -> None:
        self._write("shutdown", {
            "message": message,
            "open_positions": len(open_positions),
            "positions": [p.to_dict() for p in open_positions],
        }, ts)

    def get_recent(self, n: int = 10, record_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Get the N most recent records (most recent first).

        Args:
            n: Number of records to retrieve
            record_type: Only return records of this type
        """
        if not self.audit_file.exists():
            return []

        try:
            with open(self.audit_file, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            logger.error(f"Failed to read audit log: {e}")
            return []

        records = []
        for line in reversed(lines):
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if record_type and record.get("type") != record_type:
                continue
            records.append(record)
            if len(records) >= n:
                break
        return records
