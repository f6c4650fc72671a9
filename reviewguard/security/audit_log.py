"""Audit trail of review moderation decisions.

Every submission outcome (published, held, or rejected with its reason) is
appended as a JSON line to a daily file under
``~/.reviewguard/audit_logs/``.  Review bodies are never written here.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from reviewguard.moderation.models import SubmissionResult

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    """A single recorded moderation decision."""

    id: str
    timestamp: str
    broker_id: str
    author_id: str
    outcome: str  # "published" | "held" | a Rejection value
    review_id: str = ""
    details: dict[str, Any] = field(default_factory=dict)


def outcome_of(result: SubmissionResult) -> str:
    """Collapse a pipeline result into a single audit outcome label."""
    if result.success:
        return "held" if result.flagged else "published"
    return result.rejection.value if result.rejection else "rejected"


class AuditLogger:
    """File-based JSON-lines audit logger."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir or Path.home() / ".reviewguard" / "audit_logs"
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _current_log_file(self) -> Path:
        return self._base_dir / f"{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.jsonl"

    def _read_all_entries(self) -> list[AuditEntry]:
        entries: list[AuditEntry] = []
        for path in sorted(self._base_dir.glob("*.jsonl")):
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except OSError as exc:
                logger.warning("Skipping unreadable audit file %s: %s", path, exc)
                continue
            for line in lines:
                if not line.strip():
                    continue
                try:
                    entries.append(AuditEntry(**json.loads(line)))
                except (json.JSONDecodeError, TypeError) as exc:
                    logger.warning("Skipping malformed audit line in %s: %s", path, exc)
        return entries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_decision(
        self,
        broker_id: str,
        author_id: str,
        outcome: str,
        review_id: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        """Record a moderation decision and return the created entry."""
        entry = AuditEntry(
            id=uuid.uuid4().hex[:16],
            timestamp=datetime.now(timezone.utc).isoformat(),
            broker_id=broker_id,
            author_id=author_id,
            outcome=outcome,
            review_id=review_id,
            details=details or {},
        )
        with self._current_log_file().open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry)) + "\n")
        return entry

    def log_result(self, broker_id: str, author_id: str, result: SubmissionResult) -> AuditEntry:
        details: dict[str, Any] = dict(result.extra)
        if result.admin_notes:
            details["admin_notes"] = result.admin_notes
        return self.log_decision(
            broker_id,
            author_id,
            outcome_of(result),
            review_id=result.review_id or "",
            details=details,
        )

    def get_events(
        self,
        *,
        outcome: Optional[str] = None,
        broker_id: Optional[str] = None,
        limit: int = 200,
    ) -> list[AuditEntry]:
        """Return filtered audit events, newest first."""
        entries = self._read_all_entries()
        if outcome:
            entries = [e for e in entries if e.outcome == outcome]
        if broker_id:
            entries = [e for e in entries if e.broker_id == broker_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]
