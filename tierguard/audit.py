"""Audit log for tierguard operations.

Every mutating operation (approve, sync, reset, init) records an entry as
newline-delimited JSON in daily files under ``.tierguard/audit/``.
"""

from __future__ import annotations

import getpass
import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


@dataclass
class AuditEntry:
    """A single audit log entry."""

    id: str
    timestamp: str
    actor: str
    action: str
    resource_type: str
    resource_id: str
    details: dict[str, Any] = field(default_factory=dict)
    success: bool = True


class AuditLogger:
    """File-based JSON audit logger."""

    def __init__(self, base_dir: Path, actor: Optional[str] = None) -> None:
        self._base_dir = Path(base_dir)
        self._actor = actor

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log_file_for_date(self, dt: datetime) -> Path:
        return self._base_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    def _current_actor(self) -> str:
        if self._actor:
            return self._actor
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            return "unknown"

    def _read_all_entries(self) -> list[AuditEntry]:
        entries: list[AuditEntry] = []
        if not self._base_dir.is_dir():
            return entries
        for path in sorted(self._base_dir.glob("*.jsonl")):
            for line in path.read_text(encoding="utf-8").splitlines():
                if line.strip():
                    entries.append(AuditEntry(**json.loads(line)))
        return entries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_event(
        self,
        action: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
        resource_type: str = "workspace",
        success: bool = True,
    ) -> AuditEntry:
        """Record an audit event and return the created entry."""
        now = datetime.now(timezone.utc)
        entry = AuditEntry(
            id=uuid.uuid4().hex[:16],
            timestamp=now.isoformat(),
            actor=self._current_actor(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            success=success,
        )
        self._base_dir.mkdir(parents=True, exist_ok=True)
        with self._log_file_for_date(now).open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry), default=str) + "\n")
        return entry

    def get_events(
        self,
        *,
        action: Optional[str] = None,
        success: Optional[bool] = None,
        limit: int = 200,
    ) -> list[AuditEntry]:
        """Return filtered audit events, newest first."""
        entries = self._read_all_entries()
        if action:
            entries = [e for e in entries if e.action == action]
        if success is not None:
            entries = [e for e in entries if e.success == success]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]
