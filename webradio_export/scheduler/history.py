"""Run history store answering "did this profile already run this period"."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from threading import Lock

from ..infra.storage import SQLiteManager


class RunHistory:
    """Persist period completions keyed by profile, period and cadence fingerprint."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def has_completed(self, profile_id: str, period_key: str, fingerprint: str) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "SELECT 1 FROM export_runs WHERE profile_id = ? AND period_key = ? AND fingerprint = ?",
                (profile_id, period_key, fingerprint),
            )
            return cur.fetchone() is not None

    def record_completion(
        self,
        profile_id: str,
        period_key: str,
        fingerprint: str,
        completed_at: datetime,
        status: str | None = None,
    ) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO export_runs(profile_id, period_key, fingerprint, status, completed_at) VALUES (?, ?, ?, ?, ?)",
                (profile_id, period_key, fingerprint, status, completed_at.isoformat()),
            )
            self._conn.commit()

    def last_completion(self, profile_id: str) -> tuple[str, datetime] | None:
        """Most recent (period key, completion time) recorded for a profile."""

        with self._lock:
            cur = self._conn.execute(
                "SELECT period_key, completed_at FROM export_runs WHERE profile_id = ? ORDER BY completed_at DESC LIMIT 1",
                (profile_id,),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return row["period_key"], datetime.fromisoformat(row["completed_at"])

    def clear(self, profile_id: str | None = None) -> int:
        """Forget completions (one profile or all) so the current period fires again."""

        with self._lock:
            if profile_id is None:
                cur = self._conn.execute("DELETE FROM export_runs")
            else:
                cur = self._conn.execute("DELETE FROM export_runs WHERE profile_id = ?", (profile_id,))
            self._conn.commit()
            return cur.rowcount


__all__ = ["RunHistory"]
