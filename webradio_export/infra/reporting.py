"""Reporting sinks receiving delivery outcomes for audit trails."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, Any

from .storage import SQLiteManager

if TYPE_CHECKING:  # pragma: no cover
    from ..engine.delivery import DeliveryResult


class ReportingSink(ABC):
    """Destination for :class:`DeliveryResult` values once a run is over."""

    @abstractmethod
    def report(self, result: "DeliveryResult") -> None:
        """Persist one delivery outcome."""

    def recent(self, profile_id: str, limit: int = 20) -> list[dict[str, Any]]:
        return []


class SQLiteReportingSink(ReportingSink):
    """Store each result as a JSON row in the history database."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def report(self, result: "DeliveryResult") -> None:
        payload = result.to_dict()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO delivery_reports(profile_id, trigger, status, station_count, started_at, finished_at, payload)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.profile_id,
                    result.trigger.value,
                    result.status.value,
                    result.station_count,
                    payload["started_at"],
                    payload["finished_at"],
                    json.dumps(payload, ensure_ascii=False),
                ),
            )
            self._conn.commit()

    def recent(self, profile_id: str, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT payload FROM delivery_reports WHERE profile_id = ? ORDER BY id DESC LIMIT ?",
                (profile_id, limit),
            )
            rows = cur.fetchall()
        return [json.loads(row["payload"]) for row in rows]


__all__ = ["ReportingSink", "SQLiteReportingSink"]
