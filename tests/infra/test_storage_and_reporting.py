from __future__ import annotations

from datetime import datetime

from webradio_export.engine import DeliveryResult, DeliveryStatus, ExportTrigger, FailureKind, FileDelivery
from webradio_export.infra import SQLiteManager, SQLiteReportingSink


def _result(profile_id: str, status: DeliveryStatus, minute: int) -> DeliveryResult:
    return DeliveryResult(
        profile_id=profile_id,
        profile_name=profile_id.title(),
        station_count=3,
        output_directory="/tmp/out",
        started_at=datetime(2024, 3, 4, 9, minute, 0),
        finished_at=datetime(2024, 3, 4, 9, minute, 5),
        status=status,
        trigger=ExportTrigger.SCHEDULE,
        files=[FileDelivery("a-ios.json", "ios", "/tmp/out/a-ios.json", ftp_uploaded=status is DeliveryStatus.SUCCESS)],
        failure=FailureKind.NETWORK if status is DeliveryStatus.PARTIAL else None,
    )


def test_sqlite_manager_initialises_schema(tmp_path) -> None:
    manager = SQLiteManager()
    conn = manager.connect(tmp_path / "nested" / "exports.db")
    runs = {row["name"] for row in conn.execute("PRAGMA table_info(export_runs)").fetchall()}
    reports = {row["name"] for row in conn.execute("PRAGMA table_info(delivery_reports)").fetchall()}
    assert {"profile_id", "period_key", "fingerprint", "status", "completed_at"} <= runs
    assert {"profile_id", "trigger", "status", "station_count", "payload"} <= reports
    assert manager.connect(tmp_path / "nested" / "exports.db") is conn


def test_sqlite_manager_reset(tmp_path) -> None:
    manager = SQLiteManager()
    path = tmp_path / "exports.db"
    conn = manager.connect(path)
    conn.execute(
        "INSERT INTO export_runs(profile_id, period_key, fingerprint, completed_at) VALUES ('p', 'k', 'f', 'now')"
    )
    conn.commit()
    manager.reset(path)
    assert not path.exists()
    conn = manager.connect(path)
    assert conn.execute("SELECT count(*) FROM export_runs").fetchone()[0] == 0
    manager.close_all()


def test_reporting_sink_returns_recent_results_first(tmp_path) -> None:
    sink = SQLiteReportingSink(SQLiteManager(), tmp_path / "exports.db")
    sink.report(_result("alpha", DeliveryStatus.SUCCESS, 0))
    sink.report(_result("alpha", DeliveryStatus.PARTIAL, 1))
    sink.report(_result("beta", DeliveryStatus.SUCCESS, 2))
    rows = sink.recent("alpha")
    assert [row["status"] for row in rows] == ["partial", "success"]
    assert rows[0]["failure"] == "network"
    assert rows[0]["files"][0] == {
        "file_name": "a-ios.json",
        "platform": "ios",
        "output_path": "/tmp/out/a-ios.json",
        "ftp_uploaded": False,
    }
    assert rows[1]["started_at"] == "2024-03-04T09:00:00"
    assert len(sink.recent("alpha", limit=1)) == 1
    assert sink.recent("missing") == []
