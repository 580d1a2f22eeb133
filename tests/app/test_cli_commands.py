from __future__ import annotations

import json
import zipfile
from datetime import datetime
from types import SimpleNamespace

import pytest
from rich.console import Console
from typer.testing import CliRunner

from webradio_export.app import AppState, app
from webradio_export.engine import CredentialVault
from webradio_export.scheduler import ScheduleState

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("webradio_export.app.console", Console(width=200))


@pytest.fixture
def cli_home(project_home, monkeypatch: pytest.MonkeyPatch, sample_catalogue, make_profile, write_catalogue):
    monkeypatch.setenv("WEBRADIO_EXPORT_SECRET", "test-secret")
    write_catalogue(
        sample_catalogue(
            export_profiles=[
                make_profile(player_id="player-ios", auto_export={"enabled": True, "interval": "weekly", "dayOfWeek": 4}),
                make_profile("empty", name="Empty", genre_ids=["news"]),
            ]
        )
    )
    return project_home


def test_profile_list(cli_home) -> None:
    result = runner.invoke(app, ["profile", "list"])
    assert result.exit_code == 0, result.stdout
    assert "rock-profile" in result.stdout
    assert "weekly on Friday" in result.stdout
    assert "Radio One" in result.stdout


def test_profile_show_previews_stations(cli_home) -> None:
    result = runner.invoke(app, ["profile", "show", "rock-profile"])
    assert result.exit_code == 0, result.stdout
    assert "2 stations" in result.stdout
    assert "classic-rock" in result.stdout
    assert "smooth-jazz" not in result.stdout


def test_profile_export_success_and_history(cli_home, fake_ftp) -> None:
    result = runner.invoke(app, ["profile", "export", "rock-profile"])
    assert result.exit_code == 0, result.stdout
    assert "Export success for Rock Hits" in result.stdout
    assert fake_ftp.names() == ["exports/rock-hits/rock-hits-ios.json"]

    history = runner.invoke(app, ["profile", "history", "rock-profile"])
    assert history.exit_code == 0, history.stdout
    assert "manual" in history.stdout
    assert "success" in history.stdout


def test_profile_export_partial_keeps_zero_exit(cli_home, fake_ftp) -> None:
    fake_ftp.refuse_connect = True
    result = runner.invoke(app, ["profile", "export", "rock-profile"])
    assert result.exit_code == 0, result.stdout
    assert "Export partial" in result.stdout
    assert (cli_home / "data" / "exports" / "rock-hits-ios.json").exists()


def test_profile_export_rejections(cli_home) -> None:
    empty = runner.invoke(app, ["profile", "export", "empty"])
    assert empty.exit_code == 1
    assert "does not include any active stations" in empty.stdout

    missing = runner.invoke(app, ["profile", "export", "ghost"])
    assert missing.exit_code == 1
    assert "Export profile not found: ghost" in missing.stdout


def test_profile_bundle(cli_home, fake_ftp) -> None:
    assert runner.invoke(app, ["profile", "bundle", "rock-profile"]).exit_code == 1
    runner.invoke(app, ["profile", "export", "rock-profile"])
    target = cli_home / "rock.zip"
    result = runner.invoke(app, ["profile", "bundle", "rock-profile", "--output", str(target)])
    assert result.exit_code == 0, result.stdout
    with zipfile.ZipFile(target) as bundle:
        assert bundle.namelist() == ["rock-hits-ios.json"]


def test_player_test_reports_failures(cli_home, fake_ftp) -> None:
    fake_ftp.directories.add("exports")
    assert runner.invoke(app, ["player", "test", "player-ios"]).exit_code == 0
    fake_ftp.password = "rotated"
    failed = runner.invoke(app, ["player", "test", "player-ios"])
    assert failed.exit_code == 1
    assert "Connection failed" in failed.stdout
    assert runner.invoke(app, ["player", "test", "nobody"]).exit_code == 1


def test_secret_encrypt_uses_process_secret(cli_home) -> None:
    result = runner.invoke(app, ["secret", "encrypt", "hunter2"])
    assert result.exit_code == 0, result.stdout
    envelope = result.stdout.strip()
    assert CredentialVault("test-secret").decrypt(envelope) == "hunter2"


def test_secret_migrate(cli_home, make_player) -> None:
    path = cli_home / "data" / "catalogue.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    payload["playerApps"].append(make_player("legacy", ftp_password="plain").model_dump(by_alias=True, mode="json"))
    path.write_text(json.dumps(payload), encoding="utf-8")
    result = runner.invoke(app, ["secret", "migrate"])
    assert result.exit_code == 0, result.stdout
    assert "Encrypted 1 stored password" in result.stdout
    again = runner.invoke(app, ["secret", "migrate"])
    assert "already encrypted" in again.stdout


def test_scheduler_status_with_stub_state(monkeypatch: pytest.MonkeyPatch) -> None:
    status = SimpleNamespace(
        profile_id="rock-profile",
        profile_name="Rock Hits",
        cadence="daily at 09:00",
        state=ScheduleState.IDLE,
        period_key="2024-03-04",
        completed=True,
        next_run=datetime(2024, 3, 5, 9, 0),
        last_completed_at=datetime(2024, 3, 4, 9, 0),
    )
    jobs = [{"id": "export::tick", "next_run_time": "soon", "trigger": "interval[0:00:30]"}]
    state = AppState(
        repository=SimpleNamespace(),
        vault=SimpleNamespace(),
        scheduler=SimpleNamespace(list_jobs=lambda: jobs),
        service=SimpleNamespace(status=lambda: [status]),
        storage=SimpleNamespace(),
    )
    monkeypatch.setattr("webradio_export.app.build_state", lambda verbose: state)
    result = runner.invoke(app, ["scheduler", "status"])
    assert result.exit_code == 0, result.stdout
    assert "rock-profile" in result.stdout
    assert "2024-03-05 09:00" in result.stdout
    assert "export::tick" in result.stdout


def test_scheduler_tick_with_stub_state(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    state = AppState(
        repository=SimpleNamespace(),
        vault=SimpleNamespace(),
        scheduler=SimpleNamespace(),
        service=SimpleNamespace(tick=lambda: calls.append("tick") or []),
        storage=SimpleNamespace(),
    )
    monkeypatch.setattr("webradio_export.app.build_state", lambda verbose: state)
    result = runner.invoke(app, ["scheduler", "tick"])
    assert result.exit_code == 0, result.stdout
    assert calls == ["tick"]
    assert "No profile is due" in result.stdout


def test_log_commands(cli_home, fake_ftp) -> None:
    runner.invoke(app, ["profile", "export", "rock-profile"])
    listing = runner.invoke(app, ["log", "list"])
    assert listing.exit_code == 0, listing.stdout
    assert "rock-hits.log" in listing.stdout
    shown = runner.invoke(app, ["log", "show", "--profile", "rock-hits", "--tail", "5"])
    assert shown.exit_code == 0, shown.stdout
    assert "rock-hits.log" in shown.stdout
