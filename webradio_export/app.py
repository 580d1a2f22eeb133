"""Typer CLI entrypoint for the webradio export engine."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, resolve_secret
from .engine import (
    CredentialVault,
    DeliveryClient,
    DeliveryResult,
    DeliveryStatus,
    ThreadPoolManager,
    describe_result,
)
from .errors import (
    CredentialError,
    ExportInProgress,
    ExportValidationError,
    NetworkError,
    NoActiveStations,
    PlayerNotFound,
    ProfileNotFound,
)
from .infra import SQLiteManager, SQLiteReportingSink
from .logging_conf import configure_logging, log_path, profile_log_files, tail_log
from .orchestrator import ExportService, ProfileStatus
from .scheduler import APSchedulerAdapter, RunHistory

app = typer.Typer(
    help="Webradio export engine: resolve profiles, build station feeds and deliver them.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
profile_app = typer.Typer(name="profile", help="Export profile commands", no_args_is_help=True, rich_markup_mode=None)
player_app = typer.Typer(name="player", help="Player app commands", no_args_is_help=True, rich_markup_mode=None)
secret_app = typer.Typer(name="secret", help="Credential vault commands", no_args_is_help=True, rich_markup_mode=None)
scheduler_app = typer.Typer(name="scheduler", help="Auto-export scheduler commands", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True, rich_markup_mode=None)

console = Console()

_STATUS_STYLES = {
    DeliveryStatus.SUCCESS: "green",
    DeliveryStatus.PARTIAL: "yellow",
    DeliveryStatus.FAILED: "red",
}


@dataclass
class AppState:
    repository: ConfigRepository
    vault: CredentialVault
    scheduler: APSchedulerAdapter
    service: ExportService
    storage: SQLiteManager


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    vault = CredentialVault(resolve_secret())
    storage = SQLiteManager()
    db_path = repository.reports_db_path()
    scheduler = APSchedulerAdapter()
    service = ExportService(
        config_repository=repository,
        delivery=DeliveryClient(vault, global_config.default_ftp_timeout_ms),
        history=RunHistory(storage, db_path),
        sink=SQLiteReportingSink(storage, db_path),
        scheduler=scheduler,
        thread_pool=ThreadPoolManager(global_config.thread_pool_workers),
    )
    return AppState(repository=repository, vault=vault, scheduler=scheduler, service=service, storage=storage)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_moment(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _render_profiles_table(statuses: Sequence[ProfileStatus], players: dict[str, str]) -> Table:
    table = Table(title=f"Export profiles · {len(statuses)} total", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Player", style="magenta")
    table.add_column("Cadence", style="yellow")
    table.add_column("State", style="green")
    table.add_column("Next run")
    for status in statuses:
        table.add_row(
            status.profile_id,
            status.profile_name,
            players.get(status.profile_id, "-"),
            status.cadence,
            status.state.value,
            _format_moment(status.next_run),
        )
    return table


def _render_jobs_table(jobs: Iterable[dict]) -> Table:
    table = Table(title="Scheduler jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(str(job.get("id", "-")), str(job.get("next_run_time", "-")), str(job.get("trigger", "-")))
    return table


def _print_result(result: DeliveryResult) -> None:
    style = _STATUS_STYLES.get(result.status, "white")
    lines = describe_result(result)
    console.print(lines[0], style=style)
    for line in lines[1:]:
        console.print(line, style="dim")


app.add_typer(profile_app, name="profile", help="List, preview and export profiles")
app.add_typer(player_app, name="player", help="Check player FTP credentials")
app.add_typer(secret_app, name="secret", help="Encrypt values and migrate stored passwords")
app.add_typer(scheduler_app, name="scheduler", help="Run or inspect the auto-export scheduler")
app.add_typer(log_app, name="log", help="Inspect log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


# ----------------------------------------------------------------------
# profile
# ----------------------------------------------------------------------
@profile_app.command("list", help="List export profiles with their cadence and scheduler state.")
def profile_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    catalogue = state.repository.load_catalogue()
    if not catalogue.export_profiles:
        console.print(f"No export profiles in {state.repository.catalogue_path()}.", style="yellow")
        raise typer.Exit(code=0)
    players = {}
    for profile in catalogue.export_profiles:
        player = catalogue.player(profile.player_id)
        if player is not None:
            players[profile.id] = player.name or player.id
    console.print(_render_profiles_table(state.service.status(), players))


@profile_app.command("show", help="Preview the stations a profile resolves to.")
def profile_show(
    ctx: typer.Context,
    profile_id: str = typer.Argument(..., help="Export profile id."),
    limit: int = typer.Option(50, "--limit", help="Maximum number of stations to display."),
) -> None:
    state = _get_state(ctx)
    try:
        profile, stations = state.service.preview(profile_id)
    except ProfileNotFound as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    console.print(f"{profile.name or profile.id}: {len(stations)} stations · {profile.auto_export.describe()}", style="cyan")
    if not stations:
        console.print("No active stations match this profile.", style="yellow")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Genre", style="magenta")
    table.add_column("Active", style="green")
    table.add_column("Stream", overflow="fold")
    for station in stations[:limit]:
        table.add_row(station.id, station.name, station.genre_id or "-", "yes" if station.is_active else "no", station.stream_url)
    console.print(table)
    if len(stations) > limit:
        console.print(f"... {len(stations) - limit} more", style="dim")


@profile_app.command("export", help="Export a profile now, bypassing the schedule.")
def profile_export(ctx: typer.Context, profile_id: str = typer.Argument(..., help="Export profile id.")) -> None:
    state = _get_state(ctx)
    try:
        result = state.service.export_now(profile_id)
    except ProfileNotFound as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    except ExportInProgress as exc:
        console.print(str(exc), style="yellow")
        raise typer.Exit(code=1)
    except NoActiveStations as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    _print_result(result)
    if result.status is DeliveryStatus.FAILED:
        raise typer.Exit(code=1)


@profile_app.command("history", help="Show recent delivery reports for a profile.")
def profile_history(
    ctx: typer.Context,
    profile_id: str = typer.Argument(..., help="Export profile id."),
    limit: int = typer.Option(20, "--limit", help="Number of reports to display."),
) -> None:
    state = _get_state(ctx)
    try:
        rows = state.service.view_history(profile_id, limit=limit)
    except ProfileNotFound as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    if not rows:
        console.print("No delivery reports yet.", style="dim")
        return
    table = Table(title=f"{profile_id} · last {len(rows)} deliveries", box=box.SIMPLE_HEAD)
    table.add_column("Finished", style="green")
    table.add_column("Trigger", style="magenta")
    table.add_column("Status")
    table.add_column("Stations", justify="right")
    table.add_column("Uploaded", justify="right")
    table.add_column("Error", overflow="fold")
    for row in rows:
        files = row.get("files", [])
        uploaded = sum(1 for item in files if item.get("ftp_uploaded"))
        table.add_row(
            str(row.get("finished_at", "-")),
            str(row.get("trigger", "-")),
            str(row.get("status", "-")),
            str(row.get("station_count", 0)),
            f"{uploaded}/{len(files)}",
            str(row.get("error") or ""),
        )
    console.print(table)


@profile_app.command("bundle", help="Zip the exported files of a profile.")
def profile_bundle(
    ctx: typer.Context,
    profile_id: str = typer.Argument(..., help="Export profile id."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Archive path (defaults to <output dir>/<slug>.zip)."),
) -> None:
    state = _get_state(ctx)
    try:
        archive = state.service.bundle(profile_id, destination=output)
    except (ProfileNotFound, ExportValidationError) as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    console.print(f"Bundle written to {archive}", style="green")


@profile_app.command("reset", help="Forget scheduled completions so the current period fires again.")
def profile_reset(
    ctx: typer.Context,
    profile_id: str = typer.Argument(..., help="Export profile id."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Reset the schedule history of `{profile_id}`?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    try:
        removed = state.service.reset_schedule(profile_id)
    except ProfileNotFound as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    console.print(f"Removed {removed} completion record(s) for `{profile_id}`.", style="green")


# ----------------------------------------------------------------------
# player
# ----------------------------------------------------------------------
@player_app.command("test", help="Log in to a player's FTP server and list its directory.")
def player_test(ctx: typer.Context, player_id: str = typer.Argument(..., help="Player app id.")) -> None:
    state = _get_state(ctx)
    try:
        entries = state.service.test_player(player_id)
    except PlayerNotFound as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    except CredentialError as exc:
        console.print(f"Credentials unusable: {exc}", style="red")
        raise typer.Exit(code=1)
    except NetworkError as exc:
        console.print(f"Connection failed: {exc}", style="red")
        raise typer.Exit(code=1)
    console.print(f"Connected. {len(entries)} entries in the remote directory.", style="green")
    for entry in entries:
        console.print(f"  {entry}", style="dim")


# ----------------------------------------------------------------------
# secret
# ----------------------------------------------------------------------
@secret_app.command("encrypt", help="Encrypt a value with the process secret.")
def secret_encrypt(
    ctx: typer.Context,
    value: Optional[str] = typer.Argument(None, help="Plaintext to encrypt (prompted when omitted)."),
) -> None:
    state = _get_state(ctx)
    if value is None:
        value = typer.prompt("Value", hide_input=True)
    console.print(state.vault.encrypt(value), soft_wrap=True)


@secret_app.command("migrate", help="Encrypt plaintext FTP passwords stored in the catalogue.")
def secret_migrate(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    changed = state.repository.migrate_credentials(state.vault)
    if changed:
        console.print(f"Encrypted {changed} stored password(s).", style="green")
    else:
        console.print("All stored passwords are already encrypted.", style="dim")


# ----------------------------------------------------------------------
# scheduler
# ----------------------------------------------------------------------
@scheduler_app.command("run", help="Start the scheduler and block until interrupted.")
def scheduler_run(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    for result in state.service.tick():
        _print_result(result)
    state.service.register_schedule()
    console.print(
        f"Scheduler running every {state.service.global_config.tick_seconds:g}s. Press Ctrl+C to stop.",
        style="cyan",
    )
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping scheduler...", style="yellow")
    finally:
        state.service.shutdown()


@scheduler_app.command("tick", help="Evaluate every profile once and run the due ones.")
def scheduler_tick(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    results = state.service.tick()
    if not results:
        console.print("No profile is due.", style="dim")
        return
    for result in results:
        _print_result(result)


@scheduler_app.command("status", help="Show the scheduler state of every profile.")
def scheduler_status(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    statuses = state.service.status()
    if not statuses:
        console.print("No export profiles configured.", style="yellow")
        raise typer.Exit(code=0)
    table = Table(title="Auto-export", box=box.SIMPLE_HEAD)
    table.add_column("Profile", style="cyan", no_wrap=True)
    table.add_column("Cadence", style="yellow")
    table.add_column("Period")
    table.add_column("State", style="green")
    table.add_column("Last completed")
    table.add_column("Next run")
    for status in statuses:
        table.add_row(
            status.profile_id,
            status.cadence,
            status.period_key or "-",
            status.state.value,
            _format_moment(status.last_completed_at),
            _format_moment(status.next_run),
        )
    console.print(table)
    jobs = state.scheduler.list_jobs()
    if jobs:
        console.print(_render_jobs_table(jobs))


# ----------------------------------------------------------------------
# log
# ----------------------------------------------------------------------
@log_app.command("list", help="List the available profile log files.")
def log_list() -> None:
    logs = profile_log_files()
    if not logs:
        console.print("No profile logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    profile: Optional[str] = typer.Option(None, "--profile", help="Profile slug (global log when omitted)."),
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log.", is_flag=True),
) -> None:
    path = log_path(profile, errors=errors)
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
