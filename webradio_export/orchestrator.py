"""Export service wiring resolution, artifact building, delivery and scheduling."""

from __future__ import annotations

import zipfile
from concurrent.futures import Future, as_completed
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Callable

from .config import Catalogue, ConfigRepository, ExportProfile, GlobalConfig, Station
from .engine import (
    ArtifactBuilder,
    DeliveryClient,
    DeliveryResult,
    DeliveryTarget,
    ExportTrigger,
    FailureKind,
    ThreadPoolManager,
    artifact_file_name,
    artifact_platforms,
    describe_result,
    resolve,
)
from .errors import ExportInProgress, ExportValidationError, NoActiveStations, PlayerNotFound
from .infra import ReportingSink
from .logging_conf import configure_logging, profile_logger
from .scheduler import (
    APSchedulerAdapter,
    RunHistory,
    ScheduleState,
    is_due,
    next_moment,
    period_key,
    schedule_state,
)


@dataclass(slots=True)
class ProfileStatus:
    """Scheduler view of one profile at a given moment."""

    profile_id: str
    profile_name: str
    cadence: str
    state: ScheduleState
    period_key: str | None
    completed: bool
    next_run: datetime | None
    last_completed_at: datetime | None


class ExportService:
    """Central coordinator for manual and scheduled exports.

    At most one delivery per profile runs at any time. A manual request for
    a busy profile is rejected with :class:`ExportInProgress`; a tick that
    finds a profile busy leaves it for the next tick.
    """

    def __init__(
        self,
        config_repository: ConfigRepository,
        delivery: DeliveryClient,
        history: RunHistory,
        sink: ReportingSink,
        scheduler: APSchedulerAdapter | None = None,
        thread_pool: ThreadPoolManager | None = None,
        builder: ArtifactBuilder | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self.delivery = delivery
        self.history = history
        self.sink = sink
        self.scheduler = scheduler
        self.thread_pool = thread_pool or ThreadPoolManager(self.global_config.thread_pool_workers)
        self.builder = builder or ArtifactBuilder()
        self.clock = clock
        self.logger = configure_logging().bind(component="export_service")
        self._locks: dict[str, Lock] = {}
        self._locks_guard = Lock()

    # ------------------------------------------------------------------
    def _profile_lock(self, profile_id: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(profile_id)
            if lock is None:
                lock = self._locks[profile_id] = Lock()
            return lock

    def is_running(self, profile_id: str) -> bool:
        return self._profile_lock(profile_id).locked()

    def preview(self, profile_id: str) -> tuple[ExportProfile, list[Station]]:
        """Resolved station set for a profile, without building or delivering."""

        catalogue = self.config_repository.load_catalogue()
        profile = catalogue.profile(profile_id)
        return profile, resolve(profile, catalogue.stations, catalogue.genres)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run_pipeline(self, profile: ExportProfile, catalogue: Catalogue, trigger: ExportTrigger) -> DeliveryResult:
        log = profile_logger(profile.slug).bind(trigger=trigger.value)
        stations = resolve(profile, catalogue.stations, catalogue.genres)
        log.info("profile_resolved", profile_id=profile.id, stations=len(stations))
        artifact = self.builder.build(
            stations,
            profile,
            genres=catalogue.genres,
            player=catalogue.player(profile.player_id),
        )
        target = DeliveryTarget(
            output_dir=self.config_repository.output_dir(),
            player=catalogue.player(profile.player_id),
            trigger=trigger,
            remote_subdirectory=artifact.slug,
        )
        result = self.delivery.deliver(artifact, target)
        for line in describe_result(result):
            log.info("delivery_summary", line=line)
        return result

    def _report(self, result: DeliveryResult) -> None:
        try:
            self.sink.report(result)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("report_failed", profile_id=result.profile_id, error=str(exc))

    def _rejected(self, profile: ExportProfile, error: Exception, started_at: datetime, trigger: ExportTrigger, failure: FailureKind) -> DeliveryResult:
        return DeliveryResult.rejected(
            profile.id,
            profile.name,
            self.config_repository.output_dir(),
            error,
            started_at=started_at,
            finished_at=self.clock(),
            trigger=trigger,
            failure=failure,
        )

    def export_now(self, profile_id: str) -> DeliveryResult:
        """Manual export; bypasses the schedule and never records period completion.

        Raises :class:`ProfileNotFound`, :class:`ExportInProgress` or
        :class:`NoActiveStations` to the caller.
        """

        catalogue = self.config_repository.load_catalogue()
        profile = catalogue.profile(profile_id)
        lock = self._profile_lock(profile.id)
        if not lock.acquire(blocking=False):
            self.logger.warning("manual_export_rejected", profile_id=profile.id, reason="in_progress")
            raise ExportInProgress(profile.id)
        started_at = self.clock()
        try:
            try:
                result = self._run_pipeline(profile, catalogue, ExportTrigger.MANUAL)
            except NoActiveStations as exc:
                self.logger.warning("manual_export_rejected", profile_id=profile.id, reason="no_active_stations")
                self._report(self._rejected(profile, exc, started_at, ExportTrigger.MANUAL, FailureKind.VALIDATION))
                raise
        finally:
            lock.release()
        self._report(result)
        return result

    def run_profile(self, profile: ExportProfile, catalogue: Catalogue, trigger: ExportTrigger = ExportTrigger.SCHEDULE) -> DeliveryResult:
        """Run the pipeline converting every error into a failed result."""

        started_at = self.clock()
        try:
            return self._run_pipeline(profile, catalogue, trigger)
        except NoActiveStations as exc:
            self.logger.warning("scheduled_export_rejected", profile_id=profile.id, error=str(exc))
            return self._rejected(profile, exc, started_at, trigger, FailureKind.VALIDATION)
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("scheduled_export_crashed", profile_id=profile.id, error=str(exc))
            return self._rejected(profile, exc, started_at, trigger, FailureKind.INTERNAL)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def _scheduled_run(self, profile: ExportProfile, catalogue: Catalogue, key: str, fingerprint: str, lock: Lock) -> DeliveryResult:
        try:
            result = self.run_profile(profile, catalogue, ExportTrigger.SCHEDULE)
            self.history.record_completion(profile.id, key, fingerprint, self.clock(), result.status.value)
        finally:
            lock.release()
        self._report(result)
        return result

    def tick(self, now: datetime | None = None) -> list[DeliveryResult]:
        """Evaluate every profile once and run the due ones concurrently."""

        now = now or self.clock()
        try:
            catalogue = self.config_repository.load_catalogue()
        except Exception as exc:  # noqa: BLE001
            self.logger.error("catalogue_load_failed", error=str(exc))
            return []

        futures: dict[Future[DeliveryResult], str] = {}
        for profile in catalogue.export_profiles:
            config = profile.auto_export
            if not config.enabled:
                continue
            key = period_key(config, now)
            fingerprint = config.fingerprint()
            try:
                completed = self.history.has_completed(profile.id, key, fingerprint)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("history_lookup_failed", profile_id=profile.id, error=str(exc))
                continue
            if not is_due(config, now, completed):
                continue
            lock = self._profile_lock(profile.id)
            if not lock.acquire(blocking=False):
                self.logger.info("profile_busy_skipped", profile_id=profile.id, period=key)
                continue
            self.logger.info("profile_due", profile_id=profile.id, period=key, cadence=config.describe())
            try:
                future = self.thread_pool.submit(self._scheduled_run, profile, catalogue, key, fingerprint, lock)
            except Exception:
                lock.release()
                raise
            futures[future] = profile.id

        results: list[DeliveryResult] = []
        for future in as_completed(futures):
            try:
                results.append(future.result())
            except Exception as exc:  # noqa: BLE001
                self.logger.error("profile_run_failed", profile_id=futures[future], error=str(exc))
        if futures:
            self.logger.info("tick_completed", triggered=len(futures), delivered=len(results))
        return results

    def register_schedule(self) -> None:
        if self.scheduler is None:
            raise RuntimeError("No scheduler configured")
        self.scheduler.schedule_tick(self.tick, self.global_config.tick_seconds)
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()
        self.thread_pool.shutdown(wait=True)

    def profile_status(self, profile: ExportProfile, now: datetime | None = None) -> ProfileStatus:
        now = now or self.clock()
        config = profile.auto_export
        last = self.history.last_completion(profile.id)
        key = period_key(config, now) if config.enabled else None
        completed = bool(key) and self.history.has_completed(profile.id, key, config.fingerprint())
        return ProfileStatus(
            profile_id=profile.id,
            profile_name=profile.name,
            cadence=config.describe(),
            state=schedule_state(config, now, completed, self.is_running(profile.id)),
            period_key=key,
            completed=completed,
            next_run=next_moment(config, now, completed) if config.enabled else None,
            last_completed_at=last[1] if last else None,
        )

    def status(self, now: datetime | None = None) -> list[ProfileStatus]:
        now = now or self.clock()
        catalogue = self.config_repository.load_catalogue()
        return [self.profile_status(profile, now) for profile in catalogue.export_profiles]

    # ------------------------------------------------------------------
    # History and downloads
    # ------------------------------------------------------------------
    def view_history(self, profile_id: str, limit: int = 20) -> list[dict]:
        self.config_repository.load_catalogue().profile(profile_id)
        return self.sink.recent(profile_id, limit)

    def reset_schedule(self, profile_id: str) -> int:
        """Forget period completions so the profile fires again this period."""

        self.config_repository.load_catalogue().profile(profile_id)
        return self.history.clear(profile_id)

    def exported_files(self, profile_id: str) -> list[Path]:
        catalogue = self.config_repository.load_catalogue()
        profile = catalogue.profile(profile_id)
        output_dir = self.config_repository.output_dir()
        candidates = (
            output_dir / artifact_file_name(profile.slug, platform)
            for platform in artifact_platforms(catalogue.player(profile.player_id))
        )
        return sorted(path for path in candidates if path.is_file())

    def bundle(self, profile_id: str, destination: Path | None = None) -> Path:
        """Zip the profile's exported files for download."""

        profile = self.config_repository.load_catalogue().profile(profile_id)
        files = self.exported_files(profile.id)
        if not files:
            raise ExportValidationError(f"No export files found for profile '{profile.name or profile.id}'.")
        archive = destination or self.config_repository.output_dir() / f"{profile.slug}.zip"
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
            for path in files:
                bundle.write(path, arcname=path.name)
        self.logger.info("profile_bundled", profile_id=profile.id, files=len(files), archive=str(archive))
        return archive

    def test_player(self, player_id: str) -> list[str]:
        catalogue = self.config_repository.load_catalogue()
        player = catalogue.player(player_id)
        if player is None:
            raise PlayerNotFound(player_id)
        return self.delivery.test_connection(player)


__all__ = ["ExportService", "ProfileStatus"]
