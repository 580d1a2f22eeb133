"""Delivery client: local persistence first, then optional FTP upload."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import structlog

from ..config import PlayerApp
from ..config.models import DEFAULT_FTP_TIMEOUT_MS
from ..errors import CredentialError, FatalIOError, NetworkError
from ..logging_conf import configure_logging
from .artifact import Artifact
from .exporter import FileExporter, FtpExporter, normalize_ftp_settings
from .vault import CredentialVault


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ExportTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULE = "schedule"


class FailureKind(str, Enum):
    """Structured cause attached to non-successful results."""

    VALIDATION = "validation"
    CREDENTIAL = "credential"
    NETWORK = "network"
    IO = "io"
    INTERNAL = "internal"


@dataclass(slots=True)
class FileDelivery:
    file_name: str
    platform: str
    output_path: str
    ftp_uploaded: bool = False


@dataclass(slots=True)
class DeliveryTarget:
    """Where an artifact goes: the local directory plus the player's FTP endpoint."""

    output_dir: Path
    player: PlayerApp | None = None
    trigger: ExportTrigger = ExportTrigger.MANUAL
    remote_subdirectory: str = ""


@dataclass(slots=True)
class DeliveryResult:
    """Outcome of one resolve → build → deliver run."""

    profile_id: str
    profile_name: str
    station_count: int
    output_directory: str
    started_at: datetime
    finished_at: datetime
    status: DeliveryStatus
    trigger: ExportTrigger = ExportTrigger.MANUAL
    files: list[FileDelivery] = field(default_factory=list)
    error: str | None = None
    failure: FailureKind | None = None

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "profile_name": self.profile_name,
            "trigger": self.trigger.value,
            "station_count": self.station_count,
            "files": [
                {
                    "file_name": item.file_name,
                    "platform": item.platform,
                    "output_path": item.output_path,
                    "ftp_uploaded": item.ftp_uploaded,
                }
                for item in self.files
            ],
            "output_directory": self.output_directory,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "status": self.status.value,
            "error": self.error,
            "failure": self.failure.value if self.failure else None,
        }

    @classmethod
    def rejected(
        cls,
        profile_id: str,
        profile_name: str,
        output_directory: Path,
        error: Exception,
        started_at: datetime,
        finished_at: datetime,
        trigger: ExportTrigger = ExportTrigger.SCHEDULE,
        failure: FailureKind = FailureKind.VALIDATION,
    ) -> "DeliveryResult":
        """A failed result for runs that never reached the delivery client."""

        return cls(
            profile_id=profile_id,
            profile_name=profile_name,
            station_count=0,
            output_directory=str(output_directory),
            started_at=started_at,
            finished_at=finished_at,
            status=DeliveryStatus.FAILED,
            trigger=trigger,
            error=str(error),
            failure=failure,
        )


class DeliveryClient:
    """Write artifacts locally and push them to the player's FTP server.

    Only an unwritable output directory yields ``failed``. Credential and
    network problems downgrade the run to ``partial`` because the local
    files already exist. Nothing is retried within one call.
    """

    def __init__(
        self,
        vault: CredentialVault,
        default_timeout_ms: int = DEFAULT_FTP_TIMEOUT_MS,
        clock: Callable[[], datetime] = datetime.now,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.vault = vault
        self.default_timeout_ms = default_timeout_ms
        self.clock = clock
        self.logger = logger or configure_logging().bind(component="delivery")

    def deliver(self, artifact: Artifact, target: DeliveryTarget) -> DeliveryResult:
        started_at = self.clock()
        log = self.logger.bind(profile=artifact.slug, trigger=target.trigger.value)
        files: list[FileDelivery] = []

        def _finish(status: DeliveryStatus, error: str | None = None, failure: FailureKind | None = None) -> DeliveryResult:
            return DeliveryResult(
                profile_id=artifact.profile_id,
                profile_name=artifact.profile_name,
                station_count=artifact.station_count,
                output_directory=str(target.output_dir),
                started_at=started_at,
                finished_at=self.clock(),
                status=status,
                trigger=target.trigger,
                files=files,
                error=error,
                failure=failure,
            )

        try:
            local = FileExporter(target.output_dir)
            try:
                for item in artifact.files:
                    files.append(FileDelivery(item.file_name, item.platform, local.export(item)))
                local.flush()
            finally:
                local.close()
        except OSError as exc:
            fatal = FatalIOError(f"Cannot write export files to {target.output_dir}: {exc}")
            log.error(
                "local_write_failed",
                output_dir=str(target.output_dir),
                error_class=type(exc).__name__,
                error=str(exc),
            )
            return _finish(DeliveryStatus.FAILED, str(fatal), FailureKind.IO)
        log.info("local_write_completed", output_dir=str(target.output_dir), files=len(files))

        player = target.player
        if player is None or not player.ftp_enabled:
            return _finish(DeliveryStatus.SUCCESS)

        try:
            settings = normalize_ftp_settings(player, self.vault, self.default_timeout_ms)
        except CredentialError as exc:
            log.warning("ftp_credentials_unusable", player=player.id, error=str(exc))
            return _finish(DeliveryStatus.PARTIAL, str(exc), FailureKind.CREDENTIAL)

        uploader = FtpExporter(settings, target.remote_subdirectory)
        error: str | None = None
        try:
            uploader.export_many(artifact.files)
        except NetworkError as exc:
            error = str(exc)
            log.error(
                "ftp_upload_failed",
                host=settings.host,
                protocol=settings.protocol.value,
                timeout_ms=settings.timeout_ms,
                error_class=exc.error_class,
                uploaded=len(uploader.uploaded),
            )
        finally:
            uploader.close()

        uploaded = set(uploader.uploaded)
        for item in files:
            item.ftp_uploaded = item.file_name in uploaded
        if error is None and all(item.ftp_uploaded for item in files):
            log.info("ftp_upload_completed", host=settings.host, uploaded=len(uploaded))
            return _finish(DeliveryStatus.SUCCESS)
        return _finish(DeliveryStatus.PARTIAL, error, FailureKind.NETWORK)

    def test_connection(self, player: PlayerApp) -> list[str]:
        """Log in with the player's credentials and list the remote directory."""

        settings = normalize_ftp_settings(player, self.vault, self.default_timeout_ms)
        client = FtpExporter(settings)
        try:
            entries = client.list_directory()
        finally:
            client.close()
        self.logger.info("ftp_credentials_verified", player=player.id, host=settings.host)
        return entries


__all__ = [
    "DeliveryClient",
    "DeliveryResult",
    "DeliveryStatus",
    "DeliveryTarget",
    "ExportTrigger",
    "FailureKind",
    "FileDelivery",
]
