"""Upload artifact files to a player's FTP/FTPS endpoint."""

from __future__ import annotations

import ftplib
import io
import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from ...config import FtpProtocol, PlayerApp, sanitize_timeout
from ...config.models import DEFAULT_FTP_TIMEOUT_MS
from ...errors import CredentialError, NetworkError
from .base import BaseExporter

if TYPE_CHECKING:  # pragma: no cover
    from ..artifact import ArtifactFile
    from ..vault import CredentialVault

DEFAULT_FTP_PORT = 21
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def _segments(path: str) -> tuple[str, ...]:
    if not path:
        return ()
    normalized = posixpath.normpath(path)
    return tuple(part.strip() for part in normalized.split("/") if part.strip() and part != ".")


@dataclass(slots=True)
class FtpSettings:
    """Normalised connection settings; the password is already decrypted."""

    host: str
    username: str
    password: str = field(repr=False)
    protocol: FtpProtocol = FtpProtocol.FTP
    port: int | None = None
    base_segments: tuple[str, ...] = ()
    timeout_ms: int = DEFAULT_FTP_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return max(1.0, self.timeout_ms / 1000)

    @property
    def address(self) -> str:
        return f"{self.protocol.value}://{self.host}:{self.port or DEFAULT_FTP_PORT}"


def parse_ftp_server(server: str, protocol: FtpProtocol) -> tuple[str, int | None, tuple[str, ...]]:
    """Split ``host[:port][/base/dir]`` (optionally with a scheme) into parts."""

    trimmed = (server or "").strip()
    if not trimmed:
        raise CredentialError("FTP server is required.")
    candidate = trimmed if _SCHEME.match(trimmed) else f"{protocol.value}://{trimmed}"
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise CredentialError("FTP server value is not a valid URL.") from exc
    if parts.scheme.lower() not in {item.value for item in FtpProtocol}:
        raise CredentialError(f"Unsupported transfer protocol: {parts.scheme}")
    if parts.username or parts.password:
        raise CredentialError("Remove embedded credentials from the FTP server value.")
    host = (parts.hostname or "").strip()
    if not host:
        raise CredentialError("FTP server host is required.")
    return host, port, _segments(parts.path)


def normalize_ftp_settings(
    player: PlayerApp,
    vault: "CredentialVault",
    default_timeout_ms: int = DEFAULT_FTP_TIMEOUT_MS,
) -> FtpSettings:
    """Build settings for ``player`` or raise :class:`CredentialError`."""

    host, port, base_segments = parse_ftp_server(player.ftp_server, player.ftp_protocol)
    if not player.ftp_username:
        raise CredentialError("FTP username is required.")
    if not player.ftp_password:
        raise CredentialError("FTP password is required.")
    password = vault.decrypt(player.ftp_password)
    if not password:
        raise CredentialError("FTP password is required.")
    return FtpSettings(
        host=host,
        username=player.ftp_username,
        password=password,
        protocol=player.ftp_protocol,
        port=port,
        base_segments=base_segments,
        timeout_ms=sanitize_timeout(player.ftp_timeout, default_timeout_ms),
    )


class FtpExporter(BaseExporter):
    """Upload artifact files, connecting lazily on the first export.

    Every transport failure is raised as :class:`NetworkError`; ``uploaded``
    keeps the names of the files that made it before the failure.
    """

    def __init__(self, settings: FtpSettings, remote_subdirectory: str = "") -> None:
        self.settings = settings
        self.remote_segments = settings.base_segments + _segments(remote_subdirectory)
        self.uploaded: list[str] = []
        self._client: ftplib.FTP | None = None

    def connect(self) -> ftplib.FTP:
        if self._client is not None:
            return self._client
        settings = self.settings
        client: ftplib.FTP | None = None
        try:
            if settings.protocol is FtpProtocol.FTPS:
                client = ftplib.FTP_TLS(timeout=settings.timeout_seconds)
            else:
                client = ftplib.FTP(timeout=settings.timeout_seconds)
            client.connect(settings.host, settings.port or DEFAULT_FTP_PORT)
            client.login(settings.username, settings.password)
            if isinstance(client, ftplib.FTP_TLS):
                client.prot_p()
        except ftplib.all_errors as exc:
            if client is not None:
                client.close()
            raise NetworkError(settings.host, exc) from exc
        self._client = client
        return client

    def _enter_remote_directory(self, client: ftplib.FTP) -> None:
        for segment in self.remote_segments:
            try:
                client.cwd(segment)
            except ftplib.error_perm:
                client.mkd(segment)
                client.cwd(segment)

    def export(self, item: "ArtifactFile") -> str:
        first = self._client is None
        client = self.connect()
        try:
            if first:
                self._enter_remote_directory(client)
            client.storbinary(f"STOR {item.file_name}", io.BytesIO(item.render().encode("utf-8")))
        except ftplib.all_errors as exc:
            raise NetworkError(self.settings.host, exc) from exc
        self.uploaded.append(item.file_name)
        remote = "/".join((*self.remote_segments, item.file_name))
        return f"{self.settings.address}/{remote}"

    def list_directory(self) -> list[str]:
        client = self.connect()
        try:
            for segment in self.remote_segments:
                client.cwd(segment)
            return client.nlst()
        except ftplib.all_errors as exc:
            raise NetworkError(self.settings.host, exc) from exc

    def flush(self) -> None:
        return

    def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            client.quit()
        except ftplib.all_errors:
            client.close()


__all__ = ["FtpExporter", "FtpSettings", "normalize_ftp_settings", "parse_ftp_server"]
