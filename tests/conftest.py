"""Shared fixtures: isolated project home, catalogue builders, fake clock and fake FTP."""

from __future__ import annotations

import ftplib
import posixpath
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from webradio_export.config import (
    Catalogue,
    ConfigLocator,
    ConfigRepository,
    ExportProfile,
    Genre,
    PlayerApp,
    Station,
)
from webradio_export.config.loader import SECRET_ENV_VARS
from webradio_export.engine import CredentialVault

FTP_PASSWORD = "s3cret-pass"


class FakeClock:
    """Settable wall clock passed wherever a ``clock`` callable is expected."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeFtpServer:
    """In-memory FTP server state shared by every fake client connection."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.directories: set[str] = {""}
        self.connections: list["FakeFTP"] = []
        self.password = FTP_PASSWORD
        self.refuse_connect = False
        self.fail_after: int | None = None
        self.stored = 0
        self.before_store: Callable[[str], None] | None = None

    def names(self) -> list[str]:
        return sorted(self.files)


class FakeFTP:
    server: FakeFtpServer

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self.host: str | None = None
        self.port: int | None = None
        self.user: str | None = None
        self.cwd_path = ""
        self.protected = False
        self.closed = False
        self.server.connections.append(self)

    def connect(self, host: str, port: int = 21) -> str:
        self.host, self.port = host, port
        if self.server.refuse_connect:
            raise ConnectionRefusedError(111, "Connection refused")
        return "220 welcome"

    def login(self, user: str = "", passwd: str = "") -> str:
        if passwd != self.server.password:
            raise ftplib.error_perm("530 Login incorrect.")
        self.user = user
        return "230 Login successful."

    def prot_p(self) -> str:
        self.protected = True
        return "200 PROT now Private."

    def cwd(self, dirname: str) -> str:
        target = posixpath.join(self.cwd_path, dirname).strip("/")
        if target not in self.server.directories:
            raise ftplib.error_perm("550 Failed to change directory.")
        self.cwd_path = target
        return "250 OK"

    def mkd(self, dirname: str) -> str:
        target = posixpath.join(self.cwd_path, dirname).strip("/")
        self.server.directories.add(target)
        return target

    def storbinary(self, cmd: str, fp) -> str:  # noqa: ANN001
        name = cmd.split(" ", 1)[1]
        if self.server.before_store is not None:
            self.server.before_store(name)
        if self.server.fail_after is not None and self.server.stored >= self.server.fail_after:
            raise TimeoutError("timed out")
        self.server.files[posixpath.join(self.cwd_path, name).strip("/")] = fp.read()
        self.server.stored += 1
        return "226 Transfer complete."

    def nlst(self, *args: str) -> list[str]:
        prefix = f"{self.cwd_path}/" if self.cwd_path else ""
        return sorted(
            path[len(prefix):] for path in self.server.files if path.startswith(prefix) and "/" not in path[len(prefix):]
        )

    def quit(self) -> str:
        self.closed = True
        return "221 Goodbye."

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_ftp(monkeypatch: pytest.MonkeyPatch) -> FakeFtpServer:
    server = FakeFtpServer()
    plain = type("FakePlainFTP", (FakeFTP,), {"server": server})
    tls = type("FakeTlsFTP", (FakeFTP,), {"server": server})
    monkeypatch.setattr(ftplib, "FTP", plain)
    monkeypatch.setattr(ftplib, "FTP_TLS", tls)
    return server


@pytest.fixture
def project_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("WEBRADIO_EXPORT_HOME", str(tmp_path))
    monkeypatch.delenv("EXPORT_OUTPUT_DIR", raising=False)
    for name in SECRET_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def temp_config_repository(project_home: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=project_home)
    yield ConfigRepository(locator)


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault("test-secret")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 4, 8, 0))


@pytest.fixture
def make_station() -> Callable[..., Station]:
    def _builder(station_id: str, **overrides: Any) -> Station:
        base: dict[str, Any] = {
            "id": station_id,
            "name": station_id.replace("-", " ").title(),
            "stream_url": f"https://streams.example.com/{station_id}",
            "genre_id": "rock",
            "sub_genres": [],
            "tags": [],
            "is_active": True,
        }
        base.update(overrides)
        return Station(**base)

    return _builder


@pytest.fixture
def make_player() -> Callable[..., PlayerApp]:
    def _builder(player_id: str = "player-ios", **overrides: Any) -> PlayerApp:
        base: dict[str, Any] = {
            "id": player_id,
            "name": "Radio One",
            "platform": "ios",
            "ftp_enabled": True,
            "ftp_server": "ftp.example.com/exports",
            "ftp_username": "uploader",
            "ftp_password": FTP_PASSWORD,
            "ftp_protocol": "ftp",
        }
        base.update(overrides)
        return PlayerApp(**base)

    return _builder


@pytest.fixture
def make_profile() -> Callable[..., ExportProfile]:
    def _builder(profile_id: str = "rock-profile", **overrides: Any) -> ExportProfile:
        base: dict[str, Any] = {
            "id": profile_id,
            "name": "Rock Hits",
            "genre_ids": ["rock"],
        }
        base.update(overrides)
        return ExportProfile(**base)

    return _builder


@pytest.fixture
def sample_catalogue(make_station, make_player, make_profile) -> Callable[..., Catalogue]:
    def _builder(**overrides: Any) -> Catalogue:
        base: dict[str, Any] = {
            "genres": [Genre(id="rock", name="Rock"), Genre(id="jazz", name="Jazz")],
            "stations": [
                make_station("classic-rock", name="Classic Rock", tags=["rock classics"]),
                make_station("indie-wave", name="Indie Wave", sub_genres=["Indie"]),
                make_station("smooth-jazz", name="Smooth Jazz", genre_id="jazz"),
            ],
            "player_apps": [make_player()],
            "export_profiles": [make_profile(player_id="player-ios")],
        }
        base.update(overrides)
        return Catalogue(**base)

    return _builder


@pytest.fixture
def write_catalogue(temp_config_repository: ConfigRepository, vault: CredentialVault) -> Callable[[Catalogue], Path]:
    def _write(catalogue: Catalogue) -> Path:
        return temp_config_repository.save_catalogue(catalogue, vault)

    return _write
