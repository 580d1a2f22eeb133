"""Pydantic models describing the station catalogue and engine settings."""

from __future__ import annotations

import hashlib
import math
import re
from datetime import datetime, time as dt_time
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..errors import ProfileNotFound

DEFAULT_FTP_TIMEOUT_MS = 30_000
MIN_FTP_TIMEOUT_MS = 1_000
MAX_FTP_TIMEOUT_MS = 600_000
DEFAULT_EXPORT_TIME = "09:00"

_TIME_PATTERN = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")


def slugify_name(value: str, fallback: str = "") -> str:
    """Lower-case slug made of ``[a-z0-9-]``; ``fallback`` when nothing is left."""

    slug = re.sub(r"[^a-z0-9]+", "-", str(value or "").lower()).strip("-")
    return slug or fallback


def unique_strings(values: Iterable[Any] | None) -> list[str]:
    """Trim, drop blanks and deduplicate case-insensitively keeping first spelling."""

    seen: set[str] = set()
    result: list[str] = []
    for value in values or []:
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if not trimmed:
            continue
        key = trimmed.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(trimmed)
    return result


def sanitize_timeout(value: Any, default: int = DEFAULT_FTP_TIMEOUT_MS) -> int:
    """Coerce a millisecond timeout: invalid or non-positive -> default, else clamp."""

    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(numeric) or numeric <= 0:
        return default
    return int(min(max(round(numeric), MIN_FTP_TIMEOUT_MS), MAX_FTP_TIMEOUT_MS))


def normalize_platform(value: Any) -> str:
    """Platform key made of ``[a-z0-9]`` only; it ends up in artifact file names."""

    if not isinstance(value, str):
        return ""
    return re.sub(r"[^a-z0-9]+", "", value.lower())


class ExportInterval(str, Enum):
    """Cadences supported by auto-export."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class FtpProtocol(str, Enum):
    FTP = "ftp"
    FTPS = "ftps"


class ImaAdType(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"
    NO = "no"


class CatalogueModel(BaseModel):
    """Base for records stored in the catalogue file (camelCase on disk)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("id", mode="before", check_fields=False)
    @classmethod
    def _require_id(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("id cannot be empty")
        return text

    @field_validator("name", mode="before", check_fields=False)
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return str(value or "").strip()


class Genre(CatalogueModel):
    id: str
    name: str = ""
    sub_genres: list[str] = Field(default_factory=list)

    @field_validator("sub_genres", mode="before")
    @classmethod
    def _unique_sub_genres(cls, value: Any) -> list[str]:
        return unique_strings(value)


class Station(CatalogueModel):
    """A catalogue station; ``is_active`` is maintained by the stream monitor."""

    id: str
    name: str = ""
    stream_url: str = ""
    description: str = ""
    genre_id: str = ""
    sub_genres: list[str] = Field(default_factory=list)
    logo_url: str = ""
    bitrate: int = 128
    language: str = "en"
    region: str = "Global"
    tags: list[str] = Field(default_factory=list)
    ima_ad_type: ImaAdType = ImaAdType.NO
    is_active: bool = True
    is_favorite: bool = False

    @field_validator("stream_url", "description", "genre_id", "logo_url", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("language", mode="before")
    @classmethod
    def _default_language(cls, value: Any) -> str:
        return str(value or "").strip() or "en"

    @field_validator("region", mode="before")
    @classmethod
    def _default_region(cls, value: Any) -> str:
        return str(value or "").strip() or "Global"

    @field_validator("sub_genres", mode="before")
    @classmethod
    def _unique_sub_genres(cls, value: Any) -> list[str]:
        return unique_strings(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(tag).strip() for tag in value if str(tag or "").strip()]

    @field_validator("bitrate", mode="before")
    @classmethod
    def _coerce_bitrate(cls, value: Any) -> int:
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return 128
        return int(numeric) if math.isfinite(numeric) else 128

    @field_validator("ima_ad_type", mode="before")
    @classmethod
    def _coerce_ad_type(cls, value: Any) -> str:
        lowered = str(value or "").strip().lower()
        return lowered if lowered in {item.value for item in ImaAdType} else ImaAdType.NO.value


class AutoExportConfig(CatalogueModel):
    """When automatic delivery fires for a profile (local wall-clock time)."""

    enabled: bool = False
    interval: ExportInterval = ExportInterval.DAILY
    time: str = DEFAULT_EXPORT_TIME
    day_of_week: int = Field(default=0, ge=0, le=6)
    day_of_month: int = Field(default=1, ge=1, le=31)

    @field_validator("interval", mode="before")
    @classmethod
    def _coerce_interval(cls, value: Any) -> str:
        if isinstance(value, ExportInterval):
            return value.value
        lowered = str(value or "").strip().lower()
        return lowered if lowered in {item.value for item in ExportInterval} else ExportInterval.DAILY.value

    @field_validator("time", mode="before")
    @classmethod
    def _validate_time(cls, value: Any) -> str:
        text = str(value or "").strip() or DEFAULT_EXPORT_TIME
        match = _TIME_PATTERN.match(text)
        if not match:
            raise ValueError(f"time must use HH:MM, got {text!r}")
        hour, minute = int(match.group("hour")), int(match.group("minute"))
        if hour > 23 or minute > 59:
            raise ValueError(f"time out of range: {text!r}")
        return f"{hour:02d}:{minute:02d}"

    @property
    def clock_time(self) -> dt_time:
        hour, minute = self.time.split(":")
        return dt_time(int(hour), int(minute))

    def fingerprint(self) -> str:
        """Stable digest of the fields that define the cadence."""

        parts = [self.interval.value, self.time]
        if self.interval is ExportInterval.WEEKLY:
            parts.append(f"dow={self.day_of_week}")
        elif self.interval is ExportInterval.MONTHLY:
            parts.append(f"dom={self.day_of_month}")
        return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]

    def describe(self) -> str:
        if not self.enabled:
            return "manual only"
        if self.interval is ExportInterval.WEEKLY:
            weekday = datetime(2024, 1, 1 + self.day_of_week).strftime("%A")
            return f"weekly on {weekday} at {self.time}"
        if self.interval is ExportInterval.MONTHLY:
            return f"monthly on day {self.day_of_month} at {self.time}"
        return f"daily at {self.time}"


class ExportProfile(CatalogueModel):
    """A named rule set selecting part of the catalogue for one player app."""

    id: str
    name: str = ""
    genre_ids: list[str] = Field(default_factory=list)
    sub_genres: list[str] = Field(default_factory=list)
    station_ids: list[str] = Field(default_factory=list)
    player_id: str | None = None
    auto_export: AutoExportConfig = Field(default_factory=AutoExportConfig)

    @field_validator("genre_ids", "sub_genres", "station_ids", mode="before")
    @classmethod
    def _unique(cls, value: Any) -> list[str]:
        return unique_strings(value)

    @field_validator("player_id", mode="before")
    @classmethod
    def _blank_player(cls, value: Any) -> str | None:
        text = str(value or "").strip()
        return text or None

    @field_validator("auto_export", mode="before")
    @classmethod
    def _default_auto_export(cls, value: Any) -> Any:
        return value if value is not None else {}

    @property
    def slug(self) -> str:
        return slugify_name(self.name, self.id)


class PlayerApp(CatalogueModel):
    """Consumer player application; owns the FTP delivery credentials.

    ``ftp_password`` holds the vault envelope, never plaintext once the
    catalogue has been saved through the repository.
    """

    id: str
    name: str = ""
    platforms: list[str] = Field(default_factory=list)
    platform: str | None = None
    ftp_enabled: bool = False
    ftp_server: str = ""
    ftp_username: str = ""
    ftp_password: str = ""
    ftp_protocol: FtpProtocol = FtpProtocol.FTP
    ftp_timeout: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _infer_protocol(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        key = "ftpProtocol" if "ftpProtocol" in data else "ftp_protocol"
        raw = str(data.get(key) or "").strip().lower()
        if raw not in {item.value for item in FtpProtocol}:
            server = str(data.get("ftpServer") or data.get("ftp_server") or "").strip().lower()
            raw = FtpProtocol.FTPS.value if server.startswith("ftps://") else FtpProtocol.FTP.value
        return {**data, key: raw}

    @field_validator("ftp_server", "ftp_username", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("ftp_password", mode="before")
    @classmethod
    def _password_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("ftp_timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, value: Any) -> int | None:
        # Unset or malformed values fall back to the configured default at delivery time
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(numeric) or numeric <= 0:
            return None
        return sanitize_timeout(numeric)

    @field_validator("platforms", mode="before")
    @classmethod
    def _unique_platforms(cls, value: Any) -> list[str]:
        return unique_strings(value)

    def target_platforms(self) -> list[str]:
        """Normalised platform keys, explicit ``platform`` first."""

        ordered: list[str] = []
        for candidate in [self.platform, *self.platforms]:
            key = normalize_platform(candidate)
            if key and key not in ordered:
                ordered.append(key)
        return ordered


class Catalogue(CatalogueModel):
    """Read model of the CRUD layer: everything the engine needs to export."""

    genres: list[Genre] = Field(default_factory=list)
    stations: list[Station] = Field(default_factory=list)
    player_apps: list[PlayerApp] = Field(default_factory=list)
    export_profiles: list[ExportProfile] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_profile_per_player(self) -> "Catalogue":
        owners: dict[str, str] = {}
        for profile in self.export_profiles:
            if profile.player_id is None:
                continue
            if profile.player_id in owners:
                raise ValueError(
                    f"player {profile.player_id!r} is assigned to both "
                    f"{owners[profile.player_id]!r} and {profile.id!r}"
                )
            owners[profile.player_id] = profile.id
        return self

    @model_validator(mode="after")
    def _unique_profile_slugs(self) -> "Catalogue":
        owners: dict[str, str] = {}
        for profile in self.export_profiles:
            if profile.slug in owners:
                raise ValueError(
                    f"profiles {owners[profile.slug]!r} and {profile.id!r} both export "
                    f"under the file name prefix {profile.slug!r}"
                )
            owners[profile.slug] = profile.id
        return self

    def profile(self, profile_id: str) -> ExportProfile:
        for profile in self.export_profiles:
            if profile.id == profile_id:
                return profile
        raise ProfileNotFound(profile_id)

    def player(self, player_id: str | None) -> PlayerApp | None:
        if not player_id:
            return None
        for player in self.player_apps:
            if player.id == player_id:
                return player
        return None

    def assign_player(self, profile_id: str, player_id: str | None) -> ExportProfile:
        """Assign ``player_id`` to one profile and clear it from every other."""

        target = self.profile(profile_id)
        player_id = (player_id or "").strip() or None
        if player_id is not None:
            for profile in self.export_profiles:
                if profile is not target and profile.player_id == player_id:
                    profile.player_id = None
        target.player_id = player_id
        return target


class GlobalConfig(BaseModel):
    """Engine settings, read once at start-up."""

    output_dir: Path = Field(default=Path("data/exports"))
    catalogue_file: Path = Field(default=Path("data/catalogue.json"))
    reports_db: Path = Field(default=Path("data/history/exports.db"))
    default_ftp_timeout_ms: int = DEFAULT_FTP_TIMEOUT_MS
    tick_seconds: float = 30.0
    thread_pool_workers: int = 4

    @field_validator("output_dir", "catalogue_file", "reports_db", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("default_ftp_timeout_ms", mode="before")
    @classmethod
    def _coerce_default_timeout(cls, value: Any) -> int:
        return sanitize_timeout(value)

    @field_validator("tick_seconds")
    @classmethod
    def _sub_minute_tick(cls, value: float) -> float:
        if value <= 0 or value >= 60:
            raise ValueError("tick_seconds must be between 0 and 60 so no configured minute is missed")
        return value

    @field_validator("thread_pool_workers")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("thread_pool_workers must be >= 1")
        return value


__all__ = [
    "AutoExportConfig",
    "Catalogue",
    "DEFAULT_FTP_TIMEOUT_MS",
    "ExportInterval",
    "ExportProfile",
    "FtpProtocol",
    "Genre",
    "GlobalConfig",
    "ImaAdType",
    "PlayerApp",
    "Station",
    "normalize_platform",
    "sanitize_timeout",
    "slugify_name",
    "unique_strings",
]
