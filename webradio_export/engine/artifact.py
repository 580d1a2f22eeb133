"""Build the distributable station-list artifact for a resolved profile."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from ..config import ExportProfile, Genre, PlayerApp, Station, slugify_name
from ..errors import NoActiveStations

if TYPE_CHECKING:  # pragma: no cover
    from .delivery import DeliveryResult

PLACEHOLDER_LOGO = "/static/webradio_placeholder.png"
GENERIC_PLATFORM = "generic"
APP_VERSION = 1

_TOKEN = re.compile(r"[a-z0-9]+", re.IGNORECASE)


def _first_token(text: str) -> str | None:
    match = _TOKEN.search(text or "")
    return match.group(0).lower() if match else None


def artifact_platforms(player: PlayerApp | None) -> list[str]:
    return (player.target_platforms() if player else []) or [GENERIC_PLATFORM]


def artifact_file_name(slug: str, platform: str) -> str:
    return f"{slug}-{platform}.json"


def resolve_ad_section(tags: Sequence[str], genre: str | None) -> str | None:
    """Ad section for a station: the tag mentioning its genre, else its first tag."""

    lowered_genre = genre.lower() if genre else None
    if lowered_genre:
        for tag in tags:
            if lowered_genre in tag.lower():
                return _first_token(tag) or lowered_genre
    if tags:
        token = _first_token(tags[0])
        if token:
            return token
    return lowered_genre


def serialize_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


@dataclass(slots=True)
class ArtifactFile:
    file_name: str
    platform: str
    payload: dict[str, Any]

    def render(self) -> str:
        return serialize_payload(self.payload)


@dataclass(slots=True)
class Artifact:
    """Serialisable station list for one profile, one file per target platform."""

    profile_id: str
    profile_name: str
    slug: str
    station_count: int
    files: list[ArtifactFile] = field(default_factory=list)
    checksum: str = ""

    def describe(self) -> list[str]:
        lines = [
            f"Profile {self.profile_name or self.profile_id} ({self.profile_id})",
            f"Stations: {self.station_count}",
        ]
        for item in self.files:
            lines.append(f"  {item.file_name} [{item.platform}]")
        lines.append(f"Checksum: {self.checksum[:12]}")
        return lines


class ArtifactBuilder:
    """Turn a resolved station set into the JSON feed consumed by player apps."""

    def build(
        self,
        stations: Iterable[Station],
        profile: ExportProfile,
        genres: Sequence[Genre] = (),
        player: PlayerApp | None = None,
    ) -> Artifact:
        station_list = list(stations)
        if not station_list:
            raise NoActiveStations(profile.id, profile.name)

        genre_names = {genre.id: genre.name for genre in genres}
        ordered = sorted(station_list, key=lambda station: (station.name.casefold(), station.id))
        exported = [self._export_station(station, genre_names) for station in ordered]

        slug = slugify_name(profile.name, profile.id)
        platforms = artifact_platforms(player)

        files: list[ArtifactFile] = []
        for platform in platforms:
            payload: dict[str, Any] = {"stations": [dict(item) for item in exported]}
            if player is not None:
                payload["app"] = {
                    "id": slugify_name(player.name, player.id),
                    "platform": platform,
                    "version": APP_VERSION,
                }
            files.append(ArtifactFile(file_name=artifact_file_name(slug, platform), platform=platform, payload=payload))

        digest = hashlib.sha256()
        for item in files:
            digest.update(item.file_name.encode("utf-8"))
            digest.update(item.render().encode("utf-8"))
        return Artifact(
            profile_id=profile.id,
            profile_name=profile.name,
            slug=slug,
            station_count=len(exported),
            files=files,
            checksum=digest.hexdigest(),
        )

    @staticmethod
    def _export_station(station: Station, genre_names: dict[str, str]) -> dict[str, Any]:
        genre_name = genre_names.get(station.genre_id)
        genre = station.genre_id or (genre_name.lower() if genre_name else None)
        record: dict[str, Any] = {
            "id": station.id,
            "name": station.name,
            "genre": genre,
            "url": station.stream_url,
            "logo": station.logo_url or PLACEHOLDER_LOGO,
            "description": station.description,
            "bitrate": station.bitrate,
            "language": station.language,
            "region": station.region,
            "tags": list(station.tags),
            "subGenres": list(station.sub_genres),
            "isPlaying": False,
            "isFavorite": station.is_favorite,
            "imaAdType": station.ima_ad_type.value,
        }
        section = resolve_ad_section(station.tags, genre)
        if section:
            record["adMeta"] = {"section": section}
        return record


def describe_result(result: "DeliveryResult") -> list[str]:
    """Human-readable delivery summary for logs and the CLI."""

    lines = [
        f"Export {result.status.value} for {result.profile_name or result.profile_id}: "
        f"{result.station_count} stations -> {result.output_directory}",
    ]
    for item in result.files:
        remote = "uploaded" if item.ftp_uploaded else "local only"
        lines.append(f"  {item.file_name} ({remote})")
    if result.error:
        lines.append(f"  error: {result.error}")
    lines.append(f"  took {result.duration_seconds:.2f}s")
    return lines


__all__ = [
    "Artifact",
    "ArtifactBuilder",
    "ArtifactFile",
    "GENERIC_PLATFORM",
    "PLACEHOLDER_LOGO",
    "artifact_file_name",
    "artifact_platforms",
    "describe_result",
    "resolve_ad_section",
    "serialize_payload",
]
