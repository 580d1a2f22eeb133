"""Membership resolution: which catalogue stations belong to a profile."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..config import ExportProfile, Genre, Station


def resolve(
    profile: ExportProfile,
    stations: Iterable[Station],
    genres: Sequence[Genre] = (),
) -> list[Station]:
    """Return the deduplicated stations matching ``profile``.

    A station is selected when its id is listed explicitly (even if the
    monitor marked it inactive), or when it is active and either its genre
    id or one of its sub-genre tags matches the profile rules. Sub-genres
    compare case-insensitively. Empty rule lists select nothing. The result
    keeps the order of ``stations``; each id appears at most once.

    ``genres`` is accepted for callers that pass the whole catalogue; genre
    ids that no longer exist simply match no station.
    """

    genre_ids = set(profile.genre_ids)
    station_ids = set(profile.station_ids)
    sub_genres = {value.casefold() for value in profile.sub_genres}

    selected: dict[str, Station] = {}
    for station in stations:
        if station.id in selected:
            continue
        if station.id in station_ids:
            selected[station.id] = station
            continue
        if not station.is_active:
            continue
        if station.genre_id in genre_ids or any(
            tag.casefold() in sub_genres for tag in station.sub_genres
        ):
            selected[station.id] = station
    return list(selected.values())


def resolve_ids(
    profile: ExportProfile,
    stations: Iterable[Station],
    genres: Sequence[Genre] = (),
) -> set[str]:
    return {station.id for station in resolve(profile, stations, genres)}


__all__ = ["resolve", "resolve_ids"]
