from __future__ import annotations

import itertools

from webradio_export.config import Genre
from webradio_export.engine import resolve, resolve_ids


def test_genre_and_sub_genre_rules(make_station, make_profile) -> None:
    stations = [
        make_station("rock-1"),
        make_station("jazz-1", genre_id="jazz"),
        make_station("indie-1", genre_id="pop", sub_genres=["INDIE"]),
    ]
    profile = make_profile(genre_ids=["rock"], sub_genres=["indie"])
    assert [station.id for station in resolve(profile, stations)] == ["rock-1", "indie-1"]


def test_resolution_is_permutation_invariant(make_station, make_profile) -> None:
    stations = [
        make_station("a"),
        make_station("b", genre_id="jazz", sub_genres=["Bebop"]),
        make_station("c", is_active=False),
        make_station("d", genre_id="news"),
    ]
    profile = make_profile(genre_ids=["rock"], sub_genres=["bebop"], station_ids=["d"])
    expected = {"a", "b", "d"}
    for permutation in itertools.permutations(stations):
        assert resolve_ids(profile, permutation) == expected


def test_explicit_inclusion_overrides_inactive_flag(make_station, make_profile) -> None:
    stations = [make_station("offline", genre_id="talk", is_active=False)]
    assert resolve_ids(make_profile(genre_ids=[], station_ids=["offline"]), stations) == {"offline"}
    assert resolve_ids(make_profile(genre_ids=["talk"]), stations) == set()


def test_duplicates_collapse_to_first_occurrence(make_station, make_profile) -> None:
    first = make_station("dup", name="First")
    second = make_station("dup", name="Second")
    result = resolve(make_profile(station_ids=["dup"]), [first, second])
    assert [station.name for station in result] == ["First"]


def test_empty_rules_select_nothing(make_station, make_profile) -> None:
    profile = make_profile(genre_ids=[], sub_genres=[], station_ids=[])
    assert resolve(profile, [make_station("a"), make_station("b")]) == []


def test_deleted_genre_matches_nothing(make_station, make_profile) -> None:
    genres = [Genre(id="jazz", name="Jazz")]
    profile = make_profile(genre_ids=["removed-genre"])
    assert resolve(profile, [make_station("a", genre_id="jazz")], genres) == []
