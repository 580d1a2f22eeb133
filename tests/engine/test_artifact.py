from __future__ import annotations

import json

import pytest

from webradio_export.config import Genre
from webradio_export.engine import ArtifactBuilder
from webradio_export.engine.artifact import PLACEHOLDER_LOGO, resolve_ad_section
from webradio_export.errors import ExportValidationError, NoActiveStations


def test_empty_station_set_is_rejected(make_profile) -> None:
    with pytest.raises(NoActiveStations) as excinfo:
        ArtifactBuilder().build([], make_profile(name="Quiet Hours"))
    assert isinstance(excinfo.value, ExportValidationError)
    assert "does not include any active stations to export" in str(excinfo.value)


def test_generic_file_without_player(make_station, make_profile) -> None:
    artifact = ArtifactBuilder().build([make_station("a")], make_profile(name="Rock Hits"))
    assert artifact.slug == "rock-hits"
    assert [item.file_name for item in artifact.files] == ["rock-hits-generic.json"]
    assert "app" not in artifact.files[0].payload
    assert artifact.station_count == 1


def test_one_file_per_player_platform(make_station, make_profile, make_player) -> None:
    player = make_player(name="Radio One", platform="iOS", platforms=["android"])
    artifact = ArtifactBuilder().build([make_station("a")], make_profile(name="Rock Hits"), player=player)
    assert [item.file_name for item in artifact.files] == ["rock-hits-ios.json", "rock-hits-android.json"]
    assert artifact.files[1].payload["app"] == {"id": "radio-one", "platform": "android", "version": 1}


def test_station_order_does_not_change_output(make_station, make_profile) -> None:
    stations = [make_station("b", name="beta"), make_station("a", name="Alpha"), make_station("c", name="Beta")]
    profile = make_profile()
    forward = ArtifactBuilder().build(stations, profile)
    backward = ArtifactBuilder().build(list(reversed(stations)), profile)
    assert forward.files[0].render() == backward.files[0].render()
    assert forward.checksum == backward.checksum
    names = [record["id"] for record in forward.files[0].payload["stations"]]
    assert names == ["a", "b", "c"]


def test_exported_station_record(make_station, make_profile) -> None:
    station = make_station(
        "rock-1",
        name="Rock One",
        logo_url="",
        tags=["Hard Rock Anthems", "loud"],
        sub_genres=["Metal"],
        ima_ad_type="audio",
        is_favorite=True,
    )
    artifact = ArtifactBuilder().build([station], make_profile(), genres=[Genre(id="rock", name="Rock")])
    record = json.loads(artifact.files[0].render())["stations"][0]
    assert record == {
        "id": "rock-1",
        "name": "Rock One",
        "genre": "rock",
        "url": "https://streams.example.com/rock-1",
        "logo": PLACEHOLDER_LOGO,
        "description": "",
        "bitrate": 128,
        "language": "en",
        "region": "Global",
        "tags": ["Hard Rock Anthems", "loud"],
        "subGenres": ["Metal"],
        "isPlaying": False,
        "isFavorite": True,
        "imaAdType": "audio",
        "adMeta": {"section": "hard"},
    }


@pytest.mark.parametrize(
    ("tags", "genre", "expected"),
    [
        (["Top Jazz", "chill"], "jazz", "top"),
        (["chill vibes"], "jazz", "chill"),
        ([], "jazz", "jazz"),
        ([], None, None),
        (["!!!"], None, None),
    ],
)
def test_resolve_ad_section(tags, genre, expected) -> None:
    assert resolve_ad_section(tags, genre) == expected


def test_describe_lists_files(make_station, make_profile) -> None:
    artifact = ArtifactBuilder().build([make_station("a")], make_profile(name="Rock Hits"))
    lines = artifact.describe()
    assert lines[0] == "Profile Rock Hits (rock-profile)"
    assert "  rock-hits-generic.json [generic]" in lines


def test_platform_names_cannot_escape_file_name(make_station, make_profile, make_player) -> None:
    player = make_player(platform="android/tv", platforms=["../x"])
    artifact = ArtifactBuilder().build([make_station("a")], make_profile(name="Rock Hits"), player=player)
    assert [item.file_name for item in artifact.files] == ["rock-hits-androidtv.json", "rock-hits-x.json"]
    assert artifact.files[0].payload["app"]["platform"] == "androidtv"
