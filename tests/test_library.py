"""Tests for the Radarr/Sonarr clients, held-file parsing and the library indexes."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from upgradarr.errors import RateLimited
from upgradarr.library import (
    HeldLibraryIndex,
    HeldMovie,
    HeldShow,
    HeldShowIndex,
    LibraryApiError,
    RadarrClient,
    SonarrClient,
    held_file_attributes,
)
from upgradarr.library.held_file import language_code, media_info_languages
from upgradarr.library.models import MediaInfo

RADARR_MOVIE = {
    "id": 7,
    "title": "Inception",
    "year": 2010,
    "tmdbId": 27205,
    "imdbId": "tt1375666",
    "hasFile": True,
    "originalLanguage": {"id": 1, "name": "English"},
    "movieFile": {
        "relativePath": "Inception (2010) 1080p.mkv",
        "size": 4 * 1024 * 1024 * 1024,
        "mediaInfo": {"videoCodec": "x265", "audioCodec": "EAC3", "audioLanguages": "English/Hindi"},
    },
}

SONARR_SERIES = {
    "id": 3,
    "title": "Breaking Bad",
    "year": 2008,
    "tvdbId": 81189,
    "tmdbId": 0,
    "seasons": [
        {"seasonNumber": 1, "monitored": True},
        {"seasonNumber": 2, "monitored": False},
    ],
    "images": [{"coverType": "poster", "remoteUrl": "https://art/poster.jpg"}],
}


def _response(status: int = 200, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    response.text = ""
    return response


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


class TestRadarrClient:
    def test_list_movies(self, session) -> None:
        session.get.return_value = _response(200, [RADARR_MOVIE, {"title": "missing id"}])
        client = RadarrClient("http://radarr:7878/", "secret", session=session)

        movies = client.list_movies()

        assert [movie.tmdb_id for movie in movies] == [27205]
        url = session.get.call_args.args[0]
        assert url == "http://radarr:7878/api/v3/movie"
        assert session.get.call_args.kwargs["headers"]["X-Api-Key"] == "secret"

    def test_lookup_passes_term(self, session) -> None:
        session.get.return_value = _response(200, [])

        RadarrClient("http://radarr:7878", "secret", session=session).lookup("tmdb:27205")

        assert session.get.call_args.kwargs["params"] == {"term": "tmdb:27205"}

    def test_error_status(self, session) -> None:
        session.get.return_value = _response(401)

        with pytest.raises(LibraryApiError) as excinfo:
            RadarrClient("http://radarr:7878", "bad", session=session).list_movies()

        assert excinfo.value.status_code == 401

    def test_rate_limit(self, session) -> None:
        session.get.return_value = _response(429)

        with pytest.raises(RateLimited):
            RadarrClient("http://radarr:7878", "key", session=session).list_movies()

    def test_network_failure(self, session) -> None:
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(LibraryApiError):
            RadarrClient("http://radarr:7878", "key", session=session).list_movies()

    def test_unexpected_payload(self, session) -> None:
        session.get.return_value = _response(200, {"message": "nope"})

        with pytest.raises(LibraryApiError):
            RadarrClient("http://radarr:7878", "key", session=session).list_movies()

    def test_invalid_url(self) -> None:
        with pytest.raises(LibraryApiError):
            RadarrClient("radarr:7878", "key")


class TestSonarrClient:
    def test_list_series(self, session) -> None:
        session.get.return_value = _response(200, [SONARR_SERIES])

        shows = SonarrClient("http://sonarr:8989", "key", session=session).list_series()

        assert len(shows) == 1
        show = shows[0]
        assert show.tvdb_id == 81189
        assert show.tmdb_id is None
        assert show.poster_url == "https://art/poster.jpg"
        assert session.get.call_args.args[0].endswith("/api/v3/series")


class TestHeldModels:
    def test_has_season_requires_monitored(self) -> None:
        show = HeldShow.model_validate(SONARR_SERIES)

        assert show.has_season(1)
        assert not show.has_season(2)
        assert not show.has_season(5)
        assert show.has_season(None)

    def test_movie_file_size(self) -> None:
        movie = HeldMovie.model_validate(RADARR_MOVIE)

        assert movie.movie_file.size_mb == pytest.approx(4096.0)
        assert movie.original_language_name == "English"


class TestHeldFileAttributes:
    def test_media_info_fills_gaps(self) -> None:
        attributes = held_file_attributes(HeldMovie.model_validate(RADARR_MOVIE))

        assert attributes.resolution == "1080p"
        assert attributes.codec == "x265"
        assert attributes.audio == "DDP5.1"
        assert attributes.audio_languages == ("en", "hi")
        assert attributes.size_mb == pytest.approx(4096.0)

    def test_file_name_wins_over_media_info(self) -> None:
        data = dict(RADARR_MOVIE)
        data["movieFile"] = {
            "relativePath": "Inception.2010.1080p.x264.DD5.1.mkv",
            "size": 1024 * 1024 * 1024,
            "mediaInfo": {"videoCodec": "HEVC", "audioCodec": "TrueHD Atmos"},
        }

        attributes = held_file_attributes(HeldMovie.model_validate(data))

        assert attributes.codec == "x264"
        assert attributes.audio == "DD5.1"

    def test_movie_without_file(self) -> None:
        assert held_file_attributes(HeldMovie(id=1, title="Missing")) is None

    def test_language_helpers(self) -> None:
        assert language_code("Hindi") == "hi"
        assert language_code("fr") == "fr"
        assert language_code(None) is None
        assert media_info_languages(MediaInfo(audioLanguages="Tamil / English")) == ("ta", "en")


class TestHeldLibraryIndex:
    def test_lookup_by_primary_id(self) -> None:
        index = HeldLibraryIndex([HeldMovie.model_validate(RADARR_MOVIE)])

        assert index.lookup_by_primary_id(27205).title == "Inception"
        assert index.lookup_by_primary_id(None) is None
        assert len(index) == 1

    def test_lookup_by_title_respects_year(self) -> None:
        index = HeldLibraryIndex([HeldMovie.model_validate(RADARR_MOVIE)])

        assert index.lookup_by_title("inception", 2010) is not None
        assert index.lookup_by_title("Inception", 2011) is None
        assert index.lookup_by_title("Inception") is not None


class TestHeldShowIndex:
    def test_lookup_order(self) -> None:
        index = HeldShowIndex([HeldShow.model_validate(SONARR_SERIES)])

        assert index.lookup(tvdb_id=81189) is not None
        assert index.lookup(name="Breaking Bad (2008)") is not None
        assert index.lookup(tvdb_id=1, name="Other Show") is None
