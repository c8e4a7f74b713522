"""Tests for the metadata provider clients and the provider gate."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from upgradarr.config import ProviderSettings
from upgradarr.errors import ProviderUnavailable, RateLimited
from upgradarr.providers import ProviderClients, ProviderGate
from upgradarr.providers.models import OmdbSearchItem
from upgradarr.providers.omdb import OmdbClient, year_matches
from upgradarr.providers.tmdb import TmdbClient
from upgradarr.providers.tvdb import TvdbClient
from upgradarr.providers.web_search import BraveSearch, DuckDuckGoSearch, extract_imdb_id_from_html


def _response(status: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    response.text = text
    return response


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx client."""
    with patch("upgradarr.providers.http.httpx.Client") as mock_class:
        mock_instance = MagicMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def no_sleep():
    with patch("upgradarr.providers.http.time.sleep") as mock_sleep:
        yield mock_sleep


class TestProviderGate:
    def test_call_passes_through(self) -> None:
        gate = ProviderGate()

        assert gate.call("tmdb", lambda value: value * 2, 21) == 42

    def test_rate_limit_disables_provider(self) -> None:
        gate = ProviderGate()
        limited = MagicMock(side_effect=RateLimited("429", provider="omdb"))

        with pytest.raises(RateLimited):
            gate.call("omdb", limited)

        assert not gate.is_enabled("omdb")
        assert "omdb" in gate.disabled

        with pytest.raises(RateLimited):
            gate.call("omdb", limited)
        assert limited.call_count == 1

    def test_other_providers_unaffected(self) -> None:
        gate = ProviderGate()
        gate.disable("omdb", "limit")

        assert gate.is_enabled("tmdb")
        assert gate.call("tmdb", lambda: "ok") == "ok"

    def test_unavailable_does_not_disable(self) -> None:
        gate = ProviderGate()

        with pytest.raises(ProviderUnavailable):
            gate.call("tmdb", MagicMock(side_effect=ProviderUnavailable("down", provider="tmdb")))

        assert gate.is_enabled("tmdb")


class TestProviderHttpClient:
    """Retry and status handling, exercised through the TMDB client."""

    def test_not_found_returns_none(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(404)

        assert TmdbClient("key").get_movie(1) is None

    def test_rate_limit_is_not_retried(self, mock_httpx_client, no_sleep) -> None:
        mock_httpx_client.request.return_value = _response(429)

        with pytest.raises(RateLimited) as excinfo:
            TmdbClient("key").get_movie(1)

        assert excinfo.value.provider == "tmdb"
        assert excinfo.value.status_code == 429
        assert mock_httpx_client.request.call_count == 1

    def test_server_errors_are_retried(self, mock_httpx_client, no_sleep) -> None:
        mock_httpx_client.request.return_value = _response(503)

        with pytest.raises(ProviderUnavailable):
            TmdbClient("key", max_retries=3).get_movie(1)

        assert mock_httpx_client.request.call_count == 3
        assert no_sleep.call_count == 2

    def test_network_error_then_success(self, mock_httpx_client, no_sleep) -> None:
        mock_httpx_client.request.side_effect = [
            httpx.ConnectError("boom"),
            _response(200, {"id": 603, "title": "The Matrix", "release_date": "1999-03-30"}),
        ]

        movie = TmdbClient("key").get_movie(603)

        assert movie is not None
        assert movie.release_year == 1999

    def test_client_error_raises(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(401, text="Invalid API key")

        with pytest.raises(ProviderUnavailable) as excinfo:
            TmdbClient("key").get_movie(1)

        assert excinfo.value.status_code == 401


class TestTmdbClient:
    def test_search_movie(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            200,
            {
                "page": 1,
                "results": [
                    {"id": 27205, "title": "Inception", "release_date": "2010-07-15", "poster_path": "/p.jpg"},
                ],
                "total_results": 1,
            },
        )

        results = TmdbClient("key").search_movie("Inception", 2010)

        assert [movie.id for movie in results] == [27205]
        assert results[0].poster_url.endswith("/p.jpg")
        method, url = mock_httpx_client.request.call_args.args
        params = mock_httpx_client.request.call_args.kwargs["params"]
        assert method == "GET"
        assert url.endswith("/search/movie")
        assert params["api_key"] == "key"
        assert params["query"] == "Inception"
        assert params["year"] == 2010

    def test_find_by_imdb_id(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            200, {"movie_results": [{"id": 27205, "title": "Inception"}], "tv_results": []}
        )

        movie = TmdbClient("key").find_by_imdb_id("tt1375666")

        assert movie is not None and movie.id == 27205
        assert mock_httpx_client.request.call_args.kwargs["params"]["external_source"] == "imdb_id"

    def test_find_without_results(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(200, {"movie_results": []})

        assert TmdbClient("key").find_by_imdb_id("tt0000001") is None

    def test_tv_external_ids_drop_bad_imdb(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(200, {"imdb_id": "", "tvdb_id": 81189})

        external = TmdbClient("key").get_tv_external_ids(1396)

        assert external.tvdb_id == 81189
        assert external.imdb_id is None


class TestOmdbClient:
    def test_search(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            200,
            {"Response": "True", "Search": [{"Title": "Inception", "Year": "2010", "imdbID": "tt1375666"}]},
        )

        results = OmdbClient("key").search("Inception", 2010)

        assert results[0].imdb_id == "tt1375666"
        params = mock_httpx_client.request.call_args.kwargs["params"]
        assert params == {"s": "Inception", "type": "movie", "apikey": "key", "y": "2010"}

    def test_request_limit_raises_rate_limited(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            200, {"Response": "False", "Error": "Request limit reached!"}
        )

        with pytest.raises(RateLimited):
            OmdbClient("key").search("Inception")

    def test_not_found_is_empty(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(200, {"Response": "False", "Error": "Movie not found!"})

        assert OmdbClient("key").search("Nothing") == []

    def test_best_match_retries_without_year(self, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = [
            _response(200, {"Response": "False", "Error": "Movie not found!"}),
            _response(
                200,
                {
                    "Response": "True",
                    "Search": [
                        {"Title": "Show", "Year": "2015–2017", "imdbID": "tt1111111"},
                        {"Title": "Show", "Year": "2019–", "imdbID": "tt2222222"},
                    ],
                },
            ),
        ]

        match = OmdbClient("key").best_match("Show", 2020, kind="series")

        assert match is not None and match.imdb_id == "tt2222222"
        assert "y" not in mock_httpx_client.request.call_args.kwargs["params"]

    @pytest.mark.parametrize(
        ("year_text", "year", "expected"),
        [
            ("2010", 2010, True),
            ("2010", 2011, False),
            ("2015–2017", 2016, True),
            ("2015–2017", 2018, False),
            ("2019–", 2030, True),
            (None, 2010, False),
        ],
    )
    def test_year_matches(self, year_text, year, expected) -> None:
        item = OmdbSearchItem(Title="X", Year=year_text)

        assert year_matches(item, year) is expected


class TestTvdbClient:
    def test_login_once_and_search(self, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = [
            _response(200, {"data": {"token": "abc"}}),
            _response(200, {"data": [{"tvdb_id": "81189", "name": "Breaking Bad"}]}),
            _response(200, {"data": [{"tvdb_id": "", "name": "Unknown"}]}),
        ]
        client = TvdbClient("key", pin="1234")

        assert client.search_series_id("Breaking Bad") == 81189
        assert client.search_series_id("Unknown") is None

        login_call = mock_httpx_client.request.call_args_list[0]
        assert login_call.args[0] == "POST"
        assert login_call.kwargs["json"] == {"apikey": "key", "pin": "1234"}
        search_call = mock_httpx_client.request.call_args_list[1]
        assert search_call.kwargs["headers"] == {"Authorization": "Bearer abc"}
        assert mock_httpx_client.request.call_count == 3

    def test_login_without_token(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(200, {"data": {}})

        with pytest.raises(ProviderUnavailable):
            TvdbClient("key").login()

    def test_series_extended(self, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = [
            _response(200, {"data": {"token": "abc"}}),
            _response(
                200,
                {
                    "data": {
                        "id": 81189,
                        "name": "Breaking Bad",
                        "image": "https://art/fallback.jpg",
                        "remoteIds": [
                            {"id": "tt0903747", "sourceName": "IMDB"},
                            {"id": 1396, "sourceName": "TheMovieDB"},
                        ],
                        "artworks": [{"type": 3, "image": "https://art/bg.jpg"}, {"type": 2, "image": "https://art/p.jpg"}],
                    }
                },
            ),
        ]

        series = TvdbClient("key").get_series_extended(81189)

        assert series.tmdb_id == 1396
        assert series.imdb_id == "tt0903747"
        assert series.poster_url == "https://art/p.jpg"


class TestWebSearch:
    def test_extract_from_result_links(self) -> None:
        html = '<a href="https://www.imdb.com/title/tt1375666/">Inception</a>'

        assert extract_imdb_id_from_html(html) == "tt1375666"

    def test_extract_bare_id_near_context(self) -> None:
        html = "<div>noise tt0000001</div>" + " " * 400 + "<p>Title page tt7654321</p>"

        assert extract_imdb_id_from_html(html) == "tt7654321"

    def test_extract_nothing(self) -> None:
        assert extract_imdb_id_from_html("<html></html>") is None

    def test_duckduckgo_find(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            200, text='<a href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.imdb.com%2Ftitle%2Ftt1375666%2F">x</a>'
        )

        assert DuckDuckGoSearch().find_imdb_id("Inception", 2010) == "tt1375666"
        assert mock_httpx_client.request.call_args.kwargs["params"] == {"q": "Inception 2010 imdb"}

    def test_brave_find_ids(self, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            200,
            {
                "web": {
                    "results": [
                        {"url": "https://example.com/unrelated"},
                        {"url": "https://www.themoviedb.org/movie/27205-inception"},
                        {"url": "https://thetvdb.com/series/81189"},
                    ]
                }
            },
        )
        brave = BraveSearch("token")

        assert brave.find_tmdb_id("Inception", 2010) == 27205
        assert brave.find_tvdb_id("Breaking Bad") == 81189
        assert brave.find_imdb_id("Inception") is None
        params = mock_httpx_client.request.call_args.kwargs["params"]
        assert params["q"] == '"Inception" site:imdb.com'


class TestProviderClients:
    def test_only_configured_clients_are_built(self, mock_httpx_client) -> None:
        clients = ProviderClients.from_settings(
            ProviderSettings(tmdb_api_key="tmdb", web_search_enabled=False)
        )

        assert clients.tmdb is not None
        assert clients.omdb is None
        assert clients.tvdb is None
        assert clients.duckduckgo is None
        assert clients.brave is None

        clients.close()
        mock_httpx_client.close.assert_called_once()

    def test_disabled_web_search_drops_brave(self, mock_httpx_client) -> None:
        disabled = ProviderClients.from_settings(ProviderSettings(brave_api_key="token", web_search_enabled=False))
        enabled = ProviderClients.from_settings(ProviderSettings(brave_api_key="token"))

        assert disabled.brave is None
        assert disabled.duckduckgo is None
        assert enabled.brave is not None
        assert enabled.duckduckgo is not None
