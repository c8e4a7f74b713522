"""Tests for movie and TV identifier resolution."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from upgradarr.errors import ProviderUnavailable, RateLimited
from upgradarr.library.models import HeldShow
from upgradarr.providers import ProviderClients, ProviderGate
from upgradarr.providers.models import (
    OmdbSearchItem,
    TmdbExternalIds,
    TmdbMovie,
    TmdbTvShow,
    TvdbRemoteId,
    TvdbSeries,
)
from upgradarr.providers.omdb import OmdbClient
from upgradarr.providers.tmdb import TmdbClient
from upgradarr.providers.tvdb import TvdbClient
from upgradarr.providers.web_search import BraveSearch, DuckDuckGoSearch
from upgradarr.resolver import ExternalIdentifiers, IdentifierResolver
from upgradarr.tv_resolver import KnownShow, TvIdentifierResolver, match_known_show


def _client(cls, name: str) -> MagicMock:
    client = MagicMock(spec=cls)
    client.provider_name = name
    return client


@pytest.fixture
def tmdb() -> MagicMock:
    client = _client(TmdbClient, "tmdb")
    client.get_movie.return_value = None
    client.find_by_imdb_id.return_value = None
    client.search_movie.return_value = []
    client.search_tv.return_value = []
    client.get_tv_external_ids.return_value = None
    return client


@pytest.fixture
def omdb() -> MagicMock:
    client = _client(OmdbClient, "omdb")
    client.best_match.return_value = None
    return client


@pytest.fixture
def brave() -> MagicMock:
    client = _client(BraveSearch, "brave")
    client.find_imdb_id.return_value = None
    client.find_tmdb_id.return_value = None
    client.find_tvdb_id.return_value = None
    return client


@pytest.fixture
def tvdb() -> MagicMock:
    client = _client(TvdbClient, "tvdb")
    client.search_series_id.return_value = None
    client.get_series_extended.return_value = None
    return client


@pytest.fixture
def gate() -> ProviderGate:
    return ProviderGate()


@pytest.fixture
def resolver(tmdb, omdb, brave, gate) -> IdentifierResolver:
    return IdentifierResolver(ProviderClients(tmdb=tmdb, omdb=omdb, brave=brave), gate)


class TestExternalIdentifiers:
    def test_invalid_imdb_id_is_dropped(self) -> None:
        assert ExternalIdentifiers(imdb_id="nm0000001").imdb_id is None
        assert ExternalIdentifiers(imdb_id="tt123").imdb_id is None
        assert ExternalIdentifiers(imdb_id="tt1234567").imdb_id == "tt1234567"

    def test_pinned_fields_refuse_writes(self) -> None:
        ids = ExternalIdentifiers(tmdb_id=10, tmdb_id_manual=True)

        assert not ids.set_id("tmdb_id", 99)
        assert ids.tmdb_id == 10
        assert ids.set_id("imdb_id", "tt7654321")
        assert ids.complete


class TestIdentifierResolver:
    """Tests for the movie resolution chain."""

    def test_primary_to_secondary(self, resolver, tmdb) -> None:
        tmdb.get_movie.return_value = TmdbMovie(
            id=27205, title="Inception", imdb_id="tt1375666", original_language="en"
        )

        ids = resolver.resolve("Inception.2010.1080p", "Inception", 2010, ExternalIdentifiers(tmdb_id=27205))

        assert ids.imdb_id == "tt1375666"
        assert ids.original_language == "en"
        assert ids.title == "Inception"
        tmdb.search_movie.assert_not_called()

    def test_secondary_to_primary(self, resolver, tmdb) -> None:
        tmdb.find_by_imdb_id.return_value = TmdbMovie(id=27205, title="Inception")

        ids = resolver.resolve("Inception", "Inception", None, ExternalIdentifiers(imdb_id="tt1375666"))

        assert ids.tmdb_id == 27205
        assert not ids.needs_attention

    def test_search_rejects_wrong_year(self, resolver, tmdb) -> None:
        tmdb.search_movie.return_value = [
            TmdbMovie(id=1, title="Dune", release_date="1984-12-14"),
            TmdbMovie(id=2, title="Dune", release_date="2021-09-15"),
        ]
        tmdb.get_movie.return_value = TmdbMovie(id=2, title="Dune", imdb_id="tt1160419")

        ids = resolver.resolve("Dune.2021.2160p", "Dune", 2021)

        assert ids.tmdb_id == 2
        assert ids.imdb_id == "tt1160419"
        tmdb.get_movie.assert_called_once_with(2)

    def test_search_retries_with_normalized_title(self, resolver, tmdb) -> None:
        tmdb.search_movie.side_effect = [[], [TmdbMovie(id=3, title="Spider-Man")]]

        ids = resolver.resolve("Spider-Man", "Spider-Man", None)

        assert ids.tmdb_id == 3
        assert [call.args[0] for call in tmdb.search_movie.call_args_list] == ["Spider-Man", "spider man"]

    def test_omdb_fallback_then_tmdb_lookup(self, resolver, tmdb, omdb, brave) -> None:
        omdb.best_match.return_value = OmdbSearchItem(Title="Obscure", Year="2019", imdbID="tt9999999")
        tmdb.find_by_imdb_id.return_value = TmdbMovie(id=555, title="Obscure")

        ids = resolver.resolve("Obscure 2019", "Obscure", 2019)

        assert ids.imdb_id == "tt9999999"
        assert ids.tmdb_id == 555
        brave.find_imdb_id.assert_not_called()

    def test_web_search_fallback_needs_attention(self, resolver, omdb, brave) -> None:
        brave.find_imdb_id.return_value = "tt8888888"

        ids = resolver.resolve("Obscure 2019", "Obscure", 2019)

        assert ids.imdb_id == "tt8888888"
        assert ids.tmdb_id is None
        assert ids.needs_attention
        omdb.best_match.assert_called_once_with("Obscure", 2019, "movie")

    def test_duckduckgo_used_without_brave(self, tmdb, omdb, gate) -> None:
        duckduckgo = _client(DuckDuckGoSearch, "duckduckgo")
        duckduckgo.find_imdb_id.return_value = "tt1234567"
        resolver = IdentifierResolver(ProviderClients(tmdb=tmdb, omdb=omdb, duckduckgo=duckduckgo), gate)

        ids = resolver.resolve("Film", "Film", None)

        assert ids.imdb_id == "tt1234567"

    def test_brave_tmdb_search_when_no_imdb_id(self, resolver, tmdb, brave) -> None:
        brave.find_tmdb_id.return_value = 60300
        tmdb.get_movie.return_value = TmdbMovie(id=60300, title="Obscure", imdb_id="tt7777777")

        ids = resolver.resolve("Obscure 2019", "Obscure", 2019)

        assert ids.tmdb_id == 60300
        assert ids.imdb_id == "tt7777777"
        assert not ids.needs_attention
        brave.find_tmdb_id.assert_called_once_with("Obscure", 2019)

    def test_nothing_found(self, resolver) -> None:
        ids = resolver.resolve("Unknown", "Unknown", None)

        assert ids.tmdb_id is None
        assert ids.imdb_id is None
        assert not ids.needs_attention

    def test_existing_identifiers_not_modified(self, resolver, tmdb) -> None:
        tmdb.get_movie.return_value = TmdbMovie(id=1, imdb_id="tt1000000")
        existing = ExternalIdentifiers(tmdb_id=1)

        resolver.resolve("Film", "Film", None, existing)

        assert existing.imdb_id is None


class TestCrossValidation:
    def _mismatch(self, tmdb, replacement_year: str) -> None:
        tmdb.get_movie.return_value = TmdbMovie(id=1, imdb_id="tt2222222")
        tmdb.find_by_imdb_id.return_value = TmdbMovie(id=5, title="Right", release_date=replacement_year)

    def test_mismatch_is_corrected(self, resolver, tmdb) -> None:
        self._mismatch(tmdb, "2010-01-01")

        ids = resolver.resolve("Right 2010", "Right", 2010, ExternalIdentifiers(tmdb_id=1, imdb_id="tt1111111"))

        assert ids.tmdb_id == 5
        assert ids.imdb_id == "tt1111111"
        assert ids.title == "Right"

    def test_year_mismatch_keeps_original(self, resolver, tmdb) -> None:
        self._mismatch(tmdb, "2012-01-01")

        ids = resolver.resolve("Right 2010", "Right", 2010, ExternalIdentifiers(tmdb_id=1, imdb_id="tt1111111"))

        assert ids.tmdb_id == 1

    def test_unknown_year_accepts_replacement(self, resolver, tmdb) -> None:
        self._mismatch(tmdb, "2012-01-01")

        ids = resolver.resolve("Right", "Right", None, ExternalIdentifiers(tmdb_id=1, imdb_id="tt1111111"))

        assert ids.tmdb_id == 5

    def test_pinned_primary_is_never_corrected(self, resolver, tmdb) -> None:
        self._mismatch(tmdb, "2010-01-01")
        existing = ExternalIdentifiers(tmdb_id=1, imdb_id="tt1111111", tmdb_id_manual=True)

        ids = resolver.resolve("Right 2010", "Right", 2010, existing)

        assert ids.tmdb_id == 1
        tmdb.find_by_imdb_id.assert_not_called()

    def test_mismatch_logged_as_warning(self, resolver, tmdb, caplog) -> None:
        self._mismatch(tmdb, "2010-01-01")

        with caplog.at_level("WARNING", logger="upgradarr.resolver"):
            resolver.resolve("Right 2010", "Right", 2010, ExternalIdentifiers(tmdb_id=1, imdb_id="tt1111111"))

        record = next(record for record in caplog.records if record.levelname == "WARNING")
        assert record.release_title == "Right 2010"
        assert record.details["reported"] == "tt2222222"


class TestProviderFailures:
    def test_rate_limit_disables_provider_for_the_run(self, resolver, tmdb, omdb, gate) -> None:
        tmdb.search_movie.side_effect = RateLimited("429", provider="tmdb")
        omdb.best_match.return_value = OmdbSearchItem(Title="Film", imdbID="tt3333333")

        first = resolver.resolve("Film", "Film", None)
        second = resolver.resolve("Other", "Other", None)

        assert first.imdb_id == "tt3333333"
        assert second.imdb_id == "tt3333333"
        assert "tmdb" in gate.disabled
        assert tmdb.search_movie.call_count == 1
        tmdb.find_by_imdb_id.assert_not_called()

    def test_unavailable_provider_moves_on(self, resolver, tmdb, omdb, gate) -> None:
        tmdb.search_movie.side_effect = ProviderUnavailable("down", provider="tmdb")
        omdb.best_match.return_value = OmdbSearchItem(Title="Film", imdbID="tt3333333")

        ids = resolver.resolve("Film", "Film", None)

        assert ids.imdb_id == "tt3333333"
        assert gate.is_enabled("tmdb")

    def test_rate_limited_brave_falls_back_to_duckduckgo(self, tmdb, omdb, brave, gate) -> None:
        brave.find_imdb_id.side_effect = RateLimited("429", provider="brave")
        duckduckgo = _client(DuckDuckGoSearch, "duckduckgo")
        duckduckgo.find_imdb_id.return_value = "tt4444444"
        resolver = IdentifierResolver(ProviderClients(tmdb=tmdb, omdb=omdb, brave=brave, duckduckgo=duckduckgo), gate)

        first = resolver.resolve("Film", "Film", None)
        second = resolver.resolve("Other", "Other", None)

        assert first.imdb_id == "tt4444444"
        assert second.imdb_id == "tt4444444"
        assert "brave" in gate.disabled
        assert brave.find_imdb_id.call_count == 1
        brave.find_tmdb_id.assert_not_called()


class TestMatchKnownShow:
    def test_year_agnostic_match(self) -> None:
        known = [KnownShow("Breaking Bad", tvdb_id=81189)]

        assert match_known_show("Breaking Bad 2008", known) is known[0]

    def test_below_threshold(self) -> None:
        assert match_known_show("Better Call Saul", [KnownShow("Breaking Bad", tvdb_id=81189)]) is None

    def test_empty(self) -> None:
        assert match_known_show("Anything", []) is None


class TestTvIdentifierResolver:
    @pytest.fixture
    def tv_resolver(self, tvdb, tmdb, omdb, brave, gate) -> TvIdentifierResolver:
        return TvIdentifierResolver(ProviderClients(tmdb=tmdb, omdb=omdb, tvdb=tvdb, brave=brave), gate)

    def test_known_show_skips_providers(self, tv_resolver, tvdb, tmdb) -> None:
        held = HeldShow.model_validate({"id": 1, "title": "Breaking Bad", "tvdbId": 81189, "tmdbId": 1396})

        ids = tv_resolver.resolve("Breaking Bad (2008)", None, [KnownShow.from_held(held)])

        assert ids.tvdb_id == 81189
        assert ids.tmdb_id == 1396
        tvdb.search_series_id.assert_not_called()
        tmdb.search_tv.assert_not_called()

    def test_known_shows_without_ids_are_ignored(self, tv_resolver, tvdb) -> None:
        tv_resolver.resolve("Breaking Bad", None, [KnownShow("Breaking Bad")])

        tvdb.search_series_id.assert_called_once_with("Breaking Bad")

    def test_tvdb_search_and_extended_record(self, tv_resolver, tvdb, tmdb, omdb) -> None:
        tvdb.search_series_id.return_value = 81189
        tvdb.get_series_extended.return_value = TvdbSeries(
            id=81189,
            name="Breaking Bad",
            remoteIds=[
                TvdbRemoteId(id="1396", sourceName="TheMovieDB"),
                TvdbRemoteId(id="tt0903747", sourceName="IMDB"),
            ],
        )

        ids = tv_resolver.resolve("Breaking Bad")

        assert (ids.tvdb_id, ids.tmdb_id, ids.imdb_id) == (81189, 1396, "tt0903747")
        tmdb.search_tv.assert_not_called()
        omdb.best_match.assert_not_called()

    def test_tmdb_search_with_external_ids(self, tv_resolver, tmdb) -> None:
        tmdb.search_tv.return_value = [TmdbTvShow(id=1396, name="Breaking Bad", first_air_date="2008-01-20")]
        tmdb.get_tv_external_ids.return_value = TmdbExternalIds(imdb_id="tt0903747", tvdb_id=81189)

        ids = tv_resolver.resolve("Breaking Bad")

        assert ids.tmdb_id == 1396
        assert ids.tvdb_id == 81189
        assert ids.imdb_id == "tt0903747"
        assert ids.release_year == 2008

    def test_stored_tvdb_id_fetches_extended_only(self, tv_resolver, tvdb) -> None:
        tvdb.get_series_extended.return_value = TvdbSeries(
            id=81189, remoteIds=[TvdbRemoteId(id="1396", sourceName="TheMovieDB")]
        )

        ids = tv_resolver.resolve("Breaking Bad", ExternalIdentifiers(tvdb_id=81189))

        assert ids.tmdb_id == 1396
        tvdb.search_series_id.assert_not_called()

    def test_brave_last_resort(self, tv_resolver, brave) -> None:
        brave.find_tvdb_id.return_value = 424242

        ids = tv_resolver.resolve("Obscure Show")

        assert ids.tvdb_id == 424242
        assert not ids.needs_attention

    def test_nothing_found_needs_attention(self, tv_resolver) -> None:
        ids = tv_resolver.resolve("Obscure Show")

        assert ids.needs_attention

    def test_pinned_tvdb_id_survives(self, tv_resolver, tvdb) -> None:
        existing = ExternalIdentifiers(tvdb_id=1, tvdb_id_manual=True)
        tvdb.get_series_extended.return_value = TvdbSeries(id=1)

        ids = tv_resolver.resolve("Show", existing, [KnownShow("Show", tvdb_id=2)])

        assert ids.tvdb_id == 1
