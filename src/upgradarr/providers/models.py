"""Pydantic models for metadata provider responses.

All fields that a provider may omit are optional; unknown fields are ignored
so that schema drift on the provider side does not break parsing.
"""

from __future__ import annotations

import re
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/w500"
IMDB_ID_PATTERN = re.compile(r"^tt\d{7,}$")

T = TypeVar("T")


def _year_from(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = re.match(r"\s*(\d{4})", value)
    return int(match.group(1)) if match else None


def valid_imdb_id(value: Optional[str]) -> Optional[str]:
    """Return ``value`` when it looks like an IMDB title id, else None."""
    if not value:
        return None
    value = value.strip()
    return value if IMDB_ID_PATTERN.match(value) else None


class TmdbMovie(BaseModel):
    """TMDB movie from search, details or find responses."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: Optional[str] = None
    original_title: Optional[str] = None
    original_language: Optional[str] = None
    release_date: Optional[str] = None
    poster_path: Optional[str] = None
    imdb_id: Optional[str] = None

    @field_validator("imdb_id")
    @classmethod
    def _check_imdb_id(cls, value: Optional[str]) -> Optional[str]:
        return valid_imdb_id(value)

    @property
    def release_year(self) -> Optional[int]:
        return _year_from(self.release_date)

    @property
    def poster_url(self) -> Optional[str]:
        return f"{TMDB_IMAGE_BASE}{self.poster_path}" if self.poster_path else None


class TmdbTvShow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: Optional[str] = None
    original_name: Optional[str] = None
    original_language: Optional[str] = None
    first_air_date: Optional[str] = None
    poster_path: Optional[str] = None

    @property
    def first_air_year(self) -> Optional[int]:
        return _year_from(self.first_air_date)

    @property
    def poster_url(self) -> Optional[str]:
        return f"{TMDB_IMAGE_BASE}{self.poster_path}" if self.poster_path else None


class TmdbExternalIds(BaseModel):
    model_config = ConfigDict(extra="ignore")

    imdb_id: Optional[str] = None
    tvdb_id: Optional[int] = None

    @field_validator("imdb_id")
    @classmethod
    def _check_imdb_id(cls, value: Optional[str]) -> Optional[str]:
        return valid_imdb_id(value)


class TmdbPage(BaseModel, Generic[T]):
    """A page of TMDB search results."""

    model_config = ConfigDict(extra="ignore")

    page: int = 1
    results: list[T] = Field(default_factory=list)
    total_results: int = 0


class TmdbFindResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    movie_results: list[TmdbMovie] = Field(default_factory=list)
    tv_results: list[TmdbTvShow] = Field(default_factory=list)


class OmdbSearchItem(BaseModel):
    """An OMDB search hit; ``year`` may be a range such as ``2025–2026``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = Field(alias="Title")
    year: Optional[str] = Field(default=None, alias="Year")
    imdb_id: Optional[str] = Field(default=None, alias="imdbID")
    kind: Optional[str] = Field(default=None, alias="Type")
    poster: Optional[str] = Field(default=None, alias="Poster")

    @field_validator("imdb_id")
    @classmethod
    def _check_imdb_id(cls, value: Optional[str]) -> Optional[str]:
        return valid_imdb_id(value)

    @property
    def start_year(self) -> Optional[int]:
        return _year_from(self.year)


class OmdbSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    response: str = Field(default="False", alias="Response")
    search: list[OmdbSearchItem] = Field(default_factory=list, alias="Search")
    error: Optional[str] = Field(default=None, alias="Error")

    @property
    def ok(self) -> bool:
        return self.response.lower() == "true"


class TvdbRemoteId(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    source_name: Optional[str] = Field(default=None, alias="sourceName")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> str:
        return str(value)


class TvdbArtwork(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[int] = None
    image: Optional[str] = None


class TvdbSearchResult(BaseModel):
    """A TVDB v4 search hit. ``tvdb_id`` arrives as a string."""

    model_config = ConfigDict(extra="ignore")

    tvdb_id: Optional[int] = None
    name: Optional[str] = None
    year: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("tvdb_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> Optional[int]:
        if value in (None, ""):
            return None
        try:
            return int(str(value))
        except ValueError:
            return None


class TvdbSeries(BaseModel):
    """Extended TVDB series record."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    name: Optional[str] = None
    year: Optional[str] = None
    image: Optional[str] = None
    remote_ids: list[TvdbRemoteId] = Field(default_factory=list, alias="remoteIds")
    artworks: list[TvdbArtwork] = Field(default_factory=list)

    def _remote(self, source: str) -> Optional[str]:
        for remote in self.remote_ids:
            if (remote.source_name or "").lower() == source.lower():
                return remote.id
        return None

    @property
    def tmdb_id(self) -> Optional[int]:
        value = self._remote("TheMovieDB")
        return int(value) if value and value.isdigit() else None

    @property
    def imdb_id(self) -> Optional[str]:
        return valid_imdb_id(self._remote("IMDB"))

    @property
    def poster_url(self) -> Optional[str]:
        for artwork in self.artworks:
            # Artwork type 2 is the series poster
            if artwork.type == 2 and artwork.image:
                return artwork.image
        return self.image


class WebSearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    url: str
    description: Optional[str] = None


class BraveWebResults(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[WebSearchResult] = Field(default_factory=list)


class BraveSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    web: Optional[BraveWebResults] = None

    @property
    def results(self) -> list[WebSearchResult]:
        return self.web.results if self.web else []
