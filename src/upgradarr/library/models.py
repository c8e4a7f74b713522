"""Held-library records as reported by Radarr and Sonarr."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..providers.models import valid_imdb_id

BYTES_PER_MB = 1024 * 1024


class _ArrModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MediaInfo(_ArrModel):
    video_codec: Optional[str] = Field(default=None, alias="videoCodec")
    audio_codec: Optional[str] = Field(default=None, alias="audioCodec")
    audio_channels: Optional[float] = Field(default=None, alias="audioChannels")
    audio_languages: Optional[str] = Field(default=None, alias="audioLanguages")


class MovieFile(_ArrModel):
    relative_path: Optional[str] = Field(default=None, alias="relativePath")
    size: int = 0
    media_info: Optional[MediaInfo] = Field(default=None, alias="mediaInfo")

    @property
    def size_mb(self) -> Optional[float]:
        return self.size / BYTES_PER_MB if self.size else None


class Language(_ArrModel):
    name: Optional[str] = None


class HeldMovie(_ArrModel):
    """A Radarr movie and, when downloaded, its file."""

    id: int
    title: str
    year: Optional[int] = None
    tmdb_id: Optional[int] = Field(default=None, alias="tmdbId")
    imdb_id: Optional[str] = Field(default=None, alias="imdbId")
    has_file: bool = Field(default=False, alias="hasFile")
    movie_file: Optional[MovieFile] = Field(default=None, alias="movieFile")
    original_language: Optional[Language] = Field(default=None, alias="originalLanguage")

    @field_validator("imdb_id")
    @classmethod
    def _check_imdb_id(cls, value: Optional[str]) -> Optional[str]:
        return valid_imdb_id(value)

    @field_validator("tmdb_id")
    @classmethod
    def _zero_is_missing(cls, value: Optional[int]) -> Optional[int]:
        return value or None

    @property
    def original_language_name(self) -> Optional[str]:
        return self.original_language.name if self.original_language else None


class SeasonInfo(_ArrModel):
    season_number: int = Field(alias="seasonNumber")
    monitored: bool = False


class SeriesImage(_ArrModel):
    cover_type: Optional[str] = Field(default=None, alias="coverType")
    remote_url: Optional[str] = Field(default=None, alias="remoteUrl")


class HeldShow(_ArrModel):
    """A Sonarr series with its seasons."""

    id: int
    title: str
    year: Optional[int] = None
    tvdb_id: Optional[int] = Field(default=None, alias="tvdbId")
    tmdb_id: Optional[int] = Field(default=None, alias="tmdbId")
    imdb_id: Optional[str] = Field(default=None, alias="imdbId")
    seasons: list[SeasonInfo] = Field(default_factory=list)
    images: list[SeriesImage] = Field(default_factory=list)

    @field_validator("imdb_id")
    @classmethod
    def _check_imdb_id(cls, value: Optional[str]) -> Optional[str]:
        return valid_imdb_id(value)

    @field_validator("tvdb_id", "tmdb_id")
    @classmethod
    def _zero_is_missing(cls, value: Optional[int]) -> Optional[int]:
        return value or None

    def has_season(self, season_number: Optional[int]) -> bool:
        """True when the season exists and is monitored; no season means the show itself."""
        if season_number is None:
            return True
        return any(season.season_number == season_number and season.monitored for season in self.seasons)

    @property
    def poster_url(self) -> Optional[str]:
        for image in self.images:
            if image.cover_type == "poster" and image.remote_url:
                return image.remote_url
        return None
