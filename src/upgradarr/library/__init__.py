"""Held-library clients (Radarr, Sonarr) and snapshot indexes."""

from .client import ArrClient, LibraryApiError
from .held_file import held_file_attributes
from .index import HeldLibraryIndex, HeldShowIndex
from .models import HeldMovie, HeldShow, MediaInfo, MovieFile, SeasonInfo
from .radarr import RadarrClient
from .sonarr import SonarrClient

__all__ = [
    "ArrClient",
    "HeldLibraryIndex",
    "HeldMovie",
    "HeldShow",
    "HeldShowIndex",
    "LibraryApiError",
    "MediaInfo",
    "MovieFile",
    "RadarrClient",
    "SeasonInfo",
    "SonarrClient",
    "held_file_attributes",
]
