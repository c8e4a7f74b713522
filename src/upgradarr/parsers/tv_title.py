"""Show name and season extraction for TV release titles."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# Season markers, tried in order
_SEASON_PATTERNS = [
    re.compile(r"^(?P<show>.+?)[\s.]+S(?P<season>\d{1,3})E\d{1,4}", re.IGNORECASE),
    re.compile(r"^(?P<show>.+?)[\s.]+Season[\s.]*(?P<season>\d{1,3})\b", re.IGNORECASE),
    re.compile(r"^(?P<show>.+?)[\s.]+S(?P<season>\d{1,3})\b", re.IGNORECASE),
]

_YEAR_STRIP_PATTERNS = [
    re.compile(r"\s*\((?:19|20)\d{2}\)\s*"),
    re.compile(r"\s*\[(?:19|20)\d{2}\]\s*"),
    re.compile(r"(?<=\s)(?:19|20)\d{2}(?=\s)"),
    re.compile(r"\s+(?:19|20)\d{2}$"),
    re.compile(r"^(?:19|20)\d{2}\s+"),
]

_DOTS = re.compile(r"[._]+")
_SPACES = re.compile(r"\s+")
_TRAILING_NOISE = re.compile(r"[\s\-\[(]+$")


@dataclass(frozen=True)
class ShowSeason:
    show_name: str
    season_number: Optional[int] = None


def _tidy(text: str) -> str:
    text = _SPACES.sub(" ", _DOTS.sub(" ", text)).strip()
    return _TRAILING_NOISE.sub("", text)


def parse_show_season(title: str) -> ShowSeason:
    """Split a TV release title into show name and season number.

    Examples:
        >>> parse_show_season("Show.Name.S02E05.1080p.WEB")
        ShowSeason(show_name='Show Name', season_number=2)

        >>> parse_show_season("Show Name Season 3 Complete")
        ShowSeason(show_name='Show Name', season_number=3)

        >>> parse_show_season("Some Documentary")
        ShowSeason(show_name='Some Documentary', season_number=None)
    """
    text = title.strip()
    for pattern in _SEASON_PATTERNS:
        match = pattern.search(text)
        if match:
            show = _tidy(match.group("show"))
            if show:
                return ShowSeason(show_name=show, season_number=int(match.group("season")))
    return ShowSeason(show_name=_tidy(text) or text, season_number=None)


def strip_years(show_name: str) -> str:
    """Remove release years from a show name, wherever they appear."""
    text = show_name
    for pattern in _YEAR_STRIP_PATTERNS:
        text = pattern.sub(" ", text)
    return _SPACES.sub(" ", text).strip() or show_name.strip()


def show_match_key(show_name: str) -> str:
    """Lowercased, year-agnostic key used when comparing show names."""
    return strip_years(_tidy(show_name)).lower()
