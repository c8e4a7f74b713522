"""Conversion of raw feed entries into parsed release candidates."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from .release_title import (
    ParsedRelease,
    clean_title,
    extract_year,
    normalize_title,
    parse_release,
    size_to_mb,
)

# TMDB id hints inside item descriptions, most specific first
_TMDB_DESCRIPTION_PATTERNS = [
    re.compile(r"themoviedb\.org/movie/(\d+)", re.IGNORECASE),
    re.compile(r"TMDB\s+Link[^\n]*?(\d{4,})", re.IGNORECASE),
    re.compile(r"TMDB[^\n<]*?(?:movie/|\bID\b[:\s#]*)(\d+)", re.IGNORECASE),
]

_SIZE_DESCRIPTION_PATTERNS = [
    re.compile(r"<strong>Size</strong>:\s*(\d+(?:\.\d+)?)\s*(GiB|MiB|GB|MB)", re.IGNORECASE),
    re.compile(r"Size[:\s]+(\d+(?:\.\d+)?)\s*(GiB|MiB|GB|MB)", re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*(GiB|MiB|GB|MB)", re.IGNORECASE),
]


@dataclass(frozen=True)
class FeedItem:
    """A raw feed entry as delivered by the feed reader."""

    title: str
    link: str
    guid: str
    published_at: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ParsedFeedItem:
    """A feed entry with its derived release attributes and lookup hints."""

    guid: str
    title: str
    link: str
    feed_name: str
    source_site: str
    published_at: Optional[str]
    clean_title: str
    normalized_title: str
    year: Optional[int]
    tmdb_id: Optional[int]
    size_mb: Optional[float]
    parsed: ParsedRelease

    def to_dict(self) -> dict[str, Any]:
        return {
            "guid": self.guid,
            "title": self.title,
            "link": self.link,
            "feed_name": self.feed_name,
            "source_site": self.source_site,
            "published_at": self.published_at,
            "clean_title": self.clean_title,
            "normalized_title": self.normalized_title,
            "year": self.year,
            "tmdb_id": self.tmdb_id,
            "size_mb": self.size_mb,
            "parsed": self.parsed.to_dict(),
        }


def extract_tmdb_id(description: str) -> Optional[int]:
    for pattern in _TMDB_DESCRIPTION_PATTERNS:
        match = pattern.search(description)
        if match:
            return int(match.group(1))
    return None


def extract_description_size_mb(description: str) -> Optional[float]:
    for pattern in _SIZE_DESCRIPTION_PATTERNS:
        match = pattern.search(description)
        if match:
            return size_to_mb(float(match.group(1)), match.group(2))
    return None


def parse_feed_item(item: FeedItem, *, feed_name: str, source_site: str) -> ParsedFeedItem:
    """Parse a feed entry into a release candidate.

    The title supplies quality attributes, year and clean title. The
    description, when present, may contribute a TMDB id and, if the title
    carries no size, the release size.

    Args:
        item: Raw feed entry.
        feed_name: Name of the configured feed the entry came from.
        source_site: Site label recorded on the release.

    Returns:
        ParsedFeedItem ready for matching.
    """
    title = item.title or item.link or "Unknown"
    parsed = parse_release(title)
    description = item.description or ""

    size_mb = parsed.size_mb
    if size_mb is None and description:
        size_mb = extract_description_size_mb(description)

    return ParsedFeedItem(
        guid=item.guid or item.link,
        title=title,
        link=item.link,
        feed_name=feed_name,
        source_site=source_site,
        published_at=item.published_at,
        clean_title=clean_title(title),
        normalized_title=normalize_title(title),
        year=extract_year(title),
        tmdb_id=extract_tmdb_id(description) if description else None,
        size_mb=size_mb,
        parsed=parsed,
    )
