"""Title and feed-entry parsers.

All parsers are pure: no network access, no hidden state, no exceptions for
unrecognized input.
"""

from .feed_item import FeedItem, ParsedFeedItem, parse_feed_item
from .release_title import (
    AUDIO_UNKNOWN,
    CODEC_UNKNOWN,
    RESOLUTION_UNKNOWN,
    SOURCE_OTHER,
    ParsedRelease,
    clean_title,
    extract_year,
    normalize_title,
    parse_release,
)
from .tv_title import ShowSeason, parse_show_season, show_match_key, strip_years

__all__ = [
    "AUDIO_UNKNOWN",
    "CODEC_UNKNOWN",
    "RESOLUTION_UNKNOWN",
    "SOURCE_OTHER",
    "FeedItem",
    "ParsedFeedItem",
    "ParsedRelease",
    "ShowSeason",
    "clean_title",
    "extract_year",
    "normalize_title",
    "parse_feed_item",
    "parse_release",
    "parse_show_season",
    "show_match_key",
    "strip_years",
]
