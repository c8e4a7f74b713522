"""Quality attributes of files already held in the library."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Optional

from ..parsers.release_title import AUDIO_UNKNOWN, CODEC_UNKNOWN, ParsedRelease, parse_release
from .models import HeldMovie, MediaInfo

# MediaInfo codec strings, checked only when the file name has no codec
_VIDEO_CODECS = [
    (re.compile(r"265|hevc", re.IGNORECASE), "x265"),
    (re.compile(r"264|avc", re.IGNORECASE), "x264"),
]

_AUDIO_CODECS = [
    (re.compile(r"atmos", re.IGNORECASE), "Atmos"),
    (re.compile(r"truehd", re.IGNORECASE), "TrueHD"),
    (re.compile(r"e-?ac-?3|ddp|dd\+", re.IGNORECASE), "DDP5.1"),
    (re.compile(r"\bac-?3\b", re.IGNORECASE), "DD5.1"),
]

_LANGUAGE_NAMES = {
    "english": "en",
    "hindi": "hi",
    "telugu": "te",
    "tamil": "ta",
    "kannada": "kn",
    "malayalam": "ml",
}


def _first(patterns: list[tuple[re.Pattern[str], str]], text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for pattern, value in patterns:
        if pattern.search(text):
            return value
    return None


def language_code(language: Optional[str]) -> Optional[str]:
    """ISO-639-1 code for a language given as a name ("Hindi") or a code ("hi")."""
    if not language:
        return None
    text = language.strip().lower()
    return _LANGUAGE_NAMES.get(text, text[:2]) or None


def media_info_languages(media_info: MediaInfo) -> tuple[str, ...]:
    """Map MediaInfo's ``English/Hindi`` style language list to ISO codes."""
    codes: list[str] = []
    for name in re.split(r"[/,]", media_info.audio_languages or ""):
        code = _LANGUAGE_NAMES.get(name.strip().lower())
        if code and code not in codes:
            codes.append(code)
    return tuple(codes)


def held_file_attributes(movie: HeldMovie) -> Optional[ParsedRelease]:
    """Parse a held movie's file name, filling gaps from MediaInfo.

    Returns:
        The enriched attributes with ``size_mb`` taken from the file size, or
        None when the movie has no file.
    """
    movie_file = movie.movie_file
    if movie_file is None or not (movie_file.relative_path or movie_file.size):
        return None

    parsed = parse_release(movie_file.relative_path or "")
    updates: dict = {"size_mb": movie_file.size_mb}
    media_info = movie_file.media_info
    if media_info is not None:
        if parsed.codec == CODEC_UNKNOWN:
            codec = _first(_VIDEO_CODECS, media_info.video_codec)
            if codec:
                updates["codec"] = codec
        if parsed.audio == AUDIO_UNKNOWN:
            audio = _first(_AUDIO_CODECS, media_info.audio_codec)
            if audio:
                updates["audio"] = audio
        if not parsed.audio_languages:
            languages = media_info_languages(media_info)
            if languages:
                updates["audio_languages"] = languages
    return replace(parsed, **updates)
