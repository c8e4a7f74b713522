"""Release attribute extraction from feed titles and file names.

Each attribute is resolved by walking an ordered list of ``(pattern, value)``
rules and keeping the first match. The order is a precedence policy: a title
carrying both an HD and an SD marker resolves to 720p because the HD rule is
listed first. Unmatched attributes fall back to sentinel values; parsing
never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

RESOLUTION_UNKNOWN = "UNKNOWN"
SOURCE_OTHER = "OTHER"
CODEC_UNKNOWN = "UNKNOWN"
AUDIO_UNKNOWN = "Unknown"

RESOLUTIONS = ("2160p", "1080p", "720p", "480p", RESOLUTION_UNKNOWN)


@dataclass(frozen=True)
class ParsedRelease:
    """Structured attributes derived from a release title.

    Attributes:
        resolution: One of "2160p", "1080p", "720p", "480p" or "UNKNOWN"
        source_tag: Streaming source tag (e.g. "AMZN", "NF"), "OTHER" if absent
        codec: "x265", "x264" or "UNKNOWN"
        audio: Audio label (e.g. "Atmos", "DDP5.1"), "Unknown" if absent
        size_mb: Release size in megabytes when the title carries one
        audio_languages: ISO-639-1 codes of the audio languages named in the title
    """

    resolution: str = RESOLUTION_UNKNOWN
    source_tag: str = SOURCE_OTHER
    codec: str = CODEC_UNKNOWN
    audio: str = AUDIO_UNKNOWN
    size_mb: Optional[float] = None
    audio_languages: tuple[str, ...] = ()

    @property
    def is_unrecognized(self) -> bool:
        """True when no quality attribute could be extracted."""
        return (
            self.resolution == RESOLUTION_UNKNOWN
            and self.source_tag == SOURCE_OTHER
            and self.codec == CODEC_UNKNOWN
            and self.audio == AUDIO_UNKNOWN
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "resolution": self.resolution,
            "source_tag": self.source_tag,
            "codec": self.codec,
            "audio": self.audio,
            "size_mb": self.size_mb,
            "audio_languages": list(self.audio_languages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedRelease:
        """Create from a dictionary, tolerating missing keys."""
        size = data.get("size_mb")
        return cls(
            resolution=data.get("resolution") or RESOLUTION_UNKNOWN,
            source_tag=data.get("source_tag") or SOURCE_OTHER,
            codec=data.get("codec") or CODEC_UNKNOWN,
            audio=data.get("audio") or AUDIO_UNKNOWN,
            size_mb=float(size) if size is not None else None,
            audio_languages=tuple(data.get("audio_languages") or ()),
        )


# Resolution rules (order matters: HD is tested before SD)
_RESOLUTION_PATTERNS = [
    (re.compile(r"\b2160[pi]", re.IGNORECASE), "2160p"),
    (re.compile(r"\b4k\b", re.IGNORECASE), "2160p"),
    (re.compile(r"\buhd\b", re.IGNORECASE), "2160p"),
    (re.compile(r"\b1080[pi]", re.IGNORECASE), "1080p"),
    (re.compile(r"\bfhd\b", re.IGNORECASE), "1080p"),
    (re.compile(r"\b720[pi]", re.IGNORECASE), "720p"),
    (re.compile(r"\bhd\b", re.IGNORECASE), "720p"),
    (re.compile(r"\b480[pi]", re.IGNORECASE), "480p"),
    (re.compile(r"\bsd\b", re.IGNORECASE), "480p"),
]

_CODEC_PATTERNS = [
    (re.compile(r"\bx\.?265\b", re.IGNORECASE), "x265"),
    (re.compile(r"\bhevc\b", re.IGNORECASE), "x265"),
    (re.compile(r"\bh\.?265\b", re.IGNORECASE), "x265"),
    (re.compile(r"\bx\.?264\b", re.IGNORECASE), "x264"),
    (re.compile(r"\bavc\b", re.IGNORECASE), "x264"),
    (re.compile(r"\bh\.?264\b", re.IGNORECASE), "x264"),
]

# Hotstar resolves to DSNP; the DSNP rule precedes HS
_SOURCE_PATTERNS = [
    (re.compile(r"\bamzn\b", re.IGNORECASE), "AMZN"),
    (re.compile(r"\bamazon\b", re.IGNORECASE), "AMZN"),
    (re.compile(r"\bprime\b", re.IGNORECASE), "AMZN"),
    (re.compile(r"\bnf\b", re.IGNORECASE), "NF"),
    (re.compile(r"\bnetflix\b", re.IGNORECASE), "NF"),
    (re.compile(r"\bjc\b", re.IGNORECASE), "JC"),
    (re.compile(r"\bjio\s?cinema\b", re.IGNORECASE), "JC"),
    (re.compile(r"\bzee5\b", re.IGNORECASE), "ZEE5"),
    (re.compile(r"\bdsnp\b", re.IGNORECASE), "DSNP"),
    (re.compile(r"\bdisney", re.IGNORECASE), "DSNP"),
    (re.compile(r"\bhotstar\b", re.IGNORECASE), "DSNP"),
    (re.compile(r"\bhs\b", re.IGNORECASE), "HS"),
    (re.compile(r"\bss\b", re.IGNORECASE), "SS"),
]

_AUDIO_PATTERNS = [
    (re.compile(r"\batmos\b", re.IGNORECASE), "Atmos"),
    (re.compile(r"\btrue[\s.-]?hd\b", re.IGNORECASE), "TrueHD"),
    (re.compile(r"\bddp[\s.]?5[\s.]?1(?!\d)", re.IGNORECASE), "DDP5.1"),
    (re.compile(r"\bdd\+[\s.]?5[\s.]?1(?!\d)", re.IGNORECASE), "DDP5.1"),
    (re.compile(r"\be-?ac-?3\b", re.IGNORECASE), "DDP5.1"),
    (re.compile(r"\bdd[\s.]?5[\s.]?1(?!\d)", re.IGNORECASE), "DD5.1"),
    (re.compile(r"\bac-?3\b", re.IGNORECASE), "DD5.1"),
    (re.compile(r"(?<![\d.])2\.0(?![\d.])"), "2.0"),
    (re.compile(r"\bstereo\b", re.IGNORECASE), "2.0"),
]

_LANGUAGE_PATTERNS = [
    (re.compile(r"\bhindi\b|हिंदी|हिन्दी", re.IGNORECASE), "hi"),
    (re.compile(r"\btelugu\b|తెలుగు", re.IGNORECASE), "te"),
    (re.compile(r"\btamil\b|தமிழ்", re.IGNORECASE), "ta"),
    (re.compile(r"\bkannada\b|ಕನ್ನಡ", re.IGNORECASE), "kn"),
    (re.compile(r"\bmalayalam\b|മലയാളം", re.IGNORECASE), "ml"),
    (re.compile(r"\benglish\b", re.IGNORECASE), "en"),
]

SIZE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(GiB|MiB|GB|MB)\b", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_SCENE_SEPARATORS = re.compile(r"[._]+")
_YEAR_CUT = re.compile(r"[\s(\[]+(?:19|20)\d{2}(?=$|[\s)\]])")
_QUALITY_CUT = re.compile(r"\s(?:2160|1080|720|480)[pi]\b", re.IGNORECASE)
_TRAILING_PARENTHETICAL = re.compile(r"\s*[(\[][^()\[\]]*[)\]]\s*$")


def _first_match(patterns: list[tuple[re.Pattern[str], str]], text: str, default: str) -> str:
    for pattern, value in patterns:
        if pattern.search(text):
            return value
    return default


def size_to_mb(amount: float, unit: str) -> float:
    """Normalize a size with a GB/GiB/MB/MiB unit to megabytes."""
    if unit.upper() in ("GB", "GIB"):
        return amount * 1024
    return amount


def extract_size_mb(text: str) -> Optional[float]:
    """Return the first size-with-unit in ``text`` as megabytes."""
    match = SIZE_PATTERN.search(text)
    if not match:
        return None
    return size_to_mb(float(match.group(1)), match.group(2))


def extract_languages(text: str) -> tuple[str, ...]:
    return tuple(code for pattern, code in _LANGUAGE_PATTERNS if pattern.search(text))


def parse_release(title: str) -> ParsedRelease:
    """Extract quality attributes from a release title.

    Args:
        title: Feed title or file name.

    Returns:
        ParsedRelease with sentinel values for anything not recognized.

    Examples:
        >>> parse_release("Movie.Name.2021.1080p.x264.DD5.1-GRP")
        ParsedRelease(resolution='1080p', source_tag='OTHER', codec='x264', audio='DD5.1', ...)

        >>> parse_release("Show.Title.2160p.HEVC.Atmos.3.2GB").size_mb
        3276.8
    """
    return ParsedRelease(
        resolution=_first_match(_RESOLUTION_PATTERNS, title, RESOLUTION_UNKNOWN),
        source_tag=_first_match(_SOURCE_PATTERNS, title, SOURCE_OTHER),
        codec=_first_match(_CODEC_PATTERNS, title, CODEC_UNKNOWN),
        audio=_first_match(_AUDIO_PATTERNS, title, AUDIO_UNKNOWN),
        size_mb=extract_size_mb(title),
        audio_languages=extract_languages(title),
    )


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace.

    The result is a fuzzy matching key, not a display value.
    """
    stripped = _PUNCTUATION.sub(" ", title.lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def extract_year(title: str) -> Optional[int]:
    match = YEAR_PATTERN.search(title)
    return int(match.group(0)) if match else None


def clean_title(title: str) -> str:
    """Derive a search hint by dropping year, quality suffix and annotations.

    This is a heuristic; callers treat the result as a hint, not ground truth.
    """
    text = title.strip()
    if not _WHITESPACE.search(text):
        text = _SCENE_SEPARATORS.sub(" ", text)

    cut = _YEAR_CUT.search(text) or _QUALITY_CUT.search(text)
    if cut and cut.start() > 0:
        text = text[: cut.start()]

    text = _TRAILING_PARENTHETICAL.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip(" -")
    return text or title.strip()
