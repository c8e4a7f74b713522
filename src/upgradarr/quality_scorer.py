"""Quality scoring for release upgrade decisions.

Scores are an additive weighted sum: resolution + source tag + codec + audio,
each looked up in its weight table with a sentinel fallback, plus the dubbed
penalty and the preferred-language bonus. Every function here is pure.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Optional

from .parsers.release_title import AUDIO_UNKNOWN, CODEC_UNKNOWN, RESOLUTION_UNKNOWN, SOURCE_OTHER

if TYPE_CHECKING:
    from .config import QualitySettings
    from .parsers.release_title import ParsedRelease

SIZE_HEURISTIC_DIVISOR = 100.0
SIZE_HEURISTIC_CAP = 50.0

CodecAdvice = Literal["preferred", "discouraged", "neutral"]


@dataclass(frozen=True)
class ScoringContext:
    """Per-release facts that are not part of the title attributes.

    Attributes:
        is_dubbed: Audio languages exclude the title's original language
        preferred_language: Caller already knows a preferred language is present
    """

    is_dubbed: bool = False
    preferred_language: bool = False


@dataclass
class QualityScore:
    """Computed quality score with breakdown.

    Attributes:
        total: Sum of all components
        resolution_score: Points from resolution
        source_score: Points from source tag
        codec_score: Points from codec
        audio_score: Points from audio format
        dubbed_penalty: Penalty applied for dubbed audio (0 when not dubbed)
        language_bonus: Bonus for a preferred audio language
        size_heuristic: True when the total came from the size fallback
    """

    total: float
    resolution_score: float = 0
    source_score: float = 0
    codec_score: float = 0
    audio_score: float = 0
    dubbed_penalty: float = 0
    language_bonus: float = 0
    size_heuristic: bool = False

    def to_dict(self) -> dict[str, float | bool]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "total": self.total,
            "resolution_score": self.resolution_score,
            "source_score": self.source_score,
            "codec_score": self.codec_score,
            "audio_score": self.audio_score,
            "dubbed_penalty": self.dubbed_penalty,
            "language_bonus": self.language_bonus,
            "size_heuristic": self.size_heuristic,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, float | bool]) -> QualityScore:
        """Create from a dictionary."""
        return cls(
            total=float(data.get("total", 0)),
            resolution_score=float(data.get("resolution_score", 0)),
            source_score=float(data.get("source_score", 0)),
            codec_score=float(data.get("codec_score", 0)),
            audio_score=float(data.get("audio_score", 0)),
            dubbed_penalty=float(data.get("dubbed_penalty", 0)),
            language_bonus=float(data.get("language_bonus", 0)),
            size_heuristic=bool(data.get("size_heuristic", False)),
        )


def _weight(table: Mapping[str, float], key: str, fallback_key: str) -> float:
    """Look up ``key`` case-insensitively, falling back to the sentinel entry."""
    folded = {str(name).lower(): value for name, value in table.items()}
    if key.lower() in folded:
        return folded[key.lower()]
    return folded.get(fallback_key.lower(), 0)


def has_preferred_language(languages: Iterable[str], settings: QualitySettings) -> bool:
    preferred = {code.lower() for code in settings.preferred_audio_languages}
    return any(code.lower() in preferred for code in languages)


def detect_dubbed(audio_languages: Iterable[str], original_language: Optional[str]) -> bool:
    """A release is dubbed when it names audio languages that exclude the original one."""
    languages = [code.lower() for code in audio_languages]
    if not original_language or not languages:
        return False
    return original_language.strip().lower()[:2] not in languages


def compute_quality_score(
    parsed: ParsedRelease,
    settings: QualitySettings,
    context: ScoringContext | None = None,
) -> QualityScore:
    """Compute the additive quality score of a release.

    Args:
        parsed: Attributes extracted from the release title.
        settings: Weight tables and bonuses.
        context: Dubbing and language facts for the release.

    Returns:
        QualityScore with total and per-component breakdown.

    Examples:
        >>> parsed = parse_release("Movie.2021.1080p.AMZN.WEB-DL.DDP5.1.x264")
        >>> compute_quality_score(parsed, QualitySettings()).total
        335.0  # 80 (1080p) + 90 (AMZN) + 80 (x264) + 85 (DDP5.1)
    """
    context = context or ScoringContext()

    resolution_score = _weight(settings.resolution_weights, parsed.resolution, RESOLUTION_UNKNOWN)
    source_score = _weight(settings.source_tag_weights, parsed.source_tag, SOURCE_OTHER)
    codec_score = _weight(settings.codec_weights, parsed.codec, CODEC_UNKNOWN)
    audio_score = _weight(settings.audio_weights, parsed.audio, AUDIO_UNKNOWN)

    dubbed_penalty = settings.dubbed_penalty if context.is_dubbed else 0
    preferred = context.preferred_language or has_preferred_language(parsed.audio_languages, settings)
    language_bonus = settings.preferred_language_bonus if preferred else 0

    total = resolution_score + source_score + codec_score + audio_score + dubbed_penalty + language_bonus
    return QualityScore(
        total=float(total),
        resolution_score=float(resolution_score),
        source_score=float(source_score),
        codec_score=float(codec_score),
        audio_score=float(audio_score),
        dubbed_penalty=float(dubbed_penalty),
        language_bonus=float(language_bonus),
    )


def size_heuristic_score(size_mb: float) -> float:
    return min(size_mb / SIZE_HEURISTIC_DIVISOR, SIZE_HEURISTIC_CAP)


def score_held_file(
    parsed: ParsedRelease,
    settings: QualitySettings,
    context: ScoringContext | None = None,
    *,
    size_mb: Optional[float] = None,
) -> QualityScore:
    """Score a file already held in the library.

    When the file name yields no recognizable attribute and its size is known,
    the score degrades to ``min(size_mb / 100, 50)`` so a large unparseable
    file is not treated as worthless.
    """
    if parsed.is_unrecognized and size_mb:
        return QualityScore(total=size_heuristic_score(size_mb), size_heuristic=True)
    return compute_quality_score(parsed, settings, context)


def is_allowed(parsed: ParsedRelease, settings: QualitySettings) -> bool:
    """Return True when the release's resolution is admitted by configuration.

    Codec preferences never gate admission; a resolution without a rule is
    not admitted.
    """
    rule = settings.rule_for(parsed.resolution)
    return bool(rule and rule.allowed)


def codec_advice(parsed: ParsedRelease, settings: QualitySettings) -> CodecAdvice:
    """Advisory codec signal for operators; never used for admission."""
    rule = settings.rule_for(parsed.resolution)
    if rule is None or parsed.codec == CODEC_UNKNOWN:
        return "neutral"
    codec = parsed.codec.lower()
    aliases = {codec, "hevc" if codec == "x265" else "avc" if codec == "x264" else codec}
    if aliases & {name.lower() for name in rule.preferred_codecs}:
        return "preferred"
    if aliases & {name.lower() for name in rule.discouraged_codecs}:
        return "discouraged"
    return "neutral"


def size_delta_percent(candidate_mb: Optional[float], existing_mb: Optional[float]) -> float:
    """Relative size growth of the candidate over the held file, in percent.

    Returns 0 when either size is unknown or the held size is zero.
    """
    if not candidate_mb or not existing_mb:
        return 0.0
    return (candidate_mb - existing_mb) / existing_mb * 100
