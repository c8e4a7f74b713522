"""Per-item reconciliation of a movie release against the held library."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import QualitySettings
from .library.held_file import held_file_attributes, language_code
from .library.index import HeldLibraryIndex
from .library.models import HeldMovie
from .logging_utils import render_fields_block
from .parsers.feed_item import ParsedFeedItem
from .persistence.release_store import ReleaseRecord
from .quality_scorer import (
    CodecAdvice,
    QualityScore,
    ScoringContext,
    codec_advice,
    compute_quality_score,
    detect_dubbed,
    is_allowed,
    score_held_file,
    size_delta_percent,
)
from .reconciliation import Decision, ReconciliationInput, decide_release
from .resolver import ExternalIdentifiers, IdentifierResolver

LOGGER = logging.getLogger(__name__)


@dataclass
class MatchResult:
    record: ReleaseRecord
    decision: Decision
    identifiers: ExternalIdentifiers
    held: Optional[HeldMovie] = None
    candidate_score: Optional[QualityScore] = None
    held_score: Optional[QualityScore] = None
    codec_advice: CodecAdvice = "neutral"


def identifiers_from_record(previous: Optional[ReleaseRecord], hint_tmdb_id: Optional[int]) -> ExternalIdentifiers:
    """Starting identifiers for resolution: stored values and pins, else the feed hint."""
    if previous is None:
        return ExternalIdentifiers(tmdb_id=hint_tmdb_id)
    return ExternalIdentifiers(
        tmdb_id=previous.tmdb_id or (None if previous.tmdb_id_manual else hint_tmdb_id),
        imdb_id=previous.imdb_id,
        tmdb_id_manual=previous.tmdb_id_manual,
        imdb_id_manual=previous.imdb_id_manual,
        title=previous.tmdb_title,
        original_language=previous.tmdb_original_language,
        poster_url=previous.tmdb_poster_url,
    )


def match_movie_release(
    item: ParsedFeedItem,
    *,
    resolver: IdentifierResolver,
    index: HeldLibraryIndex,
    settings: QualitySettings,
    previous: Optional[ReleaseRecord] = None,
) -> MatchResult:
    """Resolve, score and classify one movie release.

    Args:
        item: Parsed feed entry
        resolver: Identifier resolver sharing the run's provider gate
        index: Held-library snapshot
        settings: Quality settings for the run
        previous: Stored record for the same guid, if any

    Returns:
        MatchResult whose record carries the computed (not yet preserved) status.
    """
    parsed = item.parsed
    ids = resolver.resolve(item.title, item.clean_title, item.year, identifiers_from_record(previous, item.tmdb_id))

    held = index.lookup_by_primary_id(ids.tmdb_id)
    if held is None and not ids.tmdb_id:
        held = index.lookup_by_title(item.clean_title, item.year)

    original_language = language_code(ids.original_language) or (
        language_code(held.original_language_name) if held else None
    )
    is_dubbed = detect_dubbed(parsed.audio_languages, original_language)
    candidate_score = compute_quality_score(parsed, settings, ScoringContext(is_dubbed=is_dubbed))

    held_score = None
    held_attributes = None
    existing_size_mb = None
    if held is not None:
        held_attributes = held_file_attributes(held)
        if held_attributes is not None:
            existing_size_mb = held_attributes.size_mb
            held_context = ScoringContext(
                is_dubbed=detect_dubbed(held_attributes.audio_languages, original_language),
            )
            held_score = score_held_file(held_attributes, settings, held_context, size_mb=existing_size_mb)

    allowed = is_allowed(parsed, settings)
    score_delta = candidate_score.total - (held_score.total if held_score else 0)
    size_delta = size_delta_percent(item.size_mb, existing_size_mb)
    decision = decide_release(
        ReconciliationInput(
            allowed=allowed,
            held_match=held is not None,
            has_primary_id=bool(ids.tmdb_id),
            score_delta=score_delta,
            size_delta_percent=size_delta,
            upgrade_threshold=settings.upgrade_threshold,
            min_size_increase_percent=settings.min_size_increase_percent_for_upgrade,
        )
    )
    advice = codec_advice(parsed, settings)

    LOGGER.debug(
        render_fields_block(
            f"Matched {item.title}",
            [
                ("Resolution", parsed.resolution),
                ("Source", parsed.source_tag),
                ("Codec", f"{parsed.codec} ({advice})"),
                ("Audio", parsed.audio),
                ("TMDB", ids.tmdb_id),
                ("IMDB", ids.imdb_id),
                ("Held", held.title if held else None),
                ("Score", candidate_score.total),
                ("Held score", held_score.total if held_score else None),
                ("Size delta %", size_delta),
                ("Status", decision.status.value),
                ("Reason", decision.reason),
            ],
            pad_top=False,
        ),
        extra={"release_title": item.title},
    )

    record = ReleaseRecord(
        guid=item.guid,
        title=item.title,
        normalized_title=item.normalized_title,
        clean_title=item.clean_title,
        year=item.year,
        source_site=item.source_site,
        feed_name=item.feed_name,
        link=item.link,
        published_at=item.published_at,
        resolution=parsed.resolution,
        source_tag=parsed.source_tag,
        codec=parsed.codec,
        audio=parsed.audio,
        audio_languages=list(parsed.audio_languages),
        rss_size_mb=item.size_mb,
        existing_size_mb=existing_size_mb,
        tmdb_id=ids.tmdb_id,
        imdb_id=ids.imdb_id,
        tmdb_id_manual=ids.tmdb_id_manual,
        imdb_id_manual=ids.imdb_id_manual,
        tmdb_title=held.title if held else ids.title,
        tmdb_original_language=original_language,
        tmdb_poster_url=ids.poster_url,
        is_dubbed=is_dubbed,
        library_movie_id=held.id if held else None,
        library_movie_title=held.title if held else None,
        existing_file_path=held.movie_file.relative_path if held and held.movie_file else None,
        existing_file_attributes=held_attributes.to_dict() if held_attributes else None,
        existing_quality_score=held_score.total if held_score else None,
        new_quality_score=candidate_score.total,
        status=decision.status.value,
    )
    return MatchResult(
        record=record,
        decision=decision,
        identifiers=ids,
        held=held,
        candidate_score=candidate_score,
        held_score=held_score,
        codec_advice=advice,
    )
