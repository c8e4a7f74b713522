"""Release status state machine.

``classify_release`` and ``classify_tv_release`` are pure functions of their
inputs. Preserving terminal statuses across runs is the caller's job, done
through ``resolve_status`` before a computed status is written.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class ReleaseStatus(str, Enum):
    NEW = "NEW"
    IGNORED = "IGNORED"
    UPGRADE_CANDIDATE = "UPGRADE_CANDIDATE"
    ATTENTION_NEEDED = "ATTENTION_NEEDED"
    ADDED = "ADDED"
    UPGRADED = "UPGRADED"


class TvReleaseStatus(str, Enum):
    NEW_SHOW = "NEW_SHOW"
    NEW_SEASON = "NEW_SEASON"
    IGNORED = "IGNORED"
    ADDED = "ADDED"


TERMINAL_STATUSES = frozenset({ReleaseStatus.ADDED.value, ReleaseStatus.UPGRADED.value})
TV_TERMINAL_STATUSES = frozenset({TvReleaseStatus.ADDED.value})

AnyStatus = Union[ReleaseStatus, TvReleaseStatus]


@dataclass(frozen=True)
class ReconciliationInput:
    """Signals feeding the movie state machine.

    Attributes:
        allowed: Admission check result for the candidate
        held_match: A held-library entry matched the candidate
        has_primary_id: Identifier resolution produced a TMDB id
        score_delta: Candidate score minus held-file score
        size_delta_percent: Candidate size growth over the held file
        upgrade_threshold: Minimum score delta for an upgrade
        min_size_increase_percent: Minimum size growth for an upgrade
    """

    allowed: bool
    held_match: bool
    has_primary_id: bool
    score_delta: float = 0.0
    size_delta_percent: float = 0.0
    upgrade_threshold: float = 0.0
    min_size_increase_percent: float = 0.0


@dataclass(frozen=True)
class Decision:
    status: AnyStatus
    reason: str


def decide_release(signals: ReconciliationInput) -> Decision:
    """Classify a movie release and explain why."""
    if not signals.allowed:
        if signals.held_match:
            return Decision(ReleaseStatus.IGNORED, "Resolution not allowed; title already held")
        return Decision(ReleaseStatus.IGNORED, "Resolution not allowed")

    if not signals.held_match:
        if not signals.has_primary_id:
            return Decision(ReleaseStatus.ATTENTION_NEEDED, "No TMDB id could be resolved")
        return Decision(ReleaseStatus.NEW, "Not in library")

    score_ok = signals.score_delta >= signals.upgrade_threshold
    size_ok = signals.size_delta_percent >= signals.min_size_increase_percent
    if score_ok and size_ok:
        return Decision(
            ReleaseStatus.UPGRADE_CANDIDATE,
            f"Score +{signals.score_delta:g}, size +{signals.size_delta_percent:.1f}%",
        )
    if not score_ok:
        return Decision(
            ReleaseStatus.IGNORED,
            f"Score delta {signals.score_delta:g} below threshold {signals.upgrade_threshold:g}",
        )
    return Decision(
        ReleaseStatus.IGNORED,
        f"Size delta {signals.size_delta_percent:.1f}% below {signals.min_size_increase_percent:g}%",
    )


def classify_release(signals: ReconciliationInput) -> ReleaseStatus:
    return decide_release(signals).status  # type: ignore[return-value]


def classify_tv_release(*, show_held: bool, season_number: Optional[int], season_held: bool) -> TvReleaseStatus:
    """Classify a TV release.

    Args:
        show_held: The show exists in the held library
        season_number: Parsed season, None when the title has no season marker
        season_held: The season exists and is monitored in the held library

    Returns:
        NEW_SHOW, NEW_SEASON or IGNORED.
    """
    if not show_held:
        return TvReleaseStatus.NEW_SHOW
    if season_number is not None and not season_held:
        return TvReleaseStatus.NEW_SEASON
    return TvReleaseStatus.IGNORED


def resolve_status(previous: Optional[str], computed: AnyStatus) -> str:
    """Return the status to persist, keeping a terminal previous status verbatim."""
    if previous in TERMINAL_STATUSES or previous in TV_TERMINAL_STATUSES:
        return previous  # type: ignore[return-value]
    return computed.value


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES or status in TV_TERMINAL_STATUSES
