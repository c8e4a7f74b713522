"""Link stored releases to held movies that appeared after they were matched."""

from __future__ import annotations

import logging
from dataclasses import replace

from .library.held_file import held_file_attributes
from .library.index import HeldLibraryIndex
from .persistence.release_store import ReleaseStore

LOGGER = logging.getLogger(__name__)


def backfill_library_links(store: ReleaseStore, index: HeldLibraryIndex) -> int:
    """Attach held-library details to releases with a TMDB id but no library link.

    Status is left untouched; the next matching pass re-evaluates it.

    Returns:
        Number of releases linked.
    """
    linked = 0
    for release in store.list_unlinked_releases():
        held = index.lookup_by_primary_id(release.tmdb_id)
        if held is None:
            continue
        attributes = held_file_attributes(held)
        store.upsert_release(
            replace(
                release,
                library_movie_id=held.id,
                library_movie_title=held.title,
                existing_size_mb=attributes.size_mb if attributes else release.existing_size_mb,
                existing_file_path=held.movie_file.relative_path if held.movie_file else release.existing_file_path,
                existing_file_attributes=attributes.to_dict() if attributes else release.existing_file_attributes,
                last_checked_at=None,
            )
        )
        LOGGER.info("Linked %s to held movie %s (TMDB %s)", release.title, held.title, release.tmdb_id)
        linked += 1
    return linked
