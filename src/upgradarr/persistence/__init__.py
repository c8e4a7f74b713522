"""Persistence layer for reconciliation state and structured logs."""

from .log_store import LogStore, log_db_path
from .release_store import FeedItemRecord, ReleaseRecord, ReleaseStore, TvReleaseRecord

__all__ = [
    "FeedItemRecord",
    "LogStore",
    "ReleaseRecord",
    "ReleaseStore",
    "TvReleaseRecord",
    "log_db_path",
]
