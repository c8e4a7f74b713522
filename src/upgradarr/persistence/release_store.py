"""SQLite-backed store for feed items, releases and the held-library snapshot.

The store is the only component with cross-run memory: records are keyed by
the feed item's ``guid``, created on first sight and then only updated.
Terminal statuses and pinned identifiers are preserved by the upsert
statements themselves, so no caller can overwrite them by accident.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import PersistenceError
from ..library.models import HeldMovie, HeldShow
from ..parsers.feed_item import FeedItem
from ..providers.models import valid_imdb_id
from ..reconciliation import TERMINAL_STATUSES, TV_TERMINAL_STATUSES, ReleaseStatus, TvReleaseStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

LOGGER = logging.getLogger(__name__)


def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return dt.isoformat()


def _convert_datetime(data: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return datetime.fromisoformat(data.decode("utf-8"))


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("TIMESTAMP", _convert_datetime)

MOVIE_PIN_FIELDS = ("tmdb_id", "imdb_id")
TV_PIN_FIELDS = ("tvdb_id", "tmdb_id", "imdb_id")
_SAVEPOINT_NAME = re.compile(r"[^A-Za-z0-9_]")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FeedItemRecord:
    """A raw feed entry as first seen, with the feed it came from."""

    guid: str
    feed_name: str
    kind: str
    source_site: str
    title: str
    link: str
    published_at: str | None = None
    description: str | None = None
    first_seen_at: datetime | None = None

    def to_feed_item(self) -> FeedItem:
        return FeedItem(
            title=self.title,
            link=self.link,
            guid=self.guid,
            published_at=self.published_at,
            description=self.description,
        )


@dataclass
class ReleaseRecord:
    """Persisted state of a movie release.

    ``existing_file_attributes`` holds the held file's parsed attributes as a
    dict; ``audio_languages`` is a list of ISO-639-1 codes.
    """

    guid: str
    title: str
    normalized_title: str = ""
    clean_title: str = ""
    year: int | None = None
    source_site: str = ""
    feed_name: str = ""
    link: str = ""
    published_at: str | None = None
    resolution: str = "UNKNOWN"
    source_tag: str = "OTHER"
    codec: str = "UNKNOWN"
    audio: str = "Unknown"
    audio_languages: list[str] = field(default_factory=list)
    rss_size_mb: float | None = None
    existing_size_mb: float | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    tmdb_id_manual: bool = False
    imdb_id_manual: bool = False
    tmdb_title: str | None = None
    tmdb_original_language: str | None = None
    tmdb_poster_url: str | None = None
    is_dubbed: bool = False
    library_movie_id: int | None = None
    library_movie_title: str | None = None
    existing_file_path: str | None = None
    existing_file_attributes: Dict[str, Any] | None = None
    existing_quality_score: float | None = None
    new_quality_score: float | None = None
    status: str = ReleaseStatus.NEW.value
    last_checked_at: datetime | None = None


@dataclass
class TvReleaseRecord:
    guid: str
    title: str
    normalized_title: str = ""
    show_name: str = ""
    season_number: int | None = None
    source_site: str = ""
    feed_name: str = ""
    link: str = ""
    published_at: str | None = None
    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    tvdb_id_manual: bool = False
    tmdb_id_manual: bool = False
    imdb_id_manual: bool = False
    tvdb_poster_url: str | None = None
    tmdb_poster_url: str | None = None
    library_series_id: int | None = None
    library_series_title: str | None = None
    status: str = TvReleaseStatus.NEW_SHOW.value
    last_checked_at: datetime | None = None


_RELEASE_COLUMNS = (
    "guid",
    "title",
    "normalized_title",
    "clean_title",
    "year",
    "source_site",
    "feed_name",
    "link",
    "published_at",
    "resolution",
    "source_tag",
    "codec",
    "audio",
    "audio_languages",
    "rss_size_mb",
    "existing_size_mb",
    "tmdb_id",
    "imdb_id",
    "tmdb_id_manual",
    "imdb_id_manual",
    "tmdb_title",
    "tmdb_original_language",
    "tmdb_poster_url",
    "is_dubbed",
    "library_movie_id",
    "library_movie_title",
    "existing_file_path",
    "existing_file_attributes",
    "existing_quality_score",
    "new_quality_score",
    "status",
    "last_checked_at",
)

_TV_RELEASE_COLUMNS = (
    "guid",
    "title",
    "normalized_title",
    "show_name",
    "season_number",
    "source_site",
    "feed_name",
    "link",
    "published_at",
    "tvdb_id",
    "tmdb_id",
    "imdb_id",
    "tvdb_id_manual",
    "tmdb_id_manual",
    "imdb_id_manual",
    "tvdb_poster_url",
    "tmdb_poster_url",
    "library_series_id",
    "library_series_title",
    "status",
    "last_checked_at",
)


def _upsert_sql(table: str, columns: tuple[str, ...], pin_fields: tuple[str, ...], terminal: frozenset[str]) -> str:
    """Build an upsert that keeps pinned ids, pin flags and terminal statuses."""
    terminal_list = ", ".join(f"'{status}'" for status in sorted(terminal))
    assignments = []
    for column in columns[1:]:
        if column in pin_fields:
            assignments.append(
                f"{column} = CASE WHEN {table}.{column}_manual THEN {table}.{column} ELSE excluded.{column} END"
            )
        elif column.endswith("_manual"):
            assignments.append(f"{column} = {table}.{column}")
        elif column == "status":
            assignments.append(
                f"status = CASE WHEN {table}.status IN ({terminal_list}) THEN {table}.status ELSE excluded.status END"
            )
        else:
            assignments.append(f"{column} = excluded.{column}")
    placeholders = ", ".join("?" for _ in columns)
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT(guid) DO UPDATE SET {', '.join(assignments)}"
    )


_UPSERT_RELEASE = _upsert_sql("releases", _RELEASE_COLUMNS, MOVIE_PIN_FIELDS, TERMINAL_STATUSES)
_UPSERT_TV_RELEASE = _upsert_sql("tv_releases", _TV_RELEASE_COLUMNS, TV_PIN_FIELDS, TV_TERMINAL_STATUSES)


class ReleaseStore:
    """SQLite-backed store for the reconciliation engine.

    Connections are per thread and run in autocommit mode; ``transaction()``
    and ``savepoint()`` group writes explicitly. The database uses WAL mode.

    Example:
        store = ReleaseStore(Path("/data/upgradarr.db"))
        with store.transaction():
            for item in items:
                with store.savepoint("item"):
                    store.upsert_release(record)
    """

    SCHEMA_VERSION = 2

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._local = threading.local()
        self._init_db()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection for the current thread."""
        if getattr(self._local, "connection", None) is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(
                self._db_path,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                isolation_level=None,
            )
            connection.execute("PRAGMA journal_mode=WAL")
            connection.row_factory = sqlite3.Row
            self._local.connection = connection
            self._local.savepoint_depth = 0
        return self._local.connection

    def _init_db(self) -> None:
        conn = self._get_connection()
        conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
        row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
        current_version = row["version"] if row else 0
        if current_version < self.SCHEMA_VERSION:
            self._migrate_schema(current_version)

    def _migrate_schema(self, from_version: int) -> None:
        conn = self._get_connection()
        conn.execute("BEGIN")
        try:
            if from_version < 1:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS feed_items (
                        guid TEXT PRIMARY KEY,
                        feed_name TEXT NOT NULL,
                        kind TEXT NOT NULL DEFAULT 'movie',
                        source_site TEXT NOT NULL DEFAULT '',
                        title TEXT NOT NULL,
                        link TEXT NOT NULL DEFAULT '',
                        published_at TEXT,
                        description TEXT,
                        first_seen_at TIMESTAMP NOT NULL
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_feed_items_feed ON feed_items(feed_name, kind)")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS releases (
                        guid TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        normalized_title TEXT NOT NULL DEFAULT '',
                        clean_title TEXT NOT NULL DEFAULT '',
                        year INTEGER,
                        source_site TEXT NOT NULL DEFAULT '',
                        feed_name TEXT NOT NULL DEFAULT '',
                        link TEXT NOT NULL DEFAULT '',
                        published_at TEXT,
                        resolution TEXT NOT NULL DEFAULT 'UNKNOWN',
                        source_tag TEXT NOT NULL DEFAULT 'OTHER',
                        codec TEXT NOT NULL DEFAULT 'UNKNOWN',
                        audio TEXT NOT NULL DEFAULT 'Unknown',
                        audio_languages TEXT NOT NULL DEFAULT '[]',
                        rss_size_mb REAL,
                        existing_size_mb REAL,
                        tmdb_id INTEGER,
                        imdb_id TEXT,
                        tmdb_id_manual INTEGER NOT NULL DEFAULT 0,
                        imdb_id_manual INTEGER NOT NULL DEFAULT 0,
                        tmdb_title TEXT,
                        tmdb_original_language TEXT,
                        tmdb_poster_url TEXT,
                        is_dubbed INTEGER NOT NULL DEFAULT 0,
                        library_movie_id INTEGER,
                        library_movie_title TEXT,
                        existing_file_path TEXT,
                        existing_file_attributes TEXT,
                        existing_quality_score REAL,
                        new_quality_score REAL,
                        status TEXT NOT NULL DEFAULT 'NEW',
                        last_checked_at TIMESTAMP
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_releases_status ON releases(status)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_releases_tmdb ON releases(tmdb_id)")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS tv_releases (
                        guid TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        normalized_title TEXT NOT NULL DEFAULT '',
                        show_name TEXT NOT NULL DEFAULT '',
                        season_number INTEGER,
                        source_site TEXT NOT NULL DEFAULT '',
                        feed_name TEXT NOT NULL DEFAULT '',
                        link TEXT NOT NULL DEFAULT '',
                        published_at TEXT,
                        tvdb_id INTEGER,
                        tmdb_id INTEGER,
                        imdb_id TEXT,
                        tvdb_id_manual INTEGER NOT NULL DEFAULT 0,
                        tmdb_id_manual INTEGER NOT NULL DEFAULT 0,
                        imdb_id_manual INTEGER NOT NULL DEFAULT 0,
                        tvdb_poster_url TEXT,
                        tmdb_poster_url TEXT,
                        library_series_id INTEGER,
                        library_series_title TEXT,
                        status TEXT NOT NULL DEFAULT 'NEW_SHOW',
                        last_checked_at TIMESTAMP
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_tv_releases_status ON tv_releases(status)")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS app_settings (
                        key TEXT PRIMARY KEY,
                        value TEXT,
                        updated_at TIMESTAMP NOT NULL
                    )
                """)

            if from_version < 2:
                # v2: held-library snapshot tables
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS held_movies (
                        library_id INTEGER PRIMARY KEY,
                        tmdb_id INTEGER,
                        title TEXT NOT NULL,
                        payload TEXT NOT NULL,
                        synced_at TIMESTAMP NOT NULL
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_held_movies_tmdb ON held_movies(tmdb_id)")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS held_shows (
                        library_id INTEGER PRIMARY KEY,
                        tvdb_id INTEGER,
                        title TEXT NOT NULL,
                        payload TEXT NOT NULL,
                        synced_at TIMESTAMP NOT NULL
                    )
                """)

            conn.execute("DELETE FROM schema_version")
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,))
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def close(self) -> None:
        """Close the database connection for the current thread."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Group writes into one transaction; joins an already open one."""
        conn = self._get_connection()
        if conn.in_transaction:
            yield conn
            return
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not start transaction: {exc}") from exc
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                conn.execute("ROLLBACK")
                raise PersistenceError(f"Could not commit transaction: {exc}") from exc

    @contextmanager
    def savepoint(self, name: str = "item") -> Iterator[None]:
        """Scope writes so a failure rolls back only this block."""
        conn = self._get_connection()
        self._local.savepoint_depth += 1
        label = f"{_SAVEPOINT_NAME.sub('_', name)}_{self._local.savepoint_depth}"
        try:
            conn.execute(f"SAVEPOINT {label}")
            try:
                yield
            except BaseException:
                conn.execute(f"ROLLBACK TO SAVEPOINT {label}")
                conn.execute(f"RELEASE SAVEPOINT {label}")
                raise
            conn.execute(f"RELEASE SAVEPOINT {label}")
        finally:
            self._local.savepoint_depth -= 1

    @contextmanager
    def _writing(self, what: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self._get_connection()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to write {what}: {exc}") from exc

    # ------------------------------------------------------------------
    # Feed items
    # ------------------------------------------------------------------

    def upsert_feed_item(self, record: FeedItemRecord) -> bool:
        """Insert or refresh a feed item. Returns True when the guid is new."""
        with self._writing(f"feed item {record.guid}") as conn:
            exists = conn.execute("SELECT 1 FROM feed_items WHERE guid = ?", (record.guid,)).fetchone()
            conn.execute(
                """
                INSERT INTO feed_items (
                    guid, feed_name, kind, source_site, title, link, published_at, description, first_seen_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(guid) DO UPDATE SET
                    feed_name = excluded.feed_name,
                    kind = excluded.kind,
                    source_site = excluded.source_site,
                    title = excluded.title,
                    link = excluded.link,
                    published_at = excluded.published_at,
                    description = excluded.description
                """,
                (
                    record.guid,
                    record.feed_name,
                    record.kind,
                    record.source_site,
                    record.title,
                    record.link,
                    record.published_at,
                    record.description,
                    record.first_seen_at or _utcnow(),
                ),
            )
        return exists is None

    def list_feed_items(self, feed_name: Optional[str] = None, kind: Optional[str] = None) -> list[FeedItemRecord]:
        clauses, params = [], []
        if feed_name is not None:
            clauses.append("feed_name = ?")
            params.append(feed_name)
        if kind is not None:
            clauses.append("kind = ?")
            params.append(kind)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._get_connection().execute(
            f"SELECT * FROM feed_items {where} ORDER BY first_seen_at, guid", params
        ).fetchall()
        return [
            FeedItemRecord(
                guid=row["guid"],
                feed_name=row["feed_name"],
                kind=row["kind"],
                source_site=row["source_site"],
                title=row["title"],
                link=row["link"],
                published_at=row["published_at"],
                description=row["description"],
                first_seen_at=row["first_seen_at"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Movie releases
    # ------------------------------------------------------------------

    def _row_to_release(self, row: sqlite3.Row) -> ReleaseRecord:
        attributes = row["existing_file_attributes"]
        return ReleaseRecord(
            guid=row["guid"],
            title=row["title"],
            normalized_title=row["normalized_title"],
            clean_title=row["clean_title"],
            year=row["year"],
            source_site=row["source_site"],
            feed_name=row["feed_name"],
            link=row["link"],
            published_at=row["published_at"],
            resolution=row["resolution"],
            source_tag=row["source_tag"],
            codec=row["codec"],
            audio=row["audio"],
            audio_languages=json.loads(row["audio_languages"] or "[]"),
            rss_size_mb=row["rss_size_mb"],
            existing_size_mb=row["existing_size_mb"],
            tmdb_id=row["tmdb_id"],
            imdb_id=row["imdb_id"],
            tmdb_id_manual=bool(row["tmdb_id_manual"]),
            imdb_id_manual=bool(row["imdb_id_manual"]),
            tmdb_title=row["tmdb_title"],
            tmdb_original_language=row["tmdb_original_language"],
            tmdb_poster_url=row["tmdb_poster_url"],
            is_dubbed=bool(row["is_dubbed"]),
            library_movie_id=row["library_movie_id"],
            library_movie_title=row["library_movie_title"],
            existing_file_path=row["existing_file_path"],
            existing_file_attributes=json.loads(attributes) if attributes else None,
            existing_quality_score=row["existing_quality_score"],
            new_quality_score=row["new_quality_score"],
            status=row["status"],
            last_checked_at=row["last_checked_at"],
        )

    def get_release(self, guid: str) -> ReleaseRecord | None:
        row = self._get_connection().execute("SELECT * FROM releases WHERE guid = ?", (guid,)).fetchone()
        return self._row_to_release(row) if row else None

    def upsert_release(self, record: ReleaseRecord) -> None:
        """Insert or update a movie release.

        A stored ADDED/UPGRADED status and any pinned identifier survive the
        update regardless of what ``record`` carries.
        """
        values = []
        for column in _RELEASE_COLUMNS:
            value = getattr(record, column)
            if column == "audio_languages":
                value = json.dumps(list(value))
            elif column == "existing_file_attributes":
                value = json.dumps(value, sort_keys=True) if value is not None else None
            elif column == "last_checked_at" and value is None:
                value = _utcnow()
            values.append(value)
        with self._writing(f"release {record.guid}") as conn:
            conn.execute(_UPSERT_RELEASE, values)

    def list_releases(self, status: Optional[str] = None) -> list[ReleaseRecord]:
        conn = self._get_connection()
        if status is None:
            rows = conn.execute("SELECT * FROM releases ORDER BY published_at DESC, guid").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM releases WHERE status = ? ORDER BY published_at DESC, guid", (status,)
            ).fetchall()
        return [self._row_to_release(row) for row in rows]

    def list_unlinked_releases(self) -> list[ReleaseRecord]:
        """Releases with a TMDB id but no held-library link."""
        rows = self._get_connection().execute(
            "SELECT * FROM releases WHERE tmdb_id IS NOT NULL AND library_movie_id IS NULL ORDER BY guid"
        ).fetchall()
        return [self._row_to_release(row) for row in rows]

    def mark_status(self, guid: str, status: str) -> bool:
        """Set a movie release status from an external action. Returns False if unknown."""
        status = ReleaseStatus(status).value
        with self._writing(f"release status {guid}") as conn:
            cursor = conn.execute(
                "UPDATE releases SET status = ?, last_checked_at = ? WHERE guid = ?", (status, _utcnow(), guid)
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # TV releases
    # ------------------------------------------------------------------

    def _row_to_tv_release(self, row: sqlite3.Row) -> TvReleaseRecord:
        return TvReleaseRecord(
            guid=row["guid"],
            title=row["title"],
            normalized_title=row["normalized_title"],
            show_name=row["show_name"],
            season_number=row["season_number"],
            source_site=row["source_site"],
            feed_name=row["feed_name"],
            link=row["link"],
            published_at=row["published_at"],
            tvdb_id=row["tvdb_id"],
            tmdb_id=row["tmdb_id"],
            imdb_id=row["imdb_id"],
            tvdb_id_manual=bool(row["tvdb_id_manual"]),
            tmdb_id_manual=bool(row["tmdb_id_manual"]),
            imdb_id_manual=bool(row["imdb_id_manual"]),
            tvdb_poster_url=row["tvdb_poster_url"],
            tmdb_poster_url=row["tmdb_poster_url"],
            library_series_id=row["library_series_id"],
            library_series_title=row["library_series_title"],
            status=row["status"],
            last_checked_at=row["last_checked_at"],
        )

    def get_tv_release(self, guid: str) -> TvReleaseRecord | None:
        row = self._get_connection().execute("SELECT * FROM tv_releases WHERE guid = ?", (guid,)).fetchone()
        return self._row_to_tv_release(row) if row else None

    def upsert_tv_release(self, record: TvReleaseRecord) -> None:
        values = [getattr(record, column) for column in _TV_RELEASE_COLUMNS]
        if record.last_checked_at is None:
            values[_TV_RELEASE_COLUMNS.index("last_checked_at")] = _utcnow()
        with self._writing(f"tv release {record.guid}") as conn:
            conn.execute(_UPSERT_TV_RELEASE, values)

    def list_tv_releases(self, status: Optional[str] = None) -> list[TvReleaseRecord]:
        conn = self._get_connection()
        if status is None:
            rows = conn.execute("SELECT * FROM tv_releases ORDER BY published_at DESC, guid").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM tv_releases WHERE status = ? ORDER BY published_at DESC, guid", (status,)
            ).fetchall()
        return [self._row_to_tv_release(row) for row in rows]

    def mark_tv_status(self, guid: str, status: str) -> bool:
        status = TvReleaseStatus(status).value
        with self._writing(f"tv release status {guid}") as conn:
            cursor = conn.execute(
                "UPDATE tv_releases SET status = ?, last_checked_at = ? WHERE guid = ?", (status, _utcnow(), guid)
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Manual identifier pins
    # ------------------------------------------------------------------

    @staticmethod
    def _pin_target(field_name: str, tv: bool) -> str:
        allowed = TV_PIN_FIELDS if tv else MOVIE_PIN_FIELDS
        if field_name not in allowed:
            raise ValueError(f"'{field_name}' cannot be pinned; expected one of {', '.join(allowed)}")
        return "tv_releases" if tv else "releases"

    def pin_identifier(self, guid: str, field_name: str, value: Any, *, tv: bool = False) -> bool:
        """Set an identifier by hand and protect it from automated resolution.

        Raises:
            ValueError: Unknown field or malformed identifier value
        """
        table = self._pin_target(field_name, tv)
        if field_name == "imdb_id":
            if valid_imdb_id(str(value)) is None:
                raise ValueError(f"'imdb_id' must look like tt1234567, got: {value}")
            value = str(value).strip()
        else:
            try:
                value = int(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"'{field_name}' must be an integer, got: {value}") from exc
        with self._writing(f"{field_name} pin for {guid}") as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {field_name} = ?, {field_name}_manual = 1 WHERE guid = ?", (value, guid)
            )
        return cursor.rowcount > 0

    def unpin_identifier(self, guid: str, field_name: str, *, tv: bool = False) -> bool:
        """Release a pin; the value stays until the next resolution replaces it."""
        table = self._pin_target(field_name, tv)
        with self._writing(f"{field_name} unpin for {guid}") as conn:
            cursor = conn.execute(f"UPDATE {table} SET {field_name}_manual = 0 WHERE guid = ?", (guid,))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Held-library snapshot
    # ------------------------------------------------------------------

    def replace_held_movies(self, movies: Iterable[HeldMovie]) -> int:
        synced_at = _utcnow()
        rows = [
            (movie.id, movie.tmdb_id, movie.title, movie.model_dump_json(by_alias=True), synced_at) for movie in movies
        ]
        with self._writing("held movies") as conn, self.transaction():
            conn.execute("DELETE FROM held_movies")
            conn.executemany(
                "INSERT INTO held_movies (library_id, tmdb_id, title, payload, synced_at) VALUES (?, ?, ?, ?, ?)", rows
            )
        return len(rows)

    def list_held_movies(self) -> list[HeldMovie]:
        rows = self._get_connection().execute("SELECT payload FROM held_movies ORDER BY library_id").fetchall()
        return [HeldMovie.model_validate_json(row["payload"]) for row in rows]

    def get_held_movie_by_tmdb(self, tmdb_id: int) -> HeldMovie | None:
        row = self._get_connection().execute(
            "SELECT payload FROM held_movies WHERE tmdb_id = ? LIMIT 1", (tmdb_id,)
        ).fetchone()
        return HeldMovie.model_validate_json(row["payload"]) if row else None

    def replace_held_shows(self, shows: Iterable[HeldShow]) -> int:
        synced_at = _utcnow()
        rows = [(show.id, show.tvdb_id, show.title, show.model_dump_json(by_alias=True), synced_at) for show in shows]
        with self._writing("held shows") as conn, self.transaction():
            conn.execute("DELETE FROM held_shows")
            conn.executemany(
                "INSERT INTO held_shows (library_id, tvdb_id, title, payload, synced_at) VALUES (?, ?, ?, ?, ?)", rows
            )
        return len(rows)

    def list_held_shows(self) -> list[HeldShow]:
        rows = self._get_connection().execute("SELECT payload FROM held_shows ORDER BY library_id").fetchall()
        return [HeldShow.model_validate_json(row["payload"]) for row in rows]

    # ------------------------------------------------------------------
    # Settings and statistics
    # ------------------------------------------------------------------

    def get_app_settings(self) -> dict[str, str]:
        rows = self._get_connection().execute("SELECT key, value FROM app_settings").fetchall()
        return {row["key"]: row["value"] for row in rows if row["value"] is not None}

    def set_app_setting(self, key: str, value: Optional[str]) -> None:
        with self._writing(f"setting {key}") as conn:
            conn.execute(
                """
                INSERT INTO app_settings (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, _utcnow()),
            )

    def get_stats(self) -> dict[str, dict[str, int]]:
        """Count records per status for movie and TV releases."""
        conn = self._get_connection()
        stats: dict[str, dict[str, int]] = {}
        for table in ("releases", "tv_releases"):
            rows = conn.execute(f"SELECT status, COUNT(*) AS count FROM {table} GROUP BY status").fetchall()
            counts = {row["status"]: row["count"] for row in rows}
            counts["total"] = sum(counts.values())
            stats[table] = counts
        return stats
