"""SQLite-backed implementation of the BaseEventStore interface.

Inputs:
  - Constructed via load_event_store() with backend-specific fields
    (db_path).

Outputs:
  - Concrete backend instance storing DNS event records in a single
    ``events`` table.

Notes:
  - ``id INTEGER PRIMARY KEY AUTOINCREMENT`` doubles as the insertion-order
    tiebreak for sorted scans.
  - Timestamps are stored as integer epoch microseconds so they round-trip
    exactly and sort numerically.
  - ``domain_folded`` holds the casefolded domain; SQLite lower() only folds
    ASCII, so domain filters compare against this column instead.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator, List, Sequence, Tuple

from ..errors import StoreUnavailable
from ..models import (
    FEATURE_FIELDS,
    Direction,
    EventCandidate,
    EventRecord,
    Verdict,
    utc_now,
)
from .base import BaseEventStore, EventFilter, EventQuery

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)

_COLUMNS: Tuple[str, ...] = (
    "id",
    "timestamp",
    "prediction",
    "domain",
    "event_type",
    *FEATURE_FIELDS,
    "createdAt",
)


def _to_micros(dt: datetime) -> int:
    return (dt - _EPOCH) // _ONE_MICROSECOND


def _from_micros(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=int(value))


class SqliteEventStore(BaseEventStore):
    """SQLite-backed record store.

    Inputs (constructor):
        db_path: Path to the SQLite database file, or ":memory:".

    Outputs:
        Initialized SqliteEventStore with the schema ensured.
    """

    # Default configuration values used by the generic loader when db_path is
    # omitted from store.config.
    default_config = {"db_path": "./var/dnsledger.db"}

    def __init__(self, db_path: str, scan_chunk_size: int = 1000, **_: Any) -> None:
        self._db_path = db_path
        self.scan_chunk_size = max(1, int(scan_chunk_size))
        self._lock = threading.RLock()
        self._conn = self._init_connection()

    def _init_connection(self) -> sqlite3.Connection:
        """Create SQLite connection and ensure schema exists.

        Inputs:
            None; uses self._db_path.

        Outputs:
            sqlite3.Connection: Open connection with schema ensured.

        Raises:
            StoreUnavailable: when the database cannot be opened or created.
        """

        try:
            if self._db_path != ":memory:":
                dir_path = os.path.dirname(self._db_path)
                if dir_path:
                    os.makedirs(dir_path, exist_ok=True)

            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            if self._db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")

            feature_cols = ",\n".join(f"{name} REAL NOT NULL" for name in FEATURE_FIELDS)
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS events (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp   INTEGER NOT NULL,
                    prediction  TEXT NOT NULL,
                    domain      TEXT NOT NULL,
                    event_type  TEXT NOT NULL,
                    {feature_cols},
                    createdAt   INTEGER NOT NULL,
                    domain_folded TEXT NOT NULL DEFAULT ''
                )
                """
            )
            self._ensure_domain_folded(conn)
            for column in ("createdAt", "timestamp", "prediction", "domain"):
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_events_{column.lower()} "
                    f"ON events({column})"
                )
            conn.commit()
            return conn
        except (sqlite3.Error, OSError) as exc:
            logger.error(
                "SqliteEventStore could not open %s: %s", self._db_path, exc, exc_info=True
            )
            raise StoreUnavailable(f"cannot open sqlite database {self._db_path}") from exc

    @staticmethod
    def _ensure_domain_folded(conn: sqlite3.Connection) -> None:
        """Add and backfill domain_folded on databases created without it."""

        existing = {row[1] for row in conn.execute("PRAGMA table_info(events)")}
        if "domain_folded" in existing:
            return
        logger.info("SqliteEventStore adding domain_folded column to events")
        conn.execute(
            "ALTER TABLE events ADD COLUMN domain_folded TEXT NOT NULL DEFAULT ''"
        )
        rows = conn.execute("SELECT id, domain FROM events").fetchall()
        conn.executemany(
            "UPDATE events SET domain_folded = ? WHERE id = ?",
            [(str(domain).casefold(), row_id) for row_id, domain in rows],
        )

    # ------------------------------------------------------------------
    # Health and lifecycle
    # ------------------------------------------------------------------
    def health_check(self) -> bool:
        """Return True when the underlying SQLite store is usable."""

        try:
            with self._lock:
                cur = self._conn.cursor()
                cur.execute("SELECT 1")
                cur.fetchone()
            return True
        except sqlite3.Error:
            return False

    def close(self) -> None:
        """Close the underlying SQLite connection."""

        try:
            with self._lock:
                self._conn.close()
        except sqlite3.Error:  # pragma: no cover
            logger.exception("Error while closing SqliteEventStore connection")

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_record(row: Sequence[Any]) -> EventRecord:
        values = dict(zip(_COLUMNS, row))
        return EventRecord(
            id=str(values["id"]),
            timestamp=_from_micros(values["timestamp"]),
            verdict=Verdict(values["prediction"]),
            domain=str(values["domain"]),
            direction=Direction(values["event_type"]),
            features={name: float(values[name]) for name in FEATURE_FIELDS},
            created_at=_from_micros(values["createdAt"]),
        )

    @staticmethod
    def _where(flt: EventFilter) -> Tuple[str, List[Any]]:
        where: List[str] = []
        params: List[Any] = []
        if flt.domain:
            # instr() is a literal substring test; no pattern characters.
            where.append("instr(domain_folded, ?) > 0")
            params.append(flt.domain.casefold())
        if flt.verdict is not None:
            where.append("prediction = ?")
            params.append(flt.verdict.value)
        where_sql = (" WHERE " + " AND ".join(where)) if where else ""
        return where_sql, params

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def insert_many(self, candidates: Sequence[EventCandidate]) -> List[EventRecord]:
        created_at = utc_now()
        insert_cols = _COLUMNS[1:] + ("domain_folded",)
        sql = "INSERT INTO events ({}) VALUES ({})".format(
            ", ".join(insert_cols), ", ".join("?" for _ in insert_cols)
        )
        records: List[EventRecord] = []
        try:
            with self._lock:
                # One transaction for the whole batch: all rows or none.
                with self._conn:
                    cur = self._conn.cursor()
                    for c in candidates:
                        params = (
                            _to_micros(c.timestamp),
                            c.prediction.value,
                            c.domain,
                            c.event_type.value,
                            *(float(getattr(c, name)) for name in FEATURE_FIELDS),
                            _to_micros(created_at),
                            c.domain.casefold(),
                        )
                        cur.execute(sql, params)
                        records.append(
                            EventRecord.from_candidate(
                                c, record_id=str(cur.lastrowid), created_at=created_at
                            )
                        )
        except sqlite3.Error as exc:
            logger.error("SqliteEventStore insert_many error: %s", exc, exc_info=True)
            raise StoreUnavailable("insert failed") from exc
        return records

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def find_events(self, query: EventQuery) -> List[EventRecord]:
        column = self._check_sort_column(query.sort_column)
        direction = "DESC" if query.descending else "ASC"
        where_sql, params = self._where(query.filter)
        sql = (
            f"SELECT {', '.join(_COLUMNS)} FROM events{where_sql} "
            f"ORDER BY {column} {direction}, id ASC"
        )
        if query.limit > 0:
            sql += " LIMIT ? OFFSET ?"
            params = params + [int(query.limit), max(0, int(query.offset))]
        try:
            with self._lock:
                rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            logger.error("SqliteEventStore find_events error: %s", exc, exc_info=True)
            raise StoreUnavailable("query failed") from exc
        return [self._row_to_record(row) for row in rows]

    def count_events(self, flt: EventFilter) -> int:
        where_sql, params = self._where(flt)
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT COUNT(*) FROM events{where_sql}", params
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("SqliteEventStore count_events error: %s", exc, exc_info=True)
            raise StoreUnavailable("count failed") from exc
        return int(row[0]) if row else 0

    def iter_events(self) -> Iterator[EventRecord]:
        """Yield all records in id order, reading scan_chunk_size rows at a time."""

        sql = (
            f"SELECT {', '.join(_COLUMNS)} FROM events "
            "WHERE id > ? ORDER BY id ASC LIMIT ?"
        )
        last_id = 0
        while True:
            try:
                with self._lock:
                    rows = self._conn.execute(
                        sql, (last_id, self.scan_chunk_size)
                    ).fetchall()
            except sqlite3.Error as exc:
                logger.error("SqliteEventStore iter_events error: %s", exc, exc_info=True)
                raise StoreUnavailable("scan failed") from exc
            if not rows:
                return
            for row in rows:
                yield self._row_to_record(row)
            last_id = int(rows[-1][0])
