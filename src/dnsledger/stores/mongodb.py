from __future__ import annotations

"""MongoDB-backed implementation of the BaseEventStore interface.

Inputs:
  - Constructed via a configuration mapping passed through
    EventStoreBackendConfig with backend-specific fields such as uri, host,
    port, username, password, database and collection.

Outputs:
  - Concrete backend instance storing DNS event records as documents that keep
    the wire field names (prediction, event_type, createdAt, ...).

Notes:
  - The underlying DB driver (pymongo) is imported lazily so that the memory
    and SQLite backends do not need it at import time.
  - The domain filter is a case-insensitive $regex over the escaped
    substring, so user input is always matched literally.
"""

import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..errors import StoreUnavailable
from ..models import (
    FEATURE_FIELDS,
    Direction,
    EventCandidate,
    EventRecord,
    Verdict,
    parse_timestamp,
    utc_now,
)
from .base import BaseEventStore, EventFilter, EventQuery

logger = logging.getLogger(__name__)

# Connection pool and timeout settings used when connect_kwargs does not
# override them.
DEFAULT_CONNECT_KWARGS: Dict[str, Any] = {
    "maxPoolSize": 10,
    "serverSelectionTimeoutMS": 5000,
    "socketTimeoutMS": 45000,
}

_INDEXED_FIELDS = ("createdAt", "timestamp", "prediction", "domain")


def _import_mongo_driver():
    """Import and return a MongoDB driver module exposing MongoClient.

    Inputs:
        None.

    Outputs:
        pymongo module exposing a ``MongoClient`` callable.

    Raises:
        RuntimeError: When pymongo is not installed.
    """

    try:  # pragma: no cover - import-path dependent
        import pymongo

        return pymongo
    except ImportError as exc:  # pragma: no cover - environment specific
        raise RuntimeError(
            "No supported MongoDB driver found; install 'pymongo' to use the "
            "MongoEventStore"
        ) from exc


class MongoEventStore(BaseEventStore):
    """MongoDB-backed record store.

    Inputs (constructor):
        uri: Optional MongoDB connection URI (takes precedence over host/port).
        host: Database host (default "127.0.0.1").
        port: Database port (default 27017).
        username: Optional username for authentication.
        password: Optional password for authentication.
        database: Database name (default "dnsledger").
        collection: Collection name (default "eventdatas").
        connect_kwargs: Optional mapping of additional keyword arguments passed
            through to MongoClient (for example, tls, replicaSet); merged over
            DEFAULT_CONNECT_KWARGS.
        scan_batch_size: Cursor batch size for full-collection scans.

    Outputs:
        Initialized MongoEventStore instance with ensured indexes.
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        host: str = "127.0.0.1",
        port: int = 27017,
        username: Optional[str] = None,
        password: Optional[str] = None,
        database: str = "dnsledger",
        collection: str = "eventdatas",
        connect_kwargs: Optional[Dict[str, Any]] = None,
        scan_batch_size: int = 1000,
        **_: Any,
    ) -> None:
        mongo_mod = _import_mongo_driver()
        kwargs: Dict[str, Any] = dict(DEFAULT_CONNECT_KWARGS)
        kwargs.update(connect_kwargs or {})

        if uri:
            self._client = mongo_mod.MongoClient(uri, **kwargs)
        else:
            kwargs["host"] = host
            kwargs["port"] = int(port)
            if username is not None:
                kwargs["username"] = username
            if password is not None:
                kwargs["password"] = password
            self._client = mongo_mod.MongoClient(**kwargs)

        self._db = self._client[database]
        self._events = self._db[collection]
        self._scan_batch_size = max(1, int(scan_batch_size))

        self._ensure_indexes()

    # ------------------------------------------------------------------
    # Schema and connection helpers
    # ------------------------------------------------------------------
    def _ensure_indexes(self) -> None:
        """Ensure single-field indexes exist for the filter and sort columns.

        Failures are logged rather than raised: the server may not be
        reachable yet at startup, and the first real operation will report
        StoreUnavailable.
        """

        try:
            for field in _INDEXED_FIELDS:
                self._events.create_index([(field, 1)], name=f"idx_events_{field}")
        except Exception as exc:
            logger.error("MongoEventStore _ensure_indexes error: %s", exc, exc_info=True)

    # ------------------------------------------------------------------
    # Health and lifecycle
    # ------------------------------------------------------------------
    def health_check(self) -> bool:
        """Return True when a ping against the admin database succeeds."""

        try:
            self._client.admin.command("ping")
            return True
        except Exception:
            return False

    def close(self) -> None:
        """Close the underlying MongoDB client."""

        try:
            client = getattr(self, "_client", None)
            if client is not None:
                client.close()
        except Exception:  # pragma: no cover
            logger.exception("Error while closing MongoEventStore client")

    # ------------------------------------------------------------------
    # Document helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _doc_to_record(doc: Dict[str, Any]) -> EventRecord:
        verdict = Verdict.parse(doc.get("prediction"))
        direction = Direction.parse(doc.get("event_type"))
        if verdict is None or direction is None:
            raise ValueError(f"document {doc.get('_id')!r} has an invalid enum value")
        return EventRecord(
            id=str(doc.get("_id")),
            timestamp=parse_timestamp(doc.get("timestamp")),
            verdict=verdict,
            domain=str(doc.get("domain", "")),
            direction=direction,
            features={name: float(doc.get(name, 0.0)) for name in FEATURE_FIELDS},
            created_at=parse_timestamp(doc.get("createdAt")),
        )

    @staticmethod
    def _filter_doc(flt: EventFilter) -> Dict[str, Any]:
        doc: Dict[str, Any] = {}
        if flt.domain:
            doc["domain"] = {"$regex": re.escape(flt.domain), "$options": "i"}
        if flt.verdict is not None:
            doc["prediction"] = flt.verdict.value
        return doc

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def insert_many(self, candidates: Sequence[EventCandidate]) -> List[EventRecord]:
        if not candidates:
            return []
        created_at = utc_now()
        docs: List[Dict[str, Any]] = []
        for c in candidates:
            doc: Dict[str, Any] = {
                "timestamp": c.timestamp,
                "prediction": c.prediction.value,
                "domain": c.domain,
                "event_type": c.event_type.value,
            }
            for name in FEATURE_FIELDS:
                doc[name] = float(getattr(c, name))
            doc["createdAt"] = created_at
            docs.append(doc)

        try:
            result = self._events.insert_many(docs, ordered=True)
        except Exception as exc:
            logger.error("MongoEventStore insert_many error: %s", exc, exc_info=True)
            raise StoreUnavailable("insert failed") from exc

        return [
            EventRecord.from_candidate(c, record_id=str(_id), created_at=created_at)
            for c, _id in zip(candidates, result.inserted_ids)
        ]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def find_events(self, query: EventQuery) -> List[EventRecord]:
        column = self._check_sort_column(query.sort_column)
        direction = -1 if query.descending else 1
        try:
            cursor = self._events.find(self._filter_doc(query.filter)).sort(
                [(column, direction), ("_id", 1)]
            )
            if query.limit > 0:
                cursor = cursor.skip(max(0, int(query.offset))).limit(int(query.limit))
            return [self._doc_to_record(doc) for doc in cursor]
        except Exception as exc:
            logger.error("MongoEventStore find_events error: %s", exc, exc_info=True)
            raise StoreUnavailable("query failed") from exc

    def count_events(self, flt: EventFilter) -> int:
        try:
            return int(self._events.count_documents(self._filter_doc(flt)))
        except Exception as exc:
            logger.error("MongoEventStore count_events error: %s", exc, exc_info=True)
            raise StoreUnavailable("count failed") from exc

    def iter_events(self) -> Iterator[EventRecord]:
        try:
            cursor = (
                self._events.find({})
                .sort([("_id", 1)])
                .batch_size(self._scan_batch_size)
            )
            for doc in cursor:
                yield self._doc_to_record(doc)
        except Exception as exc:
            logger.error("MongoEventStore iter_events error: %s", exc, exc_info=True)
            raise StoreUnavailable("scan failed") from exc
