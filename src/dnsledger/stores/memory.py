"""In-process record store backed by a Python list.

Inputs:
  - No configuration; constructed via load_event_store({"backend": "memory"}).

Outputs:
  - BaseEventStore implementation whose contents live only as long as the
    process. Used as the default backend for development and by tests.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Iterator, List, Sequence

from ..models import EventCandidate, EventRecord, utc_now
from .base import BaseEventStore, EventFilter, EventQuery

logger = logging.getLogger(__name__)


class InMemoryEventStore(BaseEventStore):
    """List-backed record store.

    Records are appended in insertion order, so Python's stable sort gives the
    insertion-order tiebreak for free in both directions.
    """

    def __init__(self, **_: Any) -> None:
        self._lock = threading.RLock()
        self._records: List[EventRecord] = []
        self._ids = itertools.count(1)

    def health_check(self) -> bool:
        return True

    def close(self) -> None:
        with self._lock:
            self._records = []

    def insert_many(self, candidates: Sequence[EventCandidate]) -> List[EventRecord]:
        created_at = utc_now()
        with self._lock:
            batch = [
                EventRecord.from_candidate(
                    c, record_id=str(next(self._ids)), created_at=created_at
                )
                for c in candidates
            ]
            self._records.extend(batch)
        logger.debug("InMemoryEventStore inserted %d records", len(batch))
        return batch

    def _snapshot(self) -> List[EventRecord]:
        with self._lock:
            return list(self._records)

    def find_events(self, query: EventQuery) -> List[EventRecord]:
        column = self._check_sort_column(query.sort_column)
        matches = [r for r in self._snapshot() if query.filter.matches(r)]
        ordered = sorted(
            matches, key=lambda r: r.sort_value(column), reverse=query.descending
        )
        start = max(0, int(query.offset))
        if query.limit > 0:
            return ordered[start : start + int(query.limit)]
        return ordered[start:]

    def count_events(self, flt: EventFilter) -> int:
        return sum(1 for r in self._snapshot() if flt.matches(r))

    def iter_events(self) -> Iterator[EventRecord]:
        return iter(self._snapshot())
