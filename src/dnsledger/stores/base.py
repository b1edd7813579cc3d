"""Abstract base classes for DNS event record stores.

This module defines:

- EventStoreBackendConfig: Pydantic model describing the configured backend
  (backend identifier plus backend-specific config).
- EventFilter / EventQuery: the filter and the filter+sort+page request a
  store executes on behalf of the listing engine.
- BaseEventStore: Abstract interface implemented by the memory, SQLite and
  MongoDB backends.

Concrete backends must subclass BaseEventStore and implement all methods.
Every backend/driver fault inside a store operation is logged and re-raised
as dnsledger.errors.StoreUnavailable so callers can tell "no matching
records" apart from "query failed".
"""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, Iterator, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..models import EventCandidate, EventRecord, Verdict

# Wire columns a listing may be ordered by. Anything else falls back to
# DEFAULT_SORT_COLUMN in dnsledger.query before reaching a store.
SORT_COLUMNS = frozenset(
    {
        "timestamp",
        "createdAt",
        "domain",
        "prediction",
        "event_type",
        "dns_domain_name_length",
        "character_entropy",
    }
)
DEFAULT_SORT_COLUMN = "createdAt"


class EventStoreBackendConfig(BaseModel):
    """Brief: Typed configuration model for the record store backend.

    Inputs (constructor fields):
      - backend: String identifier for the backend implementation. This may be
        a short alias (for example, "memory", "sqlite", "mongo") or a
        fully-qualified dotted import path to a concrete backend class.
      - config: Free-form mapping of backend-specific configuration options.
        Concrete backends are responsible for validating and using these
        values (for example, db_path for SQLite or uri for MongoDB).

    Outputs:
      - EventStoreBackendConfig instance with normalized types.
    """

    model_config = ConfigDict(extra="allow")

    backend: str = Field(default="memory", description="Backend alias or dotted import path")
    config: Dict[str, Any] = Field(
        default_factory=dict,
        description="Backend-specific configuration options",
    )


@dataclasses.dataclass(frozen=True)
class EventFilter:
    """Brief: Normalized listing filter.

    Inputs (fields):
      - domain: Literal, case-insensitive substring of the domain, or None.
      - verdict: Exact verdict, or None.

    Outputs:
      - Immutable filter; both parts are optional and combined with AND.
    """

    domain: Optional[str] = None
    verdict: Optional[Verdict] = None

    def matches(self, record: EventRecord) -> bool:
        """Return True when record satisfies this filter (reference semantics)."""

        if self.verdict is not None and record.verdict is not self.verdict:
            return False
        if self.domain and self.domain.casefold() not in record.domain.casefold():
            return False
        return True


@dataclasses.dataclass(frozen=True)
class EventQuery:
    """Brief: Normalized filter + sort + page request.

    Inputs (fields):
      - filter: EventFilter to apply.
      - sort_column: One of SORT_COLUMNS.
      - descending: Sort direction.
      - offset: Number of matching records to skip.
      - limit: Maximum number of records to return; 0 means unbounded.

    Outputs:
      - Immutable query consumed by BaseEventStore.find_events().
    """

    filter: EventFilter = dataclasses.field(default_factory=EventFilter)
    sort_column: str = DEFAULT_SORT_COLUMN
    descending: bool = True
    offset: int = 0
    limit: int = 0


class BaseEventStore:
    """Brief: Base class for persistent DNS event record stores.

    Implementations are responsible for:
      - Assigning ``id`` and ``createdAt`` exactly once, at insertion.
      - Filtered, sorted, paginated scans and filtered counts.
      - A full-collection scan in insertion order for the aggregation engine.
      - Lightweight health checks and lifecycle management.

    Inputs (constructor):
      - **config: Arbitrary configuration mapping specific to the backend.

    Outputs:
      - Initialized backend instance when implemented by a subclass.

    Notes:
      - Ties on the sort key are broken by insertion order (ascending)
        regardless of sort direction.
      - Stores do no locking beyond what their driver needs; concurrent
        inserts and reads may interleave.
    """

    def __init__(self, **config: object) -> None:  # pragma: no cover - interface only
        raise NotImplementedError("BaseEventStore.__init__ must be implemented")

    # ------------------------------------------------------------------
    # Health and lifecycle
    # ------------------------------------------------------------------
    def health_check(self) -> bool:  # pragma: no cover - interface only
        """Brief: Return True when the underlying backend is usable.

        Inputs:
          - None.

        Outputs:
          - bool: True when a trivial health probe succeeds, else False.
        """

        raise NotImplementedError("health_check() must be implemented by a subclass")

    def close(self) -> None:  # pragma: no cover - interface only
        """Close the backend and release any associated resources."""

        raise NotImplementedError("close() must be implemented by a subclass")

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def insert_many(
        self, candidates: Sequence[EventCandidate]
    ) -> List[EventRecord]:  # pragma: no cover - interface only
        """Brief: Persist a validated batch of candidates.

        Inputs:
          - candidates: Validated records, in caller order.

        Outputs:
          - list[EventRecord]: The stored records with ``id`` and
            ``created_at`` assigned (one ``created_at`` for the whole batch).

        Raises:
          - StoreUnavailable: when the backend rejects or cannot perform the
            insert.
        """

        raise NotImplementedError("insert_many() must be implemented by a subclass")

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def find_events(
        self, query: EventQuery
    ) -> List[EventRecord]:  # pragma: no cover - interface only
        """Brief: Return one page of records matching query.filter.

        Inputs:
          - query: Normalized EventQuery.

        Outputs:
          - list[EventRecord] ordered by query.sort_column/descending, ties by
            insertion order, starting at query.offset, at most query.limit
            records (all when limit is 0).

        Raises:
          - StoreUnavailable on backend faults.
        """

        raise NotImplementedError("find_events() must be implemented by a subclass")

    def count_events(self, flt: EventFilter) -> int:  # pragma: no cover - interface only
        """Return the number of records matching flt (raises StoreUnavailable)."""

        raise NotImplementedError("count_events() must be implemented by a subclass")

    def iter_events(self) -> Iterator[EventRecord]:  # pragma: no cover - interface only
        """Yield every stored record in insertion order (raises StoreUnavailable)."""

        raise NotImplementedError("iter_events() must be implemented by a subclass")

    # ------------------------------------------------------------------
    # Optional shared helpers for backends
    # ------------------------------------------------------------------
    @staticmethod
    def _check_sort_column(column: str) -> str:
        """Return column when allow-listed, else DEFAULT_SORT_COLUMN."""

        return column if column in SORT_COLUMNS else DEFAULT_SORT_COLUMN
