"""Listing engine: filtered, sorted, paginated reads over the record store.

Inputs:
  - Raw, possibly missing or malformed query-string values for domain,
    prediction, page, limit, sort and direction.

Outputs:
  - ListResult with the page of records and the total number of matches.

Malformed parameters never fail a listing; each one degrades to its
documented default:

  - domain: empty/whitespace -> no domain filter; otherwise a literal,
    case-insensitive substring.
  - prediction: unknown value -> no verdict filter.
  - sort: not allow-listed -> "createdAt".
  - direction: "asc" -> ascending, anything else -> descending.
  - page/limit: read like JavaScript parseInt (leading digits, so "10.0"
    and "10px" are 10).
  - page: non-numeric or < 1 -> 1; pages beyond MAX_OFFSET rows are
    clamped to the last storable page.
  - limit: non-numeric or < 0 -> 0 (no pagination, return all matches);
    capped at MAX_OFFSET.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Any, Dict, List, Optional

from .models import EventRecord, Verdict
from .stores import (
    DEFAULT_SORT_COLUMN,
    SORT_COLUMNS,
    BaseEventStore,
    EventFilter,
    EventQuery,
)

logger = logging.getLogger(__name__)

# Largest row offset (and page size) handed to a store; fits a signed 64-bit
# integer for both SQLite and MongoDB.
MAX_OFFSET = 2**62

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def _parse_int(value: object, default: int) -> int:
    """Parse like JavaScript parseInt: optional sign plus leading digits."""

    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        if not m:
            return default
        text = m.group(1)
        # int() refuses very long digit strings; anything this long is
        # clamped by the caller anyway.
        if len(text.lstrip("+-")) > 30:
            return -(10**30) if text.startswith("-") else 10**30
        return int(text)
    return default


@dataclasses.dataclass(frozen=True)
class ListParams:
    """Brief: Normalized listing request.

    Inputs (fields):
      - filter: EventFilter (domain substring and/or verdict).
      - sort_column: Allow-listed wire column name.
      - descending: True unless "asc" was requested.
      - page: 1-based page number.
      - limit: Page size; 0 means "return all matches".

    Outputs:
      - Immutable request; to_query() converts it to a store EventQuery.
    """

    filter: EventFilter
    sort_column: str = DEFAULT_SORT_COLUMN
    descending: bool = True
    page: int = 1
    limit: int = 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit if self.limit > 0 else 0

    def to_query(self) -> EventQuery:
        return EventQuery(
            filter=self.filter,
            sort_column=self.sort_column,
            descending=self.descending,
            offset=self.offset,
            limit=self.limit,
        )


def normalize_list_params(
    domain: Optional[str] = None,
    prediction: Optional[str] = None,
    page: object = None,
    limit: object = None,
    sort: Optional[str] = None,
    direction: Optional[str] = None,
) -> ListParams:
    """Brief: Turn raw listing parameters into a ListParams, never raising.

    Inputs:
      - domain: Domain substring (matched literally, case-insensitively).
      - prediction: Verdict name.
      - page: 1-based page number (string or int).
      - limit: Page size (string or int); 0 disables pagination.
      - sort: Sort column (wire name).
      - direction: "asc" or anything else for descending.

    Outputs:
      - ListParams with every field at a valid value.

    Example:
      >>> p = normalize_list_params(domain="  ", sort="bogus", page="x", limit="-3")
      >>> (p.filter.domain, p.sort_column, p.page, p.limit)
      (None, 'createdAt', 1, 0)
    """

    domain_s = domain.strip() if isinstance(domain, str) else ""
    verdict = Verdict.parse(prediction) if isinstance(prediction, str) else None
    if isinstance(prediction, str) and prediction.strip() and verdict is None:
        logger.debug("Ignoring unknown prediction filter %r", prediction)

    sort_column = sort if isinstance(sort, str) and sort in SORT_COLUMNS else DEFAULT_SORT_COLUMN
    descending = direction != "asc"

    page_i = _parse_int(page, 1)
    if page_i < 1:
        page_i = 1
    limit_i = _parse_int(limit, 0)
    if limit_i < 0:
        limit_i = 0
    limit_i = min(limit_i, MAX_OFFSET)
    if limit_i > 0:
        # Pages past MAX_OFFSET are empty anyway; keep the offset storable.
        page_i = min(page_i, MAX_OFFSET // limit_i + 1)

    return ListParams(
        filter=EventFilter(domain=domain_s or None, verdict=verdict),
        sort_column=sort_column,
        descending=descending,
        page=page_i,
        limit=limit_i,
    )


@dataclasses.dataclass(frozen=True)
class ListResult:
    """One page of records plus the total number of records matching the filter."""

    records: List[EventRecord]
    total_count: int
    page: int
    limit: int

    def to_payload(self) -> Dict[str, Any]:
        """Render the ``GET /api/log`` response body."""

        return {
            "totalCount": self.total_count,
            "page": self.page,
            "limit": self.limit,
            "logs": [r.to_document() for r in self.records],
        }


def list_events(store: BaseEventStore, params: ListParams) -> ListResult:
    """Brief: Execute a normalized listing against store.

    Inputs:
      - store: Record store handle.
      - params: ListParams from normalize_list_params().

    Outputs:
      - ListResult; total_count is independent of page/limit.

    Raises:
      - StoreUnavailable when the store faults (propagated unchanged).
    """

    records = store.find_events(params.to_query())
    total = store.count_events(params.filter)
    return ListResult(records=records, total_count=total, page=params.page, limit=params.limit)
