"""Error taxonomy shared by the listing, aggregation and ingestion paths.

Only two conditions are ever reported to callers:

- ValidationError: a malformed ingestion batch, raised before any insert.
- StoreUnavailable: the record store could not be reached or a query/insert
  against it failed.

Degraded listing parameters (unknown sort column, bad page/limit, unknown
prediction) are not errors; they fall back to defaults in dnsledger.query.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DnsLedgerError(Exception):
    """Base class for all errors raised by dnsledger."""


class ValidationError(DnsLedgerError):
    """Brief: An ingestion batch was rejected before any record was written.

    Inputs (constructor):
      - message: Human-readable reason.
      - index: Optional zero-based index of the offending batch element.
      - details: Optional list of per-field error mappings (for example the
        output of pydantic's ``errors()``).

    Outputs:
      - Exception instance carrying ``index`` and ``details`` attributes.
    """

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.index = index
        self.details = list(details or [])

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON error body used by the upload endpoint."""

        payload: Dict[str, Any] = {"error": self.message}
        if self.index is not None:
            payload["index"] = self.index
        if self.details:
            payload["details"] = self.details
        return payload


class StoreUnavailable(DnsLedgerError):
    """The record store cannot be reached or an operation against it faulted."""
