"""Ingestion path: validate an uploaded batch, then insert it in one go.

A batch is either inserted completely or not at all from the caller's point
of view: every element is validated before the store is touched, so shape
problems surface as ValidationError with nothing written, and only faults
during the insert itself surface as StoreUnavailable.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import pydantic

from .errors import ValidationError
from .models import STRIPPED_FIELDS, EventCandidate, EventRecord
from .stores import BaseEventStore

logger = logging.getLogger(__name__)

NOT_AN_ARRAY_MESSAGE = "Expected an array of log objects."


def _error_details(exc: pydantic.ValidationError) -> List[Dict[str, Any]]:
    details: List[Dict[str, Any]] = []
    for err in exc.errors():
        details.append(
            {
                "field": ".".join(str(p) for p in err.get("loc", ())) or "<root>",
                "message": str(err.get("msg", "invalid value")),
            }
        )
    return details


def prepare_batch(raw: object) -> List[EventCandidate]:
    """Brief: Validate and normalize a raw upload body.

    Inputs:
      - raw: Decoded JSON body; must be a list of objects.

    Outputs:
      - list[EventCandidate] in input order, with identifier/message fields
        stripped and timestamps parsed.

    Raises:
      - ValidationError: when raw is not a list, or any element is not an
        object or fails field validation. ``index`` names the first bad
        element.
    """

    if not isinstance(raw, list):
        raise ValidationError(NOT_AN_ARRAY_MESSAGE)

    candidates: List[EventCandidate] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(
                f"Log entry {index} must be an object.", index=index
            )
        fields = {k: v for k, v in item.items() if k not in STRIPPED_FIELDS}
        try:
            candidates.append(EventCandidate.model_validate(fields))
        except pydantic.ValidationError as exc:
            details = _error_details(exc)
            raise ValidationError(
                f"Log entry {index} is invalid; batch rejected.",
                index=index,
                details=details,
            ) from exc
    return candidates


def insert_batch(store: BaseEventStore, raw: object) -> List[EventRecord]:
    """Brief: Validate raw and insert the whole batch into store.

    Inputs:
      - store: Record store handle.
      - raw: Decoded JSON body (see prepare_batch).

    Outputs:
      - list[EventRecord] as stored (ids and createdAt assigned).

    Raises:
      - ValidationError before any insert when the batch is malformed.
      - StoreUnavailable when the insert itself fails.
    """

    candidates = prepare_batch(raw)
    records = store.insert_many(candidates)
    logger.info("Inserted %d log entries", len(records))
    return records
