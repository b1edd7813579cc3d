"""DNS event record types shared by the stores and the query engines.

Inputs:
  - Loosely typed record candidates from the upload endpoint (validated via
    EventCandidate) and rows/documents read back from a record store.

Outputs:
  - Verdict / Direction enumerations, the immutable EventRecord type and the
    helpers that convert records to and from their wire (document) form.

Notes:
  - Wire names (``prediction``, ``event_type``, ``createdAt``...) are the ones
    the dashboard client consumes; Python attributes use descriptive names.
"""

from __future__ import annotations

import dataclasses
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, FiniteFloat, field_validator


class Verdict(str, Enum):
    """Classifier label attached to a DNS event."""

    BENIGN = "benign"
    MALWARE = "malware"
    SPAM = "spam"
    PHISHING = "phishing"

    @classmethod
    def parse(cls, value: object) -> Optional["Verdict"]:
        """Return the member matching value case-insensitively, else None."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        return None


class Direction(str, Enum):
    """Whether an event is a DNS query or a DNS response."""

    QUERY = "Query"
    RESPONSE = "Response"

    @classmethod
    def parse(cls, value: object) -> Optional["Direction"]:
        """Return the member matching value case-insensitively, else None."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


# Numeric feature set, in wire-name form. Every record carries all of them.
FEATURE_FIELDS: Tuple[str, ...] = (
    "dns_domain_name_length",
    "numerical_percentage",
    "character_entropy",
    "max_numeric_length",
    "max_alphabet_length",
    "vowels_consonant_ratio",
    "receiving_bytes",
    "sending_bytes",
    "ttl_mean",
)

# Caller-supplied fields discarded before validation: identifiers, the raw
# log message and anything the store assigns itself.
STRIPPED_FIELDS: Tuple[str, ...] = (
    "_id",
    "id",
    "message",
    "__v",
    "createdAt",
    "updatedAt",
)


def parse_timestamp(value: object) -> datetime:
    """Brief: Parse a caller-supplied timestamp into an aware UTC datetime.

    Inputs:
      - value: ISO-8601 string (trailing ``Z`` accepted, naive means UTC),
        int/float epoch milliseconds, or a datetime instance.

    Outputs:
      - datetime with tzinfo=UTC.

    Raises:
      - ValueError: when the value cannot be interpreted as a point in time.

    Example:
      >>> parse_timestamp("2024-05-01T10:00:00Z").isoformat()
      '2024-05-01T10:00:00+00:00'
      >>> parse_timestamp(0).year
      1970
    """

    if isinstance(value, bool):
        raise ValueError("timestamp must be a date string or epoch milliseconds")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            millis = float(value)
            if not math.isfinite(millis):
                raise ValueError("timestamp must be finite")
            dt = datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError("timestamp out of range") from exc
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("timestamp must not be empty")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"invalid timestamp: {value!r}") from exc
    else:
        raise ValueError("timestamp must be a date string or epoch milliseconds")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision and ``Z``."""

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    text = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventCandidate(BaseModel):
    """Brief: Validated, normalized form of one uploaded record candidate.

    Inputs (fields):
      - timestamp: Observation time (see parse_timestamp).
      - prediction: Verdict, matched case-insensitively.
      - domain: Non-empty domain text (surrounding whitespace stripped).
      - event_type: Direction, matched case-insensitively.
      - FEATURE_FIELDS: Finite real numbers; booleans are rejected and numeric
        strings are coerced.

    Outputs:
      - EventCandidate instance ready to be handed to a record store.

    Notes:
      - Unknown extra keys are ignored rather than persisted.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    timestamp: datetime
    prediction: Verdict
    domain: str
    event_type: Direction
    dns_domain_name_length: FiniteFloat
    numerical_percentage: FiniteFloat
    character_entropy: FiniteFloat
    max_numeric_length: FiniteFloat
    max_alphabet_length: FiniteFloat
    vowels_consonant_ratio: FiniteFloat
    receiving_bytes: FiniteFloat
    sending_bytes: FiniteFloat
    ttl_mean: FiniteFloat

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v: Any) -> datetime:
        return parse_timestamp(v)

    @field_validator("prediction", mode="before")
    @classmethod
    def _parse_prediction(cls, v: Any) -> Verdict:
        verdict = Verdict.parse(v)
        if verdict is None:
            allowed = ", ".join(m.value for m in Verdict)
            raise ValueError(f"prediction must be one of: {allowed}")
        return verdict

    @field_validator("event_type", mode="before")
    @classmethod
    def _parse_event_type(cls, v: Any) -> Direction:
        direction = Direction.parse(v)
        if direction is None:
            allowed = ", ".join(m.value for m in Direction)
            raise ValueError(f"event_type must be one of: {allowed}")
        return direction

    @field_validator("domain", mode="before")
    @classmethod
    def _strip_domain(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("domain must be a string")
        text = v.strip()
        if not text:
            raise ValueError("domain must not be empty")
        return text

    @field_validator(*FEATURE_FIELDS, mode="before")
    @classmethod
    def _reject_bool(cls, v: Any) -> Any:
        # bool is an int subclass; True/False are never meaningful features.
        if isinstance(v, bool):
            raise ValueError("feature values must be numbers")
        return v


@dataclasses.dataclass(frozen=True)
class EventRecord:
    """Brief: One persisted DNS event, as read back from a record store.

    Inputs (fields):
      - id: Store-assigned opaque identifier.
      - timestamp: Observation time (aware UTC).
      - verdict / direction: Enumerated labels.
      - domain: Queried domain name.
      - features: Mapping of FEATURE_FIELDS wire names to floats.
      - created_at: Store-assigned ingestion time (aware UTC).

    Outputs:
      - Immutable record; to_document() renders the wire form.
    """

    id: str
    timestamp: datetime
    verdict: Verdict
    domain: str
    direction: Direction
    features: Dict[str, float]
    created_at: datetime

    @classmethod
    def from_candidate(
        cls, candidate: EventCandidate, *, record_id: str, created_at: datetime
    ) -> "EventRecord":
        """Build a stored record from a validated candidate and store metadata."""

        return cls(
            id=str(record_id),
            timestamp=candidate.timestamp,
            verdict=candidate.prediction,
            domain=candidate.domain,
            direction=candidate.event_type,
            features={name: float(getattr(candidate, name)) for name in FEATURE_FIELDS},
            created_at=created_at,
        )

    def feature(self, name: str) -> float:
        return float(self.features.get(name, 0.0))

    def sort_value(self, column: str) -> Any:
        """Return the value used when ordering by the given wire column."""

        if column == "timestamp":
            return self.timestamp
        if column == "createdAt":
            return self.created_at
        if column == "domain":
            return self.domain
        if column == "prediction":
            return self.verdict.value
        if column == "event_type":
            return self.direction.value
        return self.feature(column)

    def to_document(self) -> Dict[str, Any]:
        """Render the record in its JSON wire form."""

        doc: Dict[str, Any] = {
            "_id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "prediction": self.verdict.value,
            "domain": self.domain,
            "event_type": self.direction.value,
        }
        for name in FEATURE_FIELDS:
            doc[name] = self.feature(name)
        doc["createdAt"] = format_timestamp(self.created_at)
        return doc
