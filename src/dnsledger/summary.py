"""Aggregation engine: the multi-facet summary over the whole collection.

All facets are computed in one linear pass with streaming accumulators:
per-group counters for verdicts, directions and domains, running sums for the
six averages, and a running maximum for the longest domain. Auxiliary space is
O(distinct domains).
"""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import EventRecord
from .stores import BaseEventStore

logger = logging.getLogger(__name__)

TOP_DOMAINS_LIMIT = 5

# Summary key -> feature averaged, in response order.
AVERAGED_FEATURES: Tuple[Tuple[str, str], ...] = (
    ("averageDomainLength", "dns_domain_name_length"),
    ("averageEntropy", "character_entropy"),
    ("averageSendingBytes", "sending_bytes"),
    ("averageReceivingBytes", "receiving_bytes"),
    ("averageTTL", "ttl_mean"),
    ("averageVowelsConsonantRatio", "vowels_consonant_ratio"),
)


@dataclasses.dataclass(frozen=True)
class LargestDomain:
    domain: str
    length: float


@dataclasses.dataclass(frozen=True)
class StatsSummary:
    """Brief: Result of summarize().

    Inputs (fields):
      - total_logs: Number of records.
      - by_verdict / by_direction: Value -> count, only for values present.
      - averages: Summary key (see AVERAGED_FEATURES) -> mean; 0.0 when empty.
      - top_domains: Up to five (domain, count) pairs, count descending.
      - largest_domain: Record with the greatest domain length, or None.

    Outputs:
      - Immutable summary; to_payload() renders the ``GET /api/stats`` body.
    """

    total_logs: int
    by_verdict: Dict[str, int]
    by_direction: Dict[str, int]
    averages: Dict[str, float]
    top_domains: List[Tuple[str, int]]
    largest_domain: Optional[LargestDomain]

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "totalLogs": self.total_logs,
            "byPrediction": [
                {"_id": key, "count": count} for key, count in self.by_verdict.items()
            ],
            "byEventType": [
                {"_id": key, "count": count} for key, count in self.by_direction.items()
            ],
        }
        for key, _feature in AVERAGED_FEATURES:
            payload[key] = self.averages.get(key, 0.0)
        payload["topDomains"] = [
            {"_id": domain, "count": count} for domain, count in self.top_domains
        ]
        payload["largestDomain"] = (
            {
                "domain": self.largest_domain.domain,
                "dns_domain_name_length": self.largest_domain.length,
            }
            if self.largest_domain is not None
            else None
        )
        return payload


class SummaryAccumulator:
    """Streaming accumulator for every summary facet.

    Feed records with add() in any order, then call result(). Ties in
    top_domains keep first-seen order; ties for the largest domain keep the
    first record seen.
    """

    def __init__(self) -> None:
        self.total = 0
        self.by_verdict: Dict[str, int] = {}
        self.by_direction: Dict[str, int] = {}
        self.domains: Counter[str] = Counter()
        self.sums: Dict[str, float] = {key: 0.0 for key, _ in AVERAGED_FEATURES}
        self.largest: Optional[LargestDomain] = None

    def add(self, record: EventRecord) -> None:
        self.total += 1

        verdict = record.verdict.value
        self.by_verdict[verdict] = self.by_verdict.get(verdict, 0) + 1
        direction = record.direction.value
        self.by_direction[direction] = self.by_direction.get(direction, 0) + 1

        self.domains[record.domain] += 1

        for key, feature in AVERAGED_FEATURES:
            self.sums[key] += record.feature(feature)

        length = record.feature("dns_domain_name_length")
        if self.largest is None or length > self.largest.length:
            self.largest = LargestDomain(domain=record.domain, length=length)

    def extend(self, records: Iterable[EventRecord]) -> "SummaryAccumulator":
        for record in records:
            self.add(record)
        return self

    def result(self) -> StatsSummary:
        if self.total:
            averages = {key: self.sums[key] / self.total for key in self.sums}
        else:
            averages = {key: 0.0 for key in self.sums}
        return StatsSummary(
            total_logs=self.total,
            by_verdict=dict(self.by_verdict),
            by_direction=dict(self.by_direction),
            averages=averages,
            top_domains=self.domains.most_common(TOP_DOMAINS_LIMIT),
            largest_domain=self.largest,
        )


def summarize(store: BaseEventStore) -> StatsSummary:
    """Brief: Compute the summary over every record in store.

    Inputs:
      - store: Record store handle.

    Outputs:
      - StatsSummary; an empty store yields zero counts, zero averages, no top
        domains and largest_domain=None.

    Raises:
      - StoreUnavailable when the scan faults (propagated unchanged).
    """

    acc = SummaryAccumulator().extend(store.iter_events())
    logger.debug("Summarized %d records", acc.total)
    return acc.result()
