"""Brief: Tests for the listing engine in dnsledger.query.

Inputs:
  - None

Outputs:
  - None (pytest assertions). Store-backed tests run against both the memory
    and SQLite backends via the parametrized ``store`` fixture.
"""

from __future__ import annotations

import pytest

from dnsledger.ingest import insert_batch
from dnsledger.models import Verdict
from dnsledger.query import MAX_OFFSET, ListParams, list_events, normalize_list_params
from dnsledger.stores import EventFilter


def _seed(store, make_entry, domains):
    insert_batch(store, [make_entry(domain=d) for d in domains])


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({}, (None, None, "createdAt", True, 1, 0)),
        ({"domain": "  "}, (None, None, "createdAt", True, 1, 0)),
        ({"domain": " a.com "}, ("a.com", None, "createdAt", True, 1, 0)),
        ({"prediction": "Malware"}, (None, Verdict.MALWARE, "createdAt", True, 1, 0)),
        ({"prediction": "ransomware"}, (None, None, "createdAt", True, 1, 0)),
        ({"sort": "password"}, (None, None, "createdAt", True, 1, 0)),
        ({"sort": "domain", "direction": "asc"}, (None, None, "domain", False, 1, 0)),
        ({"sort": "domain", "direction": "ASC"}, (None, None, "domain", True, 1, 0)),
        ({"direction": " asc"}, (None, None, "createdAt", True, 1, 0)),
        ({"direction": "sideways"}, (None, None, "createdAt", True, 1, 0)),
        ({"page": "0", "limit": "-5"}, (None, None, "createdAt", True, 1, 0)),
        ({"page": "abc", "limit": "xyz"}, (None, None, "createdAt", True, 1, 0)),
        ({"page": "3", "limit": "10"}, (None, None, "createdAt", True, 3, 10)),
        ({"page": 2, "limit": 5}, (None, None, "createdAt", True, 2, 5)),
        ({"limit": "10.0"}, (None, None, "createdAt", True, 1, 10)),
        ({"limit": "10abc"}, (None, None, "createdAt", True, 1, 10)),
        ({"limit": "2.9"}, (None, None, "createdAt", True, 1, 2)),
        ({"page": "  7", "limit": "+3"}, (None, None, "createdAt", True, 7, 3)),
        ({"page": "-2x", "limit": "abc10"}, (None, None, "createdAt", True, 1, 0)),
    ],
)
def test_normalize_list_params_degrades_to_defaults(kwargs, expected) -> None:
    """Brief: Malformed parameters fall back to defaults and never raise."""

    p = normalize_list_params(**kwargs)
    got = (p.filter.domain, p.filter.verdict, p.sort_column, p.descending, p.page, p.limit)
    assert got == expected


def test_huge_page_and_limit_are_clamped_to_storable_offsets() -> None:
    """Brief: Out-of-range page/limit values clamp so the row offset stays in range."""

    p = normalize_list_params(page="99999999999999999999", limit="10")
    assert p.limit == 10
    assert 0 < p.offset <= MAX_OFFSET

    p = normalize_list_params(page="2", limit="9" * 5000)
    assert p.limit == MAX_OFFSET
    assert p.offset <= MAX_OFFSET


def test_list_params_offset() -> None:
    assert ListParams(filter=EventFilter(), page=3, limit=10).offset == 20
    # limit 0 disables pagination regardless of page
    assert ListParams(filter=EventFilter(), page=3, limit=0).offset == 0


def test_total_count_is_independent_of_page(store, make_entry) -> None:
    """Brief: totalCount counts all matches, not just the returned page."""

    _seed(store, make_entry, [f"host{i}.example.com" for i in range(7)])

    first = list_events(store, normalize_list_params(page="1", limit="3"))
    last = list_events(store, normalize_list_params(page="3", limit="3"))
    beyond = list_events(store, normalize_list_params(page="9", limit="3"))

    assert [len(first.records), len(last.records), len(beyond.records)] == [3, 1, 0]
    assert first.total_count == last.total_count == beyond.total_count == 7


def test_listing_far_beyond_the_last_page_is_empty(store, make_entry) -> None:
    _seed(store, make_entry, ["a.com", "b.com"])

    for page, limit in (("99999999999999999999", "10"), ("2", "99999999999999999999")):
        result = list_events(store, normalize_list_params(page=page, limit=limit))
        assert result.records == []
        assert result.total_count == 2


def test_limit_zero_returns_everything(store, make_entry) -> None:
    _seed(store, make_entry, [f"d{i}.net" for i in range(12)])

    result = list_events(store, normalize_list_params(page="4", limit="0"))
    assert len(result.records) == 12
    assert result.total_count == 12


def test_pages_partition_the_sorted_sequence(store, make_entry) -> None:
    """Brief: Concatenated pages equal the unpaginated sorted listing."""

    _seed(store, make_entry, ["c.com", "a.com", "b.com", "a.com", "d.com"])

    full = list_events(store, normalize_list_params(sort="domain", direction="asc"))
    paged = []
    for page in ("1", "2", "3"):
        res = list_events(
            store, normalize_list_params(sort="domain", direction="asc", page=page, limit="2")
        )
        paged.extend(res.records)

    assert [r.id for r in paged] == [r.id for r in full.records]


@pytest.mark.parametrize("direction", ["asc", "desc"])
def test_sort_is_monotonic(store, make_entry, direction) -> None:
    batch = [
        make_entry(domain=f"d{i}.com", character_entropy=float(v))
        for i, v in enumerate([3, 1, 4, 1, 5, 9, 2, 6])
    ]
    insert_batch(store, batch)

    result = list_events(
        store, normalize_list_params(sort="character_entropy", direction=direction)
    )
    values = [r.feature("character_entropy") for r in result.records]
    assert values == sorted(values, reverse=(direction == "desc"))


def test_ties_break_by_insertion_order_in_both_directions(store, make_entry) -> None:
    insert_batch(store, [make_entry(domain=f"tie{i}.com") for i in range(4)])
    inserted = [r.id for r in store.iter_events()]

    for direction in ("asc", "desc"):
        result = list_events(
            store, normalize_list_params(sort="prediction", direction=direction)
        )
        assert [r.id for r in result.records] == inserted


def test_unknown_sort_column_matches_created_at(store, make_entry, tick_clock) -> None:
    """Brief: A non-allow-listed sort column behaves exactly like createdAt."""

    insert_batch(store, [make_entry(domain="first.com")])
    insert_batch(store, [make_entry(domain="second.com")])

    bogus = list_events(store, normalize_list_params(sort="__proto__"))
    default = list_events(store, normalize_list_params(sort="createdAt"))
    assert [r.id for r in bogus.records] == [r.id for r in default.records]
    # Default direction is descending: newest batch first
    assert bogus.records[0].domain == "second.com"


def test_domain_filter_is_a_literal_case_insensitive_substring(store, make_entry) -> None:
    _seed(store, make_entry, ["A.com", "abcom", "mail.a.com", "b.org"])

    result = list_events(store, normalize_list_params(domain="a.com"))
    assert sorted(r.domain for r in result.records) == ["A.com", "mail.a.com"]
    assert result.total_count == 2


@pytest.mark.parametrize("needle", ["bücher", "BÜCHER", "Bücher.DE", "ΣΟΦΙΑ"])
def test_domain_filter_folds_non_ascii_case(store, make_entry, needle) -> None:
    _seed(store, make_entry, ["BÜCHER.de", "σοφια.gr", "buecher.de"])

    result = list_events(store, normalize_list_params(domain=needle))
    assert result.total_count == 1
    assert result.records[0].domain in ("BÜCHER.de", "σοφια.gr")


@pytest.mark.parametrize("meta", [".*", "(a", "[x]", "a+", "\\", "%", "_"])
def test_domain_filter_with_meta_characters_does_not_error(store, make_entry, meta) -> None:
    _seed(store, make_entry, ["a.com", "b.com"])

    result = list_events(store, normalize_list_params(domain=meta))
    assert result.total_count == 0
    assert result.records == []


def test_filters_combine_with_and(store, make_entry) -> None:
    insert_batch(
        store,
        [
            make_entry(domain="evil.com", prediction="malware"),
            make_entry(domain="evil.com", prediction="benign"),
            make_entry(domain="nice.com", prediction="malware"),
        ],
    )

    result = list_events(store, normalize_list_params(domain="evil", prediction="MALWARE"))
    assert [(r.domain, r.verdict) for r in result.records] == [("evil.com", Verdict.MALWARE)]


def test_unknown_prediction_is_ignored(store, make_entry) -> None:
    _seed(store, make_entry, ["a.com", "b.com"])

    result = list_events(store, normalize_list_params(prediction="ransomware"))
    assert result.total_count == 2


def test_empty_store_lists_nothing(store) -> None:
    result = list_events(store, normalize_list_params(page="2", limit="10"))
    assert result.to_payload() == {"totalCount": 0, "page": 2, "limit": 10, "logs": []}


def test_payload_echoes_normalized_page_and_limit(store, make_entry) -> None:
    _seed(store, make_entry, ["a.com"])

    payload = list_events(store, normalize_list_params(page="-1", limit="x")).to_payload()
    assert payload["page"] == 1
    assert payload["limit"] == 0
    assert payload["logs"][0]["domain"] == "a.com"


def test_inserted_features_round_trip_through_listing(store, make_entry) -> None:
    """Brief: Feature values uploaded are listed back unchanged."""

    entry = make_entry(
        domain="xn--bcher-kva.example",
        numerical_percentage=12.5,
        character_entropy=3.141592,
        receiving_bytes=1024,
        ttl_mean=86400,
    )
    insert_batch(store, [entry])

    [doc] = list_events(store, normalize_list_params()).to_payload()["logs"]
    for key in ("numerical_percentage", "character_entropy", "receiving_bytes", "ttl_mean"):
        assert doc[key] == float(entry[key])
    assert doc["domain"] == entry["domain"]
    assert doc["timestamp"] == entry["timestamp"]
