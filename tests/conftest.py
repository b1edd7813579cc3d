"""
Brief: Global pytest configuration and shared fixtures for dnsledger tests.

Inputs:
  - None

Outputs:
  - Per-test 10s timeout plus record-candidate and store fixtures.
"""

import signal
import os
import sys
from typing import Any, Callable, Dict

import pytest

# Ensure 'src' is on sys.path so 'dnsledger' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dnsledger.stores.memory import InMemoryEventStore  # noqa: E402
from dnsledger.stores.sqlite import SqliteEventStore  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


def build_entry(**overrides: Any) -> Dict[str, Any]:
    """Brief: Return a valid upload entry with optional field overrides.

    Inputs:
      - overrides: Wire-name fields to replace; a value of None removes it.

    Outputs:
      - Dict suitable for prepare_batch()/POST /api/log/upload.
    """

    entry: Dict[str, Any] = {
        "timestamp": "2024-05-01T10:00:00.000Z",
        "prediction": "benign",
        "domain": "example.com",
        "event_type": "Query",
        "dns_domain_name_length": 11,
        "numerical_percentage": 0.0,
        "character_entropy": 2.5,
        "max_numeric_length": 0,
        "max_alphabet_length": 7,
        "vowels_consonant_ratio": 0.5,
        "receiving_bytes": 120,
        "sending_bytes": 40,
        "ttl_mean": 300,
    }
    for key, value in overrides.items():
        if value is None:
            entry.pop(key, None)
        else:
            entry[key] = value
    return entry


@pytest.fixture
def make_entry() -> Callable[..., Dict[str, Any]]:
    """Brief: Fixture exposing build_entry() to tests."""

    return build_entry


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Brief: Parametrized store fixture covering the local backends.

    Inputs:
      - request.param: "memory" or "sqlite" (":memory:" database).

    Outputs:
      - Fresh, empty BaseEventStore instance; closed after the test.
    """

    if request.param == "memory":
        backend = InMemoryEventStore()
    else:
        backend = SqliteEventStore(":memory:")
    try:
        yield backend
    finally:
        backend.close()


@pytest.fixture
def tick_clock(monkeypatch):
    """Brief: Make store-assigned createdAt strictly increase per batch.

    Inputs:
      - monkeypatch: pytest fixture.

    Outputs:
      - None; each insert_many() call sees a clock one second later than the
        previous one.
    """

    from datetime import datetime, timedelta, timezone

    import dnsledger.stores.memory as memory_mod
    import dnsledger.stores.sqlite as sqlite_mod

    state = {"now": datetime(2024, 6, 1, tzinfo=timezone.utc)}

    def _now():
        state["now"] = state["now"] + timedelta(seconds=1)
        return state["now"]

    monkeypatch.setattr(memory_mod, "utc_now", _now)
    monkeypatch.setattr(sqlite_mod, "utc_now", _now)
