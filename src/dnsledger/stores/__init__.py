from __future__ import annotations

"""Record store abstraction layer.

Inputs:
  - None directly; this package is imported by code that needs the store
    interface, the listing query types, or a configured backend instance.

Outputs:
  - Exposes BaseEventStore, EventFilter, EventQuery and load_event_store(),
    which builds the single explicitly owned store handle the engines and the
    HTTP layer are given.
"""

import inspect
import logging
from typing import Any, Dict, Optional

from .base import (
    DEFAULT_SORT_COLUMN,
    SORT_COLUMNS,
    BaseEventStore,
    EventFilter,
    EventQuery,
    EventStoreBackendConfig,
)
from .registry import get_event_store_class

__all__ = [
    "BaseEventStore",
    "DEFAULT_SORT_COLUMN",
    "EventFilter",
    "EventQuery",
    "EventStoreBackendConfig",
    "SORT_COLUMNS",
    "load_event_store",
]

logger = logging.getLogger(__name__)


def _build_backend_from_config(cfg: EventStoreBackendConfig) -> BaseEventStore:
    """Brief: Construct a concrete backend from an EventStoreBackendConfig.

    Inputs:
      - cfg: Parsed backend configuration model.

    Outputs:
      - Concrete BaseEventStore instance.

    Notes:
      - Backend-provided ``default_config`` values are merged under the user
        config, and keys the backend constructor does not accept are dropped.
    """

    backend_cls = get_event_store_class(cfg.backend or "memory")

    merged: Dict[str, Any] = dict(getattr(backend_cls, "default_config", {}) or {})
    merged.update(cfg.config or {})

    sig = inspect.signature(backend_cls.__init__)
    valid_keys = {
        name
        for name, param in sig.parameters.items()
        if name != "self"
        and param.kind
        in {
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.KEYWORD_ONLY,
        }
    }
    dropped = sorted(k for k in merged if k not in valid_keys)
    if dropped:
        logger.warning(
            "Ignoring unsupported %s options: %s", backend_cls.__name__, ", ".join(dropped)
        )
    filtered = {k: v for k, v in merged.items() if k in valid_keys}

    return backend_cls(**filtered)


def load_event_store(store_cfg: Optional[Dict[str, Any]]) -> BaseEventStore:
    """Brief: Construct the configured record store.

    Inputs:
      - store_cfg: Optional mapping from the ``store`` configuration block,
        e.g. {"backend": "sqlite", "config": {"db_path": "./var/events.db"}}.
        None or an empty mapping selects the in-memory backend.

    Outputs:
      - BaseEventStore instance owned by the caller (close() it on shutdown).

    Example:
      >>> store = load_event_store({"backend": "memory"})
      >>> store.health_check()
      True
    """

    model = EventStoreBackendConfig(**(store_cfg or {}))
    store = _build_backend_from_config(model)
    logger.info("Using %s record store", store.__class__.__name__)
    return store
