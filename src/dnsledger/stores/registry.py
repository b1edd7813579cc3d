"""Alias table for record store backends.

Inputs:
  - A backend identifier from the ``store.backend`` configuration key.

Outputs:
  - get_event_store_class(): Resolve the identifier to a BaseEventStore
    subclass. Known aliases map to the bundled backends; anything containing a
    dot is imported as ``package.module.ClassName`` so deployments can plug in
    their own store.

Backend modules are imported only when selected.
"""

from __future__ import annotations

import difflib
import importlib
import inspect
from typing import Dict, Tuple, Type

from .base import BaseEventStore

# alias -> (module, class name)
BACKEND_ALIASES: Dict[str, Tuple[str, str]] = {
    "memory": ("dnsledger.stores.memory", "InMemoryEventStore"),
    "in_memory": ("dnsledger.stores.memory", "InMemoryEventStore"),
    "sqlite": ("dnsledger.stores.sqlite", "SqliteEventStore"),
    "sqlite3": ("dnsledger.stores.sqlite", "SqliteEventStore"),
    "mongo": ("dnsledger.stores.mongodb", "MongoEventStore"),
    "mongodb": ("dnsledger.stores.mongodb", "MongoEventStore"),
}


def _normalize(alias: str) -> str:
    """Lowercase, trim and replace dashes with underscores."""

    return alias.strip().lower().replace("-", "_")


def _load_class(modname: str, classname: str, identifier: str) -> Type[BaseEventStore]:
    module = importlib.import_module(modname)
    cls = getattr(module, classname, None)
    if not (inspect.isclass(cls) and issubclass(cls, BaseEventStore)):
        raise TypeError(f"{identifier} is not a BaseEventStore subclass")
    return cls


def get_event_store_class(identifier: str) -> Type[BaseEventStore]:
    """Brief: Resolve identifier to a BaseEventStore subclass.

    Inputs:
      - identifier: Alias from BACKEND_ALIASES (case and dash insensitive) or
        a dotted import path ("pkg.mod.Class").

    Outputs:
      - BaseEventStore subclass corresponding to the identifier.

    Raises:
      - KeyError for unknown aliases (with close-match suggestions).
      - ValueError when a dotted path is malformed.
      - ImportError when a dotted path names a module that cannot be imported.
      - TypeError when the target is missing or not a BaseEventStore subclass.

    Example:
      >>> get_event_store_class("SQLite").__name__
      'SqliteEventStore'
    """

    ident = str(identifier or "").strip()
    if "." in ident:
        modname, _, classname = ident.rpartition(".")
        if not modname or not classname:
            raise ValueError(f"Invalid store backend path '{identifier}'")
        return _load_class(modname, classname, ident)

    key = _normalize(ident)
    if key not in BACKEND_ALIASES:
        suggestions = difflib.get_close_matches(key, list(BACKEND_ALIASES), n=3)
        raise KeyError(
            "Unknown store backend alias '%s'. Known aliases: %s. Suggestions: %s"
            % (identifier, ", ".join(sorted(BACKEND_ALIASES)), suggestions)
        )
    modname, classname = BACKEND_ALIASES[key]
    return _load_class(modname, classname, ident)
