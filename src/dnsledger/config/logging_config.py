"""Logging setup for dnsledger.

Every line is rendered as::

    [LEVEL][timestamp] - source: message

where ``source`` is the logger name, or the controller name for request and
startup faults reported through log_controller_error(), e.g.::

    [ERROR][2024-05-01T10:00:00Z] - Get Logs Controller: query failed

The timestamp is UTC ISO-8601 by default; ``logging.timestamp: compact``
switches to the dashboard's ``01-May-24 10:00:00`` form. Syslog lines drop the
timestamp since syslog adds its own.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

TIMESTAMP_FORMATS: Dict[str, str] = {
    "iso": "%Y-%m-%dT%H:%M:%SZ",
    "compact": "%d-%b-%y %H:%M:%S",
}

_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRIT",
}


def log_controller_error(
    logger: logging.Logger, controller: str, exc: BaseException
) -> None:
    """Brief: Report a fault on behalf of a named controller.

    Inputs:
      - logger: Module logger of the caller.
      - controller: Human readable source, e.g. "Get Stats Controller".
      - exc: The exception that ended the request or startup step.

    Outputs:
      - None; one error record whose source is the controller name. The
        traceback is attached only when debug logging is enabled, since
        stores already log their own faults with exc_info.
    """

    detail = str(exc) or exc.__class__.__name__
    logger.error(
        "%s: %s",
        controller,
        detail,
        extra={"controller": controller},
        exc_info=exc if logger.isEnabledFor(logging.DEBUG) else None,
    )


class LedgerFormatter(logging.Formatter):
    """Brief: Render records as ``[LEVEL][time] - source: message``.

    Inputs (constructor):
      - timestamp: Key of TIMESTAMP_FORMATS, or None to omit the time block.

    Outputs:
      - logging.Formatter; timestamps are always UTC.
    """

    def __init__(self, timestamp: Optional[str] = "iso") -> None:
        super().__init__()
        self._datefmt = TIMESTAMP_FORMATS.get(timestamp) if timestamp else None

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, timezone.utc).strftime(
            datefmt or self._datefmt or TIMESTAMP_FORMATS["iso"]
        )

    def format(self, record):
        level = _LEVEL_NAMES.get(record.levelno, f"LVL{record.levelno}")
        head = f"[{level}]"
        if self._datefmt:
            head += f"[{self.formatTime(record)}]"
        # Controller records already lead with the controller name.
        if getattr(record, "controller", None):
            line = f"{head} - {record.getMessage()}"
        else:
            line = f"{head} - {record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _syslog_handler(syslog_cfg: Any) -> logging.Handler:
    handler_cls = logging.handlers.SysLogHandler
    address: Any = "/dev/log"
    facility = handler_cls.LOG_USER
    if isinstance(syslog_cfg, dict):
        address = syslog_cfg.get("address", address)
        facility = getattr(
            handler_cls,
            f"LOG_{str(syslog_cfg.get('facility', 'USER')).upper()}",
            handler_cls.LOG_USER,
        )
    handler = handler_cls(address=address, facility=facility)
    handler.setFormatter(LedgerFormatter(timestamp=None))
    return handler


def init_logging(cfg: Optional[Dict[str, Any]]) -> None:
    """Brief: Configure the root logger from the ``logging`` config block.

    Inputs:
      - cfg: Mapping with optional keys:
          - level: debug, info, warn, error, crit (default info; unknown
            values fall back to info).
          - timestamp: "iso" (default) or "compact".
          - stderr: log to stderr (default True).
          - file: path of an append-mode log file; parent dirs are created.
          - syslog: True, or {address, facility}.

    Outputs:
      - None; existing root handlers are replaced so re-initialising does not
        duplicate output, and warnings.warn() is routed through logging.
    """

    cfg = cfg or {}

    level = LOG_LEVELS.get(str(cfg.get("level", "info")).lower(), logging.INFO)
    timestamp = str(cfg.get("timestamp") or "iso").lower()
    if timestamp not in TIMESTAMP_FORMATS:
        timestamp = "iso"
    formatter = LedgerFormatter(timestamp=timestamp)

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    if cfg.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    syslog_cfg = cfg.get("syslog")
    if syslog_cfg:
        try:
            root.addHandler(_syslog_handler(syslog_cfg))
        except (OSError, ValueError) as e:  # pragma: no cover - environment specific
            root.warning("Failed to configure syslog: %s", e)

    logging.captureWarnings(True)
