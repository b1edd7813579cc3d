"""
Brief: Tests for dnsledger.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from dnsledger.config.logging_config import (
    LedgerFormatter,
    init_logging,
    log_controller_error,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """
    Brief: Restore root logger handlers and level after each test.

    Inputs:
      - None

    Outputs:
      - None: Closes handlers added by init_logging
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers and not type(h).__module__.startswith("_pytest"):
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    logging.captureWarnings(False)


def test_init_logging_adds_stderr_handler():
    """
    Brief: init_logging configures root logger with stderr handler by default.

    Inputs:
      - cfg: minimal dict with level

    Outputs:
      - None: Asserts StreamHandler present and level applied
    """
    init_logging({"level": "debug"})
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(type(h) is logging.StreamHandler for h in root.handlers)


def test_init_logging_none_uses_info_and_replaces_handlers():
    init_logging(None)
    init_logging(None)
    root = logging.getLogger()
    assert root.level == logging.INFO
    assert sum(1 for h in root.handlers if type(h) is logging.StreamHandler) == 1


def test_init_logging_without_stderr_and_unknown_level():
    init_logging({"stderr": False, "level": "chatty"})
    root = logging.getLogger()
    assert root.level == logging.INFO
    assert not any(type(h) is logging.StreamHandler for h in root.handlers)


def test_init_logging_file_handler_writes(tmp_path):
    """
    Brief: init_logging creates file handler (and parent dirs) and writes entries.

    Inputs:
      - cfg: file path and level

    Outputs:
      - None: Asserts file created and contains message
    """
    log_path = tmp_path / "logs" / "dnsledger.log"
    init_logging({"level": "warn", "file": str(log_path), "stderr": False})
    logging.getLogger("dnsledger.test").info("hidden message")
    logging.getLogger("dnsledger.test").warning("file message")
    for h in logging.getLogger().handlers:
        h.flush()
    content = Path(log_path).read_text()
    assert "file message" in content
    assert "hidden message" not in content
    assert "[WARN][" in content
    assert "] - dnsledger.test: file message" in content


def test_init_logging_syslog_dict_config(monkeypatch):
    """
    Brief: init_logging attaches a syslog handler with address and facility.

    Inputs:
      - syslog: dict with address/facility

    Outputs:
      - None: Asserts handler constructed with mapped facility
    """
    created = {}

    class DummySysLogHandler(logging.Handler):
        LOG_USER = 8
        LOG_LOCAL0 = 128

        def __init__(self, address=None, facility=None):
            super().__init__()
            created["address"] = address
            created["facility"] = facility

        def emit(self, record):
            created.setdefault("records", []).append(record)

    monkeypatch.setattr(logging.handlers, "SysLogHandler", DummySysLogHandler)
    init_logging({"stderr": False, "syslog": {"address": ("localhost", 514), "facility": "local0"}})
    assert created["address"] == ("localhost", 514)
    assert created["facility"] == 128

    init_logging({"stderr": False, "syslog": True})
    assert created["address"] == "/dev/log"
    assert created["facility"] == 8


def test_init_logging_syslog_failure_warns(monkeypatch):
    """
    Brief: init_logging logs a warning if syslog handler setup fails.

    Inputs:
      - monkeypatch: make SysLogHandler raise OSError

    Outputs:
      - None: Asserts warning emitted
    """

    class FailingSysLogHandler:
        LOG_USER = 8

        def __init__(self, *a, **kw):
            raise OSError("no syslog")

    monkeypatch.setattr(logging.handlers, "SysLogHandler", FailingSysLogHandler)

    caught = {"msg": None}
    root = logging.getLogger()

    def fake_warning(msg, *args, **kwargs):
        caught["msg"] = msg % args if args else str(msg)

    monkeypatch.setattr(root, "warning", fake_warning)

    init_logging({"syslog": True})
    assert caught["msg"] and "Failed to configure syslog" in caught["msg"]


def _record(name, level, msg, args=(), **extra):
    rec = logging.LogRecord(name, level, __file__, 1, msg, args, None)
    rec.created = 0.0
    for key, value in extra.items():
        setattr(rec, key, value)
    return rec


def test_ledger_formatter_layouts():
    """
    Brief: LedgerFormatter renders [LEVEL][time] - source: message.

    Inputs:
      - LogRecord instances at different levels and timestamp styles

    Outputs:
      - None: Asserts exact rendered lines in UTC
    """
    iso = LedgerFormatter()
    assert iso.format(_record("n", logging.ERROR, "m")) == "[ERROR][1970-01-01T00:00:00Z] - n: m"

    compact = LedgerFormatter(timestamp="compact")
    assert compact.format(_record("n", logging.INFO, "m")) == "[INFO][01-Jan-70 00:00:00] - n: m"

    bare = LedgerFormatter(timestamp=None)
    assert bare.format(_record("n2", logging.WARNING, "m2")) == "[WARN] - n2: m2"
    assert bare.format(_record("n3", 25, "m3")) == "[LVL25] - n3: m3"


def test_controller_records_use_controller_as_source():
    fmt = LedgerFormatter()
    rec = _record(
        "dnsledger.webserver",
        logging.ERROR,
        "%s: %s",
        ("Get Logs Controller", "query failed"),
        controller="Get Logs Controller",
    )
    assert fmt.format(rec) == (
        "[ERROR][1970-01-01T00:00:00Z] - Get Logs Controller: query failed"
    )


def test_log_controller_error_attaches_traceback_only_at_debug(caplog):
    logger = logging.getLogger("dnsledger.test.controller")
    caplog.set_level(logging.INFO, logger=logger.name)

    log_controller_error(logger, "Get Stats Controller", RuntimeError("scan failed"))
    [rec] = caplog.records
    assert rec.getMessage() == "Get Stats Controller: scan failed"
    assert rec.controller == "Get Stats Controller"
    assert rec.exc_info is None

    caplog.clear()
    caplog.set_level(logging.DEBUG, logger=logger.name)
    log_controller_error(logger, "Upload Logs Controller", ValueError())
    [rec] = caplog.records
    assert rec.getMessage() == "Upload Logs Controller: ValueError"
    assert rec.exc_info is not None


def test_init_logging_compact_timestamps_and_unknown_style(tmp_path):
    log_path = tmp_path / "compact.log"
    init_logging({"stderr": False, "file": str(log_path), "timestamp": "compact"})
    log_controller_error(logging.getLogger("dnsledger.test"), "Store Connection", OSError("refused"))
    for h in logging.getLogger().handlers:
        h.flush()
    line = Path(log_path).read_text().strip()
    assert line.startswith("[ERROR][")
    assert line.endswith("] - Store Connection: refused")
    # dd-Mon-yy HH:MM:SS
    stamp = line[len("[ERROR]["):line.index("]", len("[ERROR]["))]
    assert len(stamp) == 18 and stamp[2] == "-" and stamp[6] == "-"

    init_logging({"timestamp": "rfc822"})
    [handler] = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
    assert handler.formatter.formatTime(_record("n", logging.INFO, "m")) == "1970-01-01T00:00:00Z"
