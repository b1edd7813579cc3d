"""Brief: Tests for JSON Schema validation of dnsledger configuration.

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

import logging

import pytest

from dnsledger.config.config_schema import CONFIG_SCHEMA, validate_config


def test_empty_and_full_configs_are_valid() -> None:
    validate_config({})
    validate_config(
        {
            "server": {
                "http": {
                    "host": "0.0.0.0",
                    "port": 8000,
                    "cors": {"enabled": True, "allowlist": ["http://localhost:3000"]},
                    "stats_cache_ttl_seconds": 2.5,
                    "suppress_2xx_access_logs": True,
                }
            },
            "logging": {
                "level": "debug",
                "stderr": True,
                "file": "./var/dnsledger.log",
                "syslog": {"address": "/dev/log", "facility": "local0"},
            },
            "store": {"backend": "mongodb", "config": {"uri": "mongodb://db"}},
        }
    )


@pytest.mark.parametrize(
    "cfg",
    [
        {"server": {"http": {"port": 70000}}},
        {"server": {"http": {"port": "8000"}}},
        {"logging": {"level": "loud"}},
        {"logging": {"syslog": "yes"}},
        {"store": {"backend": ""}},
        {"server": {"http": {"stats_cache_ttl_seconds": -1}}},
    ],
)
def test_invalid_values_raise(cfg) -> None:
    with pytest.raises(ValueError) as excinfo:
        validate_config(cfg, config_path="config.yaml")
    assert "Invalid configuration in config.yaml" in str(excinfo.value)


def test_unknown_keys_warn_by_default(caplog) -> None:
    """Brief: Unexpected keys are logged, not fatal, under the default policy."""

    caplog.set_level(logging.WARNING)
    validate_config({"server": {"http": {"port": 8000, "colour": "blue"}}})
    assert "colour" in caplog.text


def test_unknown_keys_policies() -> None:
    cfg = {"extra_top_level": 1}
    validate_config(cfg, unknown_keys="ignore")
    with pytest.raises(ValueError):
        validate_config(cfg, unknown_keys="error")
    with pytest.raises(ValueError):
        validate_config(cfg, unknown_keys="sometimes")


def test_invalid_value_alongside_unknown_key_reports_both() -> None:
    with pytest.raises(ValueError) as excinfo:
        validate_config({"server": {"http": {"port": -1}}, "bogus": True})
    text = str(excinfo.value)
    assert "server/http/port" in text
    assert "bogus" in text


def test_schema_declares_draft_2020_12() -> None:
    assert CONFIG_SCHEMA["$schema"].endswith("2020-12/schema")
