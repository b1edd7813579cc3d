"""Configuration parsing and normalization helpers for dnsledger.

Brief:
  This module contains the configuration utilities used by the CLI
  entrypoint. It centralizes:
    - reading the YAML config file (a missing file means "all defaults")
    - JSON Schema validation via validate_config
    - environment overrides (PORT, MONGODB_URL, DNSLEDGER_LOG_LEVEL)
    - typed accessors for the server.http and store blocks

Inputs:
  - YAML config paths and environment mappings

Outputs:
  - Normalized config dicts
"""

from __future__ import annotations

import copy
import logging
import os
from typing import Any, Dict, Mapping, Optional

import yaml

from .config_schema import validate_config

logger = logging.getLogger(__name__)

DEFAULT_HTTP_CONFIG: Dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 8000,
    "cors": {"enabled": True, "allowlist": []},
    "stats_cache_ttl_seconds": 0,
    "suppress_2xx_access_logs": False,
}


def read_config_file(config_path: str) -> Dict[str, Any]:
    """Brief: Read a YAML configuration file into a mapping.

    Inputs:
      - config_path: Path to the YAML configuration file.

    Outputs:
      - dict: Parsed mapping, or {} when the file does not exist or is empty.

    Raises:
      - ValueError: When the YAML is malformed or its root is not a mapping.
    """

    if not os.path.exists(config_path):
        logger.info("Config file %s not found; using defaults", config_path)
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(cfg, dict):
        raise ValueError("Configuration root must be a mapping")
    return cfg


def apply_env_overrides(
    cfg: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Brief: Apply environment-variable overrides to cfg in place.

    Inputs:
      - cfg: Configuration mapping (mutated in-place).
      - environ: Optional environment mapping (defaults to os.environ).

    Outputs:
      - dict: The same cfg mapping, for chaining.

    Raises:
      - ValueError: When PORT is not an integer.

    Notes:
      - PORT sets server.http.port.
      - MONGODB_URL sets store.config.uri, and selects the mongodb backend
        when no backend is configured.
      - DNSLEDGER_LOG_LEVEL sets logging.level.

    Example:
      >>> apply_env_overrides({}, {"PORT": "9000"})["server"]["http"]["port"]
      9000
    """

    env = os.environ if environ is None else environ

    port = env.get("PORT")
    if port is not None and str(port).strip():
        try:
            port_i = int(str(port).strip())
        except ValueError as exc:
            raise ValueError(f"PORT must be an integer, got {port!r}") from exc
        server = cfg.get("server") or {}
        http = server.get("http") or {}
        http["port"] = port_i
        server["http"] = http
        cfg["server"] = server

    mongo_url = env.get("MONGODB_URL")
    if mongo_url and str(mongo_url).strip():
        store = cfg.get("store") or {}
        store.setdefault("backend", "mongodb")
        store_conf = store.get("config") or {}
        store_conf["uri"] = str(mongo_url).strip()
        store["config"] = store_conf
        cfg["store"] = store

    level = env.get("DNSLEDGER_LOG_LEVEL")
    if level and str(level).strip():
        logging_cfg = cfg.get("logging") or {}
        logging_cfg["level"] = str(level).strip().lower()
        cfg["logging"] = logging_cfg

    return cfg


def load_config(
    config_path: str, *, environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Brief: Read, env-override and schema-validate the configuration.

    Inputs:
      - config_path: Path to the YAML configuration file (may not exist).
      - environ: Optional environment mapping (defaults to os.environ).

    Outputs:
      - dict: Validated configuration mapping.

    Raises:
      - ValueError: When the file is malformed or validation fails.
    """

    cfg = read_config_file(config_path)
    apply_env_overrides(cfg, environ)
    validate_config(cfg, config_path=config_path)
    return cfg


def get_http_config(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return server.http merged over DEFAULT_HTTP_CONFIG."""

    merged = copy.deepcopy(DEFAULT_HTTP_CONFIG)
    server = (cfg or {}).get("server") or {}
    http = server.get("http") or {}
    for key, value in http.items():
        if key == "cors" and isinstance(value, dict):
            merged["cors"].update(value)
        else:
            merged[key] = value
    return merged


def get_store_config(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return the store block, defaulting to the in-memory backend."""

    store = (cfg or {}).get("store") or {}
    return {
        "backend": store.get("backend") or "memory",
        "config": dict(store.get("config") or {}),
    }
