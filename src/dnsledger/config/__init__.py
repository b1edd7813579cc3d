"""Configuration loading, validation and logging setup."""

from .config_parser import (
    DEFAULT_HTTP_CONFIG,
    apply_env_overrides,
    get_http_config,
    get_store_config,
    load_config,
    read_config_file,
)
from .config_schema import CONFIG_SCHEMA, validate_config
from .logging_config import init_logging, log_controller_error

__all__ = [
    "CONFIG_SCHEMA",
    "DEFAULT_HTTP_CONFIG",
    "apply_env_overrides",
    "get_http_config",
    "get_store_config",
    "init_logging",
    "load_config",
    "log_controller_error",
    "read_config_file",
    "validate_config",
]
