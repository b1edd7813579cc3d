"""JSON Schema-based validation for dnsledger YAML configuration.

The schema lives in this module as CONFIG_SCHEMA so it ships with the
package; validate_config() applies it with jsonschema's Draft 2020-12
validator.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, ValidationError

from .logging_config import LOG_LEVELS, TIMESTAMP_FORMATS

logger = logging.getLogger(__name__)

_LOG_LEVELS = list(LOG_LEVELS)

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "dnsledger configuration",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "server": {
            "type": ["object", "null"],
            "additionalProperties": False,
            "properties": {
                "http": {
                    "type": ["object", "null"],
                    "additionalProperties": False,
                    "properties": {
                        "host": {"type": "string", "minLength": 1},
                        "port": {"type": "integer", "minimum": 0, "maximum": 65535},
                        "cors": {
                            "type": "object",
                            "additionalProperties": False,
                            "properties": {
                                "enabled": {"type": "boolean"},
                                "allowlist": {
                                    "type": "array",
                                    "items": {"type": "string"},
                                },
                            },
                        },
                        "stats_cache_ttl_seconds": {"type": "number", "minimum": 0},
                        "suppress_2xx_access_logs": {"type": "boolean"},
                    },
                }
            },
        },
        "logging": {
            "type": ["object", "null"],
            "additionalProperties": False,
            "properties": {
                "level": {"type": "string", "enum": _LOG_LEVELS},
                "timestamp": {"type": "string", "enum": list(TIMESTAMP_FORMATS)},
                "stderr": {"type": "boolean"},
                "file": {"type": ["string", "null"]},
                "syslog": {
                    "oneOf": [
                        {"type": "boolean"},
                        {
                            "type": "object",
                            "additionalProperties": False,
                            "properties": {
                                "address": {"type": "string"},
                                "facility": {"type": "string"},
                            },
                        },
                    ]
                },
            },
        },
        "store": {
            "type": ["object", "null"],
            "additionalProperties": False,
            "properties": {
                "backend": {"type": "string", "minLength": 1},
                "config": {"type": "object"},
            },
        },
    },
}


def _format_errors(errors: List[ValidationError], *, config_path: Optional[str]) -> str:
    """Brief: Format jsonschema validation errors into a human-readable string.

    Inputs:
      - errors: List of jsonschema.ValidationError instances.
      - config_path: Optional path to the YAML config being validated.

    Outputs:
      - String suitable for display in logs or CLI output.
    """

    lines: List[str] = [f"Invalid configuration in {config_path or '<config dict>'}:"]
    for err in errors:
        instance_path = "/".join(str(p) for p in err.path) or "<root>"
        schema_path = "/".join(str(p) for p in err.schema_path)
        lines.append(f"- {instance_path}: {err.message} (schema: {schema_path})")
    return "\n".join(lines)


def _split_extra_property_errors(
    errors: List[ValidationError],
) -> tuple[List[ValidationError], List[ValidationError]]:
    """Partition errors into (unexpected-property errors, everything else)."""

    extra: List[ValidationError] = []
    other: List[ValidationError] = []
    for err in errors:
        if getattr(err, "validator", None) in {
            "additionalProperties",
            "unevaluatedProperties",
        }:
            extra.append(err)
        else:
            other.append(err)
    return extra, other


def validate_config(
    cfg: Dict[str, Any],
    *,
    config_path: Optional[str] = None,
    unknown_keys: str = "warn",
) -> None:
    """Brief: Validate a parsed YAML configuration mapping against CONFIG_SCHEMA.

    Inputs:
      - cfg: Dict loaded from YAML (top-level configuration mapping).
      - config_path: Optional string path to the YAML file, used only for
        error messages.
      - unknown_keys: Policy for keys not described by the schema:
        "ignore", "warn" (default; log and continue) or "error".

    Outputs:
      - None on success.

    Raises:
      - ValueError: when non-extra validation fails, or when ``unknown_keys``
        is "error" and there are unexpected keys.

    Example:
      >>> validate_config({"server": {"http": {"port": 8000}}})
    """

    if unknown_keys not in {"ignore", "warn", "error"}:
        raise ValueError(
            f"unknown_keys policy must be 'ignore', 'warn', or 'error', got {unknown_keys!r}"
        )

    validator = Draft202012Validator(CONFIG_SCHEMA)
    all_errors = sorted(validator.iter_errors(cfg), key=lambda e: [str(p) for p in e.path])
    if not all_errors:
        return None

    extra_errors, other_errors = _split_extra_property_errors(all_errors)

    # Any non-extra failure is fatal; report extra keys alongside it.
    if other_errors:
        raise ValueError(_format_errors(other_errors + extra_errors, config_path=config_path))

    message = _format_errors(extra_errors, config_path=config_path)
    if unknown_keys == "ignore":
        return None
    if unknown_keys == "warn":
        logger.warning(message)
        return None
    raise ValueError(message)
