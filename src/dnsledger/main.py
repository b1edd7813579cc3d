from __future__ import annotations

import argparse
import logging
from typing import List

from .config import (
    get_http_config,
    get_store_config,
    init_logging,
    load_config,
    log_controller_error,
)
from .errors import StoreUnavailable
from .stores import load_event_store
from .webserver import create_app, run_server


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the dnsledger HTTP API.
    Parses arguments, loads configuration, opens the record store and serves
    the API until interrupted.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        CLI:
            PYTHONPATH=src python -m dnsledger.main --config config.yaml --port 9000
    """
    parser = argparse.ArgumentParser(
        description="HTTP API for storing and summarizing DNS traffic predictions"
    )
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config")
    parser.add_argument("--host", default=None, help="Override server.http.host")
    parser.add_argument("--port", type=int, default=None, help="Override server.http.port")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ValueError as exc:
        print(str(exc))
        return 1

    # CLI flags win over both the config file and the environment.
    if args.host is not None or args.port is not None:
        server = cfg.get("server") or {}
        http = server.get("http") or {}
        if args.host is not None:
            http["host"] = args.host
        if args.port is not None:
            http["port"] = args.port
        server["http"] = http
        cfg["server"] = server

    # Initialize logging before any other operations
    init_logging(cfg.get("logging"))
    logger = logging.getLogger("dnsledger.main")
    logger.info("Loaded config from %s", args.config)

    store_cfg = get_store_config(cfg)
    try:
        store = load_event_store(store_cfg)
    except (KeyError, ValueError, TypeError, ImportError, StoreUnavailable) as exc:
        log_controller_error(logger, "Store Connection", exc)
        return 1

    http_cfg = get_http_config(cfg)
    logger.info(
        "Using %s store; serving on %s:%s",
        store_cfg["backend"],
        http_cfg["host"],
        http_cfg["port"],
    )

    try:
        run_server(create_app(store, cfg), cfg)
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    finally:
        logger.info("Closing record store")
        store.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
