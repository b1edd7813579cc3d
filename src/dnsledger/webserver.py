"""HTTP API for dnsledger (event listing, upload, summary statistics, health).

This module provides a small FastAPI application over an explicitly owned
record store, plus a helper to serve it with uvicorn.

All handlers return JSON data structures. Degraded listing parameters never
produce an error response; store faults become HTTP 500 with a generic body,
and malformed uploads become HTTP 400.
"""

from __future__ import annotations

import json
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from cachetools import TTLCache
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import get_http_config, log_controller_error
from .errors import StoreUnavailable, ValidationError
from .ingest import NOT_AN_ARRAY_MESSAGE, insert_batch
from .query import list_events, normalize_list_params
from .stores import BaseEventStore
from .summary import summarize

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY: Dict[str, str] = {"error": "Internal Server Error"}


class _Suppress2xxAccessFilter(logging.Filter):
    """Logging filter that drops uvicorn access records for HTTP 2xx responses.

    Inputs:
      - record: logging.LogRecord instance from uvicorn.access.

    Outputs:
      - bool: False for records that clearly correspond to HTTP 2xx status
        codes, True otherwise (including when no status code can be found).
    """

    def filter(self, record: logging.LogRecord) -> bool:
        status_code = getattr(record, "status_code", None)

        # uvicorn passes (client, method, path, http_version, status) as args
        if status_code is None:
            args = getattr(record, "args", None)
            if isinstance(args, dict):
                status_code = args.get("status_code") or args.get("status")
            elif isinstance(args, (tuple, list)) and args:
                status_code = args[-1]

        try:
            code = int(status_code)
        except (TypeError, ValueError):
            return True

        return not (200 <= code <= 299)


def install_uvicorn_2xx_suppression() -> None:
    """Attach _Suppress2xxAccessFilter to the uvicorn.access logger once."""

    access_logger = logging.getLogger("uvicorn.access")
    for f in getattr(access_logger, "filters", []):
        if isinstance(f, _Suppress2xxAccessFilter):
            return
    access_logger.addFilter(_Suppress2xxAccessFilter())


def _internal_error(exc: BaseException, controller: str) -> JSONResponse:
    log_controller_error(logger, controller, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=INTERNAL_ERROR_BODY
    )


def create_app(store: BaseEventStore, config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Create and configure the FastAPI app exposing the dnsledger endpoints.

    Inputs:
      - store: Record store handle; owned by the caller, not closed here.
      - config: Full configuration mapping; only server.http is consulted.

    Outputs:
      - FastAPI application exposing:
        - GET  /api/log         filtered, sorted, paginated listing
        - POST /api/log/upload  batch ingestion
        - GET  /api/stats       summary facets
        - GET  /health          liveness plus store health

    Example:
      >>> from dnsledger.stores import load_event_store
      >>> app = create_app(load_event_store({"backend": "memory"}), {})
    """

    http_cfg = get_http_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if http_cfg.get("suppress_2xx_access_logs"):
            install_uvicorn_2xx_suppression()
        yield

    app = FastAPI(title="dnsledger HTTP API", lifespan=lifespan)
    app.state.store = store
    app.state.config = config or {}

    ttl = http_cfg.get("stats_cache_ttl_seconds") or 0
    app.state.stats_cache = (
        TTLCache(maxsize=1, ttl=float(ttl))
        if isinstance(ttl, (int, float)) and ttl > 0
        else None
    )
    app.state.stats_cache_lock = threading.Lock()

    cors_cfg = http_cfg.get("cors") or {}
    if cors_cfg.get("enabled"):
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_cfg.get("allowlist") or ["*"],
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    @app.exception_handler(StoreUnavailable)
    async def _store_unavailable_handler(
        request: Request, exc: StoreUnavailable
    ) -> JSONResponse:
        return _internal_error(exc, f"{request.method} {request.url.path}")

    @app.exception_handler(Exception)
    async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=INTERNAL_ERROR_BODY,
        )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        """Return liveness information and whether the store answers a probe."""

        ok = bool(app.state.store.health_check())
        return {"status": "ok" if ok else "degraded", "store": ok}

    @app.get("/api/log")
    def get_logs(
        domain: Optional[str] = None,
        prediction: Optional[str] = None,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
    ):
        """Return one page of event records plus the total match count.

        Every parameter is an optional string so malformed values degrade to
        defaults inside normalize_list_params() instead of failing validation.
        """

        params = normalize_list_params(
            domain=domain,
            prediction=prediction,
            page=page,
            limit=limit,
            sort=sort,
            direction=direction,
        )
        try:
            result = list_events(app.state.store, params)
        except StoreUnavailable as exc:
            return _internal_error(exc, "Get Logs Controller")
        return result.to_payload()

    @app.post("/api/log/upload")
    async def upload_logs(request: Request):
        """Validate and insert a JSON array of log entries as one batch."""

        raw_body = await request.body()
        try:
            data = json.loads(raw_body) if raw_body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": NOT_AN_ARRAY_MESSAGE},
            )

        try:
            await run_in_threadpool(insert_batch, app.state.store, data)
        except ValidationError as exc:
            logger.warning("Upload Logs Controller: %s", exc.message)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST, content=exc.to_payload()
            )
        except StoreUnavailable as exc:
            return _internal_error(exc, "Upload Logs Controller")
        return {"success": True}

    @app.get("/api/stats")
    def get_stats():
        """Return the summary facets over the whole collection."""

        cache = app.state.stats_cache
        if cache is not None:
            with app.state.stats_cache_lock:
                cached = cache.get("summary")
            if cached is not None:
                return cached

        try:
            payload = summarize(app.state.store).to_payload()
        except StoreUnavailable as exc:
            return _internal_error(exc, "Get Stats Controller")

        if cache is not None:
            with app.state.stats_cache_lock:
                cache["summary"] = payload
        return payload

    return app


def run_server(app: FastAPI, config: Optional[Dict[str, Any]] = None) -> None:
    """Brief: Serve app with uvicorn in the foreground until interrupted.

    Inputs:
      - app: Application from create_app().
      - config: Full configuration mapping; server.http host/port are used.

    Outputs:
      - None; returns when uvicorn exits.
    """

    http_cfg = get_http_config(config)
    host = str(http_cfg.get("host", "127.0.0.1"))
    port = int(http_cfg.get("port", 8000))

    if host in ("0.0.0.0", "::"):
        logger.warning(
            "dnsledger is bound to %s without authentication; restrict host or "
            "put it behind an authenticating proxy",
            host,
        )

    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
    logger.info("Starting dnsledger HTTP API on %s:%d", host, port)
    server.run()
