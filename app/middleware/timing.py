"""
Per-request access logging.

Every response carries ``X-Request-ID`` (echoed from the client when sent)
and ``X-Request-Duration-Ms``.  API requests are logged once on the way out
with the acting user and, where the URL or body names one, the program and
approval being worked on, so access lines line up with the approval
engine's own log records.

Level: WARNING above ``SLOW_REQUEST_MS``, ERROR for 5xx, DEBUG otherwise.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# Polled by load balancers every few seconds.
_QUIET_PATHS = frozenset({"/api/v1/health", "/api/v1/health/live"})

DEFAULT_SLOW_REQUEST_MS = 1000


def _workflow_scope() -> dict:
    """program_id / approval_id named by the route or the JSON body."""
    view_args = request.view_args or {}
    scope = {
        "program_id": view_args.get("program_id"),
        "approval_id": view_args.get("approval_id"),
    }
    if scope["approval_id"] is None and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict) and isinstance(body.get("approvalId"), str):
            scope["approval_id"] = body["approvalId"]
    return {k: v for k, v in scope.items() if v is not None}


def _level_for(status_code: int, duration_ms: float, slow_ms: float) -> int:
    if duration_ms > slow_ms:
        return logging.WARNING
    if status_code >= 500:
        return logging.ERROR
    return logging.DEBUG


def init_request_timing(app: Flask):
    """Stamp a request id on ``g`` and log each API request on completion."""
    slow_ms = app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS)

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = g.get("request_start")
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.get("request_id", "")

        if request.path in _QUIET_PATHS or not request.path.startswith("/api/"):
            return response

        actor = g.get("actor")
        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.remote_addr,
            "request_id": g.get("request_id", ""),
            "user_id": actor.id if actor is not None else None,
            **_workflow_scope(),
        }
        logger.log(
            _level_for(response.status_code, duration_ms, slow_ms),
            "%s %s -> %d (%.0fms)",
            request.method, request.path, response.status_code, duration_ms,
            extra=extra,
        )
        return response
