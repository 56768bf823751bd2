"""
Request correlation and timing.

Each request gets an id (the caller's ``X-Request-ID`` when supplied) stored on
``g.request_id``; responses echo it back together with ``X-Request-Duration-Ms``.
Finished API requests are logged with their workspace/project/user scope so a
single board action can be followed through the logs.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000
UNLOGGED_PREFIXES = ("/api/v1/health", "/static")


def _log_level(status: int, duration_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if duration_ms > SLOW_REQUEST_MS:
        return logging.WARNING
    return logging.DEBUG


def _request_scope() -> dict:
    args = request.view_args or {}
    user = getattr(g, "current_user", None)
    return {
        "workspace_id": args.get("workspace_id") or request.args.get("workspace_id"),
        "project_id": args.get("project_id") or request.args.get("project_id"),
        "user_id": user.id if user is not None else None,
    }


def init_request_timing(app: Flask):
    @app.before_request
    def _begin():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"

        if request.path.startswith(UNLOGGED_PREFIXES):
            return response

        level = _log_level(response.status_code, elapsed)
        label = "Slow request" if level == logging.WARNING else "Request"
        logger.log(
            level, "%s: %s %s %d (%.0fms)",
            label, request.method, request.path, response.status_code, elapsed,
            extra={
                "request_id": g.request_id,
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed,
                "remote_addr": request.remote_addr,
                **_request_scope(),
            },
        )
        return response
