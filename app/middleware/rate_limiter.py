"""
Per-blueprint request quotas on top of the shared Flask-Limiter instance.

Reads and writes get separate budgets: board views poll the task and project
listings constantly, while writes (and especially uploads, which fan out to
file storage) are far rarer. Limits are keyed by remote address and can be
overridden per blueprint through ``RATELIMIT_OVERRIDES`` in the config, e.g.
``{"task": ("600/minute", "120/minute")}``.
"""

import logging

from flask import request

logger = logging.getLogger(__name__)

READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# blueprint name -> (read limit, write limit)
DEFAULT_LIMITS = {
    "task": ("300/minute", "120/minute"),
    "project": ("200/minute", "60/minute"),
    "workspace": ("120/minute", "30/minute"),
    "member": ("120/minute", "30/minute"),
    "file": ("120/minute", "20/minute"),
}

EXEMPT_BLUEPRINTS = ("health_bp",)


def _is_read() -> bool:
    return request.method in READ_METHODS


def _is_write() -> bool:
    return request.method not in READ_METHODS


def init_rate_limits(app, limiter):
    """Attach read/write limits to each API blueprint; no-op when TESTING."""
    if app.config.get("TESTING"):
        logger.debug("Rate limits skipped in testing")
        return

    limits = {**DEFAULT_LIMITS, **(app.config.get("RATELIMIT_OVERRIDES") or {})}
    applied = []
    for name, (read_limit, write_limit) in limits.items():
        bp = app.blueprints.get(name)
        if bp is None:
            logger.warning("Rate limit configured for unknown blueprint %r", name)
            continue
        # exempt_when inverts: the read quota skips writes and vice versa
        limiter.limit(read_limit, exempt_when=_is_write)(bp)
        limiter.limit(write_limit, exempt_when=_is_read)(bp)
        applied.append(f"{name}={read_limit}/{write_limit}")

    for name in EXEMPT_BLUEPRINTS:
        bp = app.blueprints.get(name)
        if bp is not None:
            limiter.exempt(bp)

    logger.info("Rate limits (read/write): %s", ", ".join(applied))
