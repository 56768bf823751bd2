"""
Identity Middleware — parses the bearer token, sets g.identity.

The token is issued by the external identity provider; this hook only
decodes it. Resolving the identity to a local User happens lazily in
``app.blueprints.current_user`` so health checks never touch the DB.

  Authorization: Bearer <token>  →  g.identity = {"external_id", "email", ...}
  no / bad token                 →  g.identity = None, g.identity_error = reason
  IDENTITY_AUTH_ENABLED=false    →  g.identity = configured dev identity
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from app.services.jwt_service import claims_to_identity, decode_identity_token

logger = logging.getLogger(__name__)

# Paths that never need an identity
IDENTITY_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def dev_identity(app) -> dict:
    return {
        "external_id": app.config.get("DEV_IDENTITY_ID", "dev-user"),
        "email": app.config.get("DEV_IDENTITY_EMAIL", "dev@localhost"),
        "display_name": app.config.get("DEV_IDENTITY_NAME", "Developer"),
        "job_title": None,
        "department": None,
    }


def init_identity_middleware(app):
    """Register identity parsing as a before_request hook."""

    @app.before_request
    def _identity():
        g.identity = None
        g.identity_error = None
        g.current_user = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in IDENTITY_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        if not current_app.config.get("IDENTITY_AUTH_ENABLED", True):
            g.identity = dev_identity(current_app)
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            g.identity_error = "Missing bearer token"
            return

        token = auth_header[7:]  # Strip "Bearer "
        try:
            g.identity = claims_to_identity(decode_identity_token(token))
        except pyjwt.ExpiredSignatureError:
            g.identity_error = "Token expired"
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token: %s", exc)
            g.identity_error = "Invalid token"
