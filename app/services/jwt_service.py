"""
JWT Service — identity token decoding (and dev/test issuance).

Tokens are issued by the external identity provider; this service only
decodes them and hands the claims to ``identity_service``.

Algorithm: HS256 against IDENTITY_TOKEN_SECRET (falls back to SECRET_KEY).
Signature verification can be switched off with
IDENTITY_VERIFY_SIGNATURE=false when a fronting gateway has already
validated the token.

Claims read:
{
    "oid" | "sub": <external subject id>,
    "preferred_username" | "email" | "upn": <email>,
    "name": <display name>,
    "jobTitle", "department": optional profile fields,
    "exp": <expires_at>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_EXPIRES = 3600  # 1 hour
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("IDENTITY_TOKEN_SECRET") or current_app.config["SECRET_KEY"]


def _get_expires():
    return current_app.config.get("IDENTITY_TOKEN_EXPIRES", DEFAULT_EXPIRES)


def generate_identity_token(
    external_id: str,
    email: str | None = None,
    name: str | None = None,
    **extra_claims,
) -> str:
    """Mint a token shaped like the identity provider's (dev CLI and tests)."""
    now = datetime.now(timezone.utc)
    payload = {
        "oid": external_id,
        "sub": external_id,
        "iat": now,
        "exp": now + timedelta(seconds=_get_expires()),
        "jti": str(uuid.uuid4()),
    }
    if email:
        payload["preferred_username"] = email
    if name:
        payload["name"] = name
    payload.update(extra_claims)
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_identity_token(token: str) -> dict:
    """
    Decode an identity token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    if not current_app.config.get("IDENTITY_VERIFY_SIGNATURE", True):
        return jwt.decode(token, options={"verify_signature": False})
    return jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])


def claims_to_identity(payload: dict) -> dict:
    """Flatten provider claims into the identity dict used by identity_service."""
    return {
        "external_id": payload.get("oid") or payload.get("sub"),
        "email": payload.get("preferred_username") or payload.get("email") or payload.get("upn"),
        "display_name": payload.get("name"),
        "job_title": payload.get("jobTitle"),
        "department": payload.get("department"),
    }
