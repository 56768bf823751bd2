"""
Identity Service — map an authenticated external identity to a local User.

Resolution order:
  1. user with the same external_id          → refresh profile, return
  2. invited user with the same email and no
     external_id yet                          → claim it, return
  3. otherwise                                → create from claims

When the identity carries no email/name, a placeholder profile is created
so that task creation always has a valid creator.
"""

import logging

from app.core.exceptions import AuthenticationError, ConflictError
from app.models import db
from app.models.auth import User, WorkspaceMember
from app.models.base import utcnow

logger = logging.getLogger(__name__)

PLACEHOLDER_DISPLAY_NAME = "Unknown User"
PLACEHOLDER_EMAIL_DOMAIN = "users.invalid"

_PROFILE_FIELDS = ("display_name", "job_title", "department", "avatar_url")


def _normalize_email(email):
    email = (email or "").strip().lower()
    return email or None


def _refresh_profile(user: User, identity: dict) -> bool:
    changed = False
    for field in _PROFILE_FIELDS:
        value = identity.get(field)
        if value and getattr(user, field) != value:
            setattr(user, field, value)
            changed = True
    email = _normalize_email(identity.get("email"))
    if email and email != user.email:
        clash = User.query.filter(User.email == email, User.id != user.id).first()
        if clash is None:
            user.email = email
            changed = True
        else:
            logger.warning("Email %s already used by user=%s; keeping %s on user=%s",
                           email, clash.id, user.email, user.id)
    if changed:
        user.updated_at = utcnow()
    return changed


def resolve_user(identity: dict) -> User:
    """Return the local user for *identity*, creating or claiming one if needed.

    Raises:
        AuthenticationError: identity has no subject id.
        ConflictError: the email belongs to a different signed-in user.
    """
    external_id = (identity or {}).get("external_id")
    if not external_id:
        raise AuthenticationError("Identity has no subject claim")

    user = User.query.filter_by(external_id=external_id).first()
    if user is not None:
        if _refresh_profile(user, identity):
            db.session.commit()
        return user

    email = _normalize_email(identity.get("email"))
    if email:
        invited = User.query.filter_by(email=email).first()
        if invited is not None:
            if invited.external_id is not None:
                raise ConflictError("User", "email", email)
            invited.external_id = external_id
            _refresh_profile(invited, identity)
            db.session.commit()
            logger.info("Claimed invited user=%s for external_id=%s", invited.id, external_id)
            return invited

    user = User(
        external_id=external_id,
        email=email or f"{external_id}@{PLACEHOLDER_EMAIL_DOMAIN}",
        display_name=identity.get("display_name") or (
            email.split("@")[0] if email else PLACEHOLDER_DISPLAY_NAME
        ),
        job_title=identity.get("job_title"),
        department=identity.get("department"),
        avatar_url=identity.get("avatar_url"),
    )
    db.session.add(user)
    db.session.commit()
    logger.info("Created user=%s for external_id=%s", user.id, external_id)
    return user


def get_profile(user: User) -> dict:
    """Caller profile plus the workspaces they belong to."""
    memberships = (
        WorkspaceMember.query
        .filter_by(user_id=user.id)
        .order_by(WorkspaceMember.joined_at.asc())
        .all()
    )
    d = user.to_dict()
    d["workspaces"] = [
        {
            "workspace_id": m.workspace_id,
            "name": m.workspace.name,
            "slug": m.workspace.slug,
            "role": m.role,
        }
        for m in memberships
    ]
    return d
