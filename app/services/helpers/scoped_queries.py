"""
Lookup helpers shared by the service layer.

Every get-by-id in the services goes through ``get_or_raise`` so a missing
row always surfaces as ``NotFoundError`` (HTTP 404) with the resource name,
instead of each service hand-rolling ``query.get`` + ``if not``.

Usage:
    task = get_or_raise(ProjectTask, task_id, resource="Task")

    # Child rows are looked up inside their owner, so an item id that
    # belongs to another task is indistinguishable from a missing one.
    item = get_or_raise(ChecklistItem, item_id, task_id=task_id)

    # When absence is an expected state
    user = get_or_none(User, user_id)
"""

import logging

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.models import db

logger = logging.getLogger(__name__)


def get_or_none(model, pk, **scope):
    """Fetch a single row by primary key, optionally filtered by owner columns.

    Raises:
        ValueError: If a scope keyword names a column the model does not have.
    """
    if not pk:
        return None
    stmt = select(model).where(model.id == pk)
    for field, value in scope.items():
        if not hasattr(model, field):
            raise ValueError(f"{model.__name__} has no scope column {field!r}")
        stmt = stmt.where(getattr(model, field) == value)
    return db.session.execute(stmt).scalar_one_or_none()


def get_or_raise(model, pk, *, resource: str | None = None, **scope):
    """Same as get_or_none but raises NotFoundError when nothing matches."""
    result = get_or_none(model, pk, **scope)
    if result is None:
        logger.debug("%s id=%s not found in scope %s", model.__name__, pk, scope)
        raise NotFoundError(resource=resource or model.__name__, resource_id=pk)
    return result
