"""
Nexus Project Hub
Blueprint registry and shared request helpers.
"""

import logging

from flask import g, jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.integrations.storage import StorageError
from app.models import db

logger = logging.getLogger(__name__)


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def current_user():
    """Return the local User for the request's identity (resolved once).

    Raises:
        AuthenticationError: no usable identity on the request.
    """
    from app.services.identity_service import resolve_user

    user = getattr(g, "current_user", None)
    if user is not None:
        return user
    identity = getattr(g, "identity", None)
    if not identity:
        raise AuthenticationError(getattr(g, "identity_error", None) or "Authentication required")
    g.current_user = resolve_user(identity)
    return g.current_user


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def register_error_handlers(bp):
    """Map service exceptions to HTTP responses for one blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return jsonify({"error": str(error)}), 404

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return jsonify({"error": str(error), "details": error.details}), 400

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return jsonify({"error": str(error)}), 409

    @bp.errorhandler(PermissionDeniedError)
    def _handle_forbidden(error: PermissionDeniedError):
        db.session.rollback()
        return jsonify({"error": str(error)}), 403

    @bp.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return jsonify({"error": str(error) or "Authentication required"}), 401

    @bp.errorhandler(StorageError)
    def _handle_storage(error: StorageError):
        db.session.rollback()
        logger.error("Storage failure endpoint=%s: %s", request.endpoint, error)
        return jsonify({"error": "File storage failure"}), 500

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return jsonify({"error": "Internal server error"}), 500
