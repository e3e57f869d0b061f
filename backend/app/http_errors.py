# Overview: Translate service-layer errors into JSON responses for the routes.

from flask import current_app, jsonify

from .extensions import db
from .validation import ConflictError, ForbiddenError, NotFoundError, ValidationError


def json_error(exc: Exception, action: str):
    """
    Map a domain error to {"error": message} with its status code.

    The session is rolled back first so a failed request never leaks
    partial state into the next one. Unknown exceptions are logged with
    the action name and surface as 500.
    """
    db.session.rollback()
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, ForbiddenError):
        body = {"error": str(exc)}
        body.update(exc.details)
        return jsonify(body), 403
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
