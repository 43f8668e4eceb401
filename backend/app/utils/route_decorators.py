"""
Route decorator that turns exceptions into JSON error responses.

Handlers return plain dicts, lists or ``(body, status)`` tuples and raise on
failure; the decorator picks the status code and logs with the route's
description.
"""

import logging
from functools import wraps
from flask import jsonify

from workflow_engine.errors import WorkflowValidationError

logger = logging.getLogger(__name__)


def handle_route_errors(route_description=None):
    """
    Wrap a Flask view with standard error handling.

    - WorkflowValidationError → 400 ``{error, violations}``
    - ValueError → 400 ``{error}``
    - any other exception → 500 ``{error}``

    Usage:
        @bp.route('/workflows/validate', methods=['POST'])
        @handle_route_errors("validating workflow")
        def validate_workflow():
            ...
    """
    def decorator(view):
        desc = route_description or view.__name__

        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return _to_response(view(*args, **kwargs))
            except Exception as e:
                return _error_response(desc, e)

        return wrapper

    return decorator


def _error_response(desc, error):
    if isinstance(error, WorkflowValidationError):
        logger.warning("%s - rejected workflow: %s", desc, error)
        return jsonify({"error": str(error), "violations": error.violations}), 400
    if isinstance(error, ValueError):
        logger.warning("%s - bad request: %s", desc, error)
        return jsonify({"error": str(error)}), 400
    logger.exception("Error in %s: %s", desc, error)
    return jsonify({"error": str(error)}), 500


def _to_response(result):
    """jsonify dict/list bodies, keep Response objects and status tuples intact."""
    if hasattr(result, 'status_code'):
        return result
    if isinstance(result, tuple) and isinstance(result[0], (dict, list)):
        return (jsonify(result[0]), *result[1:])
    if isinstance(result, (dict, list)):
        return jsonify(result)
    return result
