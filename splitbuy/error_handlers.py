from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from .errors import AppError

error_handlers_bp = Blueprint("error_handlers", __name__)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Turns application errors into a JSON error payload."""
    current_app.logger.warning(
        f"{type(error).__name__} ({error.status_code}): {error.message}"
    )
    return jsonify({"error": error.message}), error.status_code


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """Handles CSRF errors raised by form posts outside the JSON API."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return jsonify({"error": e.description}), 400


@error_handlers_bp.app_errorhandler(HTTPException)
def handle_http_exception(e):
    """Handles werkzeug HTTP errors such as 404 and 405."""
    return jsonify({"error": e.description}), e.code


@error_handlers_bp.app_errorhandler(Exception)
def handle_unexpected_error(e):
    """Handles unexpected server errors."""
    current_app.logger.exception(f"Internal Server Error: {e}")
    # Avoid exposing raw error details to the caller
    return jsonify({"error": "Internal server error"}), 500
