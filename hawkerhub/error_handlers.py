from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError

from .errors import AppError, NotFoundError, PermissionDeniedError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors by returning the message to the caller."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return jsonify({"message": error.message}), error.status_code


@error_handlers_bp.app_errorhandler(PermissionDeniedError)
def handle_permission_error(error):
    """Handles permission errors."""
    current_app.logger.warning(f"Permission Denied: {error.message}")
    return jsonify({"message": error.message}), error.status_code


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return jsonify({"message": error.message}), error.status_code


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.error(f"Application Error: {error.message}")
    return jsonify({"message": error.message}), error.status_code


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return jsonify({"message": "Not found"}), 404


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    return jsonify({"message": "Method not allowed"}), 405


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return jsonify({"message": "An unexpected error occurred."}), 500


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """
    Handles CSRF errors, which usually indicate a session timeout or a
    request sent without the token header.
    """
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return jsonify({"message": "Your session may have expired. Please retry."}), 400
