from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from .extensions import db


class APIError(Exception):
    """Base class for errors that are safe to show to the client."""
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_response(self):
        return jsonify({'success': False, 'error': self.message}), self.status_code


class ValidationError(APIError):
    status_code = 400
    default_message = 'Invalid request'


class UnauthorizedError(APIError):
    status_code = 401
    default_message = 'Unauthorized'


class ForbiddenError(APIError):
    status_code = 403
    default_message = 'Forbidden'


class NotFoundError(APIError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(APIError):
    status_code = 409
    default_message = 'Conflict'


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(error):
        db.session.rollback()
        current_app.logger.info(f"[api_error] {type(error).__name__}: {error.message}")
        return error.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        # Keep werkzeug's status (404 for unknown routes, 405, 413 ...) but answer in JSON
        return jsonify({'success': False, 'error': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        current_app.logger.exception(f"[unexpected_error] {error}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500
