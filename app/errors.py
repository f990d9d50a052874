"""
API error types and the Flask handlers that render them in the response envelope
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from app import db

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base error carrying an HTTP status and an optional list of field errors"""
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, status_code=None, errors=None, error=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        if status_code:
            self.status_code = status_code
        self.errors = errors
        self.error = error

    def to_dict(self):
        body = {'success': False, 'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        if self.error:
            body['error'] = self.error
        return body


class ValidationError(APIError):
    status_code = 400
    message = 'Invalid data'


class NotFoundError(APIError):
    status_code = 404
    message = 'Resource not found'


class ForbiddenError(APIError):
    status_code = 403
    message = 'Access denied'


class InvalidTransitionError(APIError):
    status_code = 400

    def __init__(self, entity, current, new):
        super().__init__(f'Invalid {entity} status transition from {current} to {new}')
        self.current = current
        self.new = new


class UploadError(APIError):
    status_code = 400
    message = 'Invalid upload'


def register_error_handlers(app):
    """Attach envelope-rendering handlers to the app"""

    @app.errorhandler(APIError)
    def handle_api_error(e):
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(429)
    def ratelimit_handler(e):
        retry_after = e.get_headers().get('Retry-After') if hasattr(e, 'get_headers') else None
        return jsonify({
            'success': False,
            'message': 'Too many requests. Please try again later.',
            'retry_after': int(retry_after) if retry_after else 60,
        }), 429

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({'success': False, 'message': e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception('Unhandled error')
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Internal server error', 'error': str(e)}), 500
