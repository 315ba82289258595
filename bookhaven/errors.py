import logging

from flask import jsonify
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class BookHavenError(Exception):
    """Base class for failures the HTTP layer turns into a status code."""
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self):
        return {'message': self.message}


class ValidationError(BookHavenError):
    status_code = 400
    message = 'Invalid input'

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        data = super().to_dict()
        if self.errors:
            data['errors'] = self.errors
        return data


class EmptyCart(BookHavenError):
    status_code = 400
    message = 'Cart is empty'


class OutOfStock(BookHavenError):
    status_code = 400
    message = 'Book is out of stock'

    def __init__(self, message=None, book_id=None):
        super().__init__(message)
        self.book_id = book_id


class Unauthorized(BookHavenError):
    status_code = 401
    message = 'Not authenticated'


class InvalidCredentials(BookHavenError):
    status_code = 401
    message = 'Invalid credentials'


class Forbidden(BookHavenError):
    status_code = 403
    message = 'Not authorized'


class NotFound(BookHavenError):
    status_code = 404
    message = 'Not found'


class BookNotFound(NotFound):
    message = 'Book not found'


class Conflict(BookHavenError):
    status_code = 409
    message = 'Already exists'


def register_error_handlers(app):
    """Map the error taxonomy onto JSON responses."""

    @app.errorhandler(BookHavenError)
    def handle_bookhaven_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({'message': error.description}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception('Unhandled error: %s', error)
        return jsonify({'message': 'Internal server error'}), 500
