"""
Exceptions raised by the backend client and the Flask error pages.
"""

import logging
from flask import render_template

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """The backend answered with an error status or could not be reached."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotAuthenticated(ApiError):
    """No auth token is available for the current request."""

    def __init__(self, message='Not authorized. Please sign in again.'):
        super().__init__(message, status_code=401)


def register_error_handlers(app):
    @app.errorhandler(403)
    def forbidden(error):
        return render_template('errors/403.html'), 403

    @app.errorhandler(404)
    def not_found(error):
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def server_error(error):
        logger.error("Unhandled error: %s", error)
        return render_template('errors/500.html'), 500
