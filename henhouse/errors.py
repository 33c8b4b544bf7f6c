from flask import jsonify, g
from werkzeug.exceptions import HTTPException
from .models import db


class HenHouseError(Exception):
    """Base class for errors scoped to a single user action."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(HenHouseError):
    """Required fields missing or out of range"""
    status_code = 400


class AuthenticationError(HenHouseError):
    status_code = 401


class PermissionDeniedError(HenHouseError):
    """The current grade may not perform the action"""
    status_code = 403


class NotFoundError(HenHouseError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    pass


class MissingIngredientError(HenHouseError):
    """A recipe references an ingredient that no longer exists"""
    status_code = 409


class InsufficientStockError(HenHouseError):
    """Raised when there is insufficient stock for a sale or production"""
    status_code = 409


class DailyLimitExceededError(HenHouseError):
    status_code = 409


class PropagationError(HenHouseError):
    """Raised after a cost propagation in which some recomputes failed.

    Updates applied before the failure are kept.
    """
    status_code = 500

    def __init__(self, message, updated=None, failed=None):
        super().__init__(message)
        self.updated = updated or []
        self.failed = failed or {}


def register_error_handlers(app):
    @app.errorhandler(HenHouseError)
    def handle_henhouse_error(error):
        db.session.rollback()
        g.pop('pending_admin_actions', None)
        payload = {'success': False, 'error': error.message}
        if isinstance(error, PropagationError):
            payload['updated'] = error.updated
            payload['failed'] = error.failed
        return jsonify(payload), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        g.pop('pending_admin_actions', None)
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500
