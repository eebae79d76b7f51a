# Typed failures raised by the service layer and mapped to HTTP responses


class SnapitError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self):
        return {'success': False, 'message': self.message}


class ValidationError(SnapitError):
    status_code = 400
    message = 'Invalid request'


class Conflict(SnapitError):
    status_code = 400
    message = 'Resource already exists'


class DuplicateIdentity(Conflict):
    message = 'User already exists. Please sign in to continue.'


class InvalidOperation(SnapitError):
    status_code = 400
    message = 'Operation not allowed'


class InvalidCredential(SnapitError):
    status_code = 401
    message = 'Invalid email or password'


class Unauthenticated(SnapitError):
    status_code = 401
    message = 'Please login to access'


class TokenMissing(Unauthenticated):
    message = 'Please login to access'


class TokenInvalid(Unauthenticated):
    message = 'Invalid session token'


class TokenExpired(Unauthenticated):
    message = 'Session expired, please login again'


class IdentityNotFound(Unauthenticated):
    message = 'Account no longer exists'


class Forbidden(SnapitError):
    status_code = 403
    message = 'Unauthorized'


class NotFound(SnapitError):
    status_code = 404
    message = 'Not found'


class TransientError(SnapitError):
    status_code = 503
    message = 'Service temporarily unavailable, please retry'


def ensure_text(value, field):
    """Return ``value`` if it is a string or missing, else raise ValidationError."""
    if value is not None and not isinstance(value, str):
        raise ValidationError(f'{field} must be a string')
    return value
