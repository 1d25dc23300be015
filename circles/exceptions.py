"""
Errors raised by the circles services.

Everything derives from ValueError so callers that already guard service calls
with ``except ValueError`` keep working. Role checks raise Django's
PermissionDenied instead.
"""


class CircleError(ValueError):
    """Base class for business errors surfaced to the caller"""

    status_code = 400
    default_message = 'The request could not be completed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(CircleError):
    """User-correctable input problem; nothing was changed"""

    status_code = 400
    default_message = 'Invalid input'

    def __init__(self, message=None, errors=None):
        self.errors = errors or {}
        super().__init__(message)


class NotFound(CircleError):
    status_code = 404
    default_message = 'Not found'


class StateConflict(CircleError):
    """The operation is not allowed in the record's current state"""

    status_code = 409
    default_message = 'The operation conflicts with the current state'


class RateLimitExceeded(CircleError):
    status_code = 429
    default_message = 'Too many requests'

    def __init__(self, retry_after_seconds, message=None):
        self.retry_after_seconds = max(0, int(retry_after_seconds))
        minutes = max(1, -(-self.retry_after_seconds // 60))
        super().__init__(message or f'Too many requests. Please try again in {minutes} minute(s).')
