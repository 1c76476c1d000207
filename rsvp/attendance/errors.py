"""Errors raised by attendance operations.

Every error carries the HTTP status the request layer answers with. None of
them are retried inside this package; ``StoreError`` is the only one a
caller may usefully retry, since every operation converges to the same
final state when re-run.
"""


class AttendanceError(Exception):
    """Base class for attendance failures."""

    status_code = 400
    code = "attendance_error"


class ValidationError(AttendanceError):
    """Malformed or disallowed input."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(AttendanceError):
    """The caller does not own the record being changed."""

    status_code = 403
    code = "authorization_error"


class NotFoundError(AttendanceError):
    """A referenced event, user or record does not exist."""

    status_code = 404
    code = "not_found"


class InvalidStateError(AttendanceError):
    """The transition is not allowed from the record's current state."""

    status_code = 409
    code = "invalid_state"


class StoreError(AttendanceError):
    """The database rejected or failed the transaction."""

    status_code = 503
    code = "store_error"
