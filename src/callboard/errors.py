"""errors.py — Everything the board can raise at a caller.

Each error carries the HTTP status the server answers with, so the
error middleware doesn't need a lookup table.
"""


class CallboardError(Exception):
    """Base for all board errors."""

    status = 500


class ValidationError(CallboardError):
    """Malformed input. Rejected before the store is touched."""

    status = 400


class AuthenticationError(CallboardError):
    """Missing or unknown credentials."""

    status = 401


class AuthorizationError(CallboardError):
    """Known identity, action not allowed for its role."""

    status = 403


class ConcurrencyConflictError(CallboardError):
    """Optimistic write lost the race too many times. Try again."""

    status = 409

    def __init__(self, message: str | None = None, *, key: str = "", attempts: int = 0):
        super().__init__(message or f"Conflicting update on {key} after {attempts} attempts, try again")
        self.key = key
        self.attempts = attempts


class StoreUnavailableError(CallboardError):
    """The backing store could not be reached or answered with an error."""

    status = 503
