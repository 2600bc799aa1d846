"""
Session Errors - Failures raised by the retro manager and its store.

All of them are raised before the session is mutated (or after a
rollback, for persistence failures), so callers never observe a
half-applied operation.
"""


class RetroError(Exception):
    """Base class for every rejected session operation."""
    error_code = "RETRO_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConflictError(RetroError):
    """Duplicate session, participant or vote."""
    error_code = "CONFLICT"


class AuthError(RetroError):
    """Missing or wrong admin secret."""
    error_code = "UNAUTHORIZED"


class StateError(RetroError):
    """Operation not allowed in the current phase."""
    error_code = "INVALID_STATE"


class NotFoundError(RetroError):
    """Unknown session, item or action point."""
    error_code = "NOT_FOUND"


class PersistenceError(RetroError):
    """The session snapshot could not be written."""
    error_code = "PERSISTENCE_FAILED"
