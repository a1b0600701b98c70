"""Typed failures raised by the savings and loans core.

Every service operation fails with one of these. The HTTP layer maps each
kind to a status code; nothing below the API swallows them.
"""


class CBOError(Exception):
    """Base class for all core failures."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(CBOError):
    """Malformed or out-of-range input (non-positive amount, duration < 1, ...)."""
    pass


class InvalidTransition(CBOError):
    """Status change not permitted from the entity's current state."""

    def __init__(self, message: str = "", current_status=None, requested_status=None):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status


class Unauthorized(CBOError):
    """Denied by the access policy gate."""

    def __init__(self, message: str = "", operation=None):
        super().__init__(message)
        self.operation = operation


class NotFound(CBOError):
    """Referenced entity does not exist."""
    pass


class ConsistencyFailure(CBOError):
    """A write and its derived-field recompute could not be committed together."""
    pass
