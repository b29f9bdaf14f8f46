"""Domain error taxonomy.

Business-rule errors (``DomainError`` subclasses) are raised before any
mutation and reach the caller verbatim. ``TransientFailure`` covers
infrastructure trouble (lock timeouts, collaborator timeouts) and tells the
caller the whole operation was rolled back and may be retried.
"""


class DomainError(Exception):
    """Base class for business errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    pass


class NoDriversAvailable(NotFound):
    def __init__(self, message: str = "No available drivers found within search radius"):
        super().__init__(message)


class Conflict(DomainError):
    pass


class InvalidTransition(DomainError):
    def __init__(self, current, requested, valid_next):
        self.current = current
        self.requested = requested
        self.valid_next = tuple(valid_next)
        allowed = ", ".join(s.value for s in self.valid_next) or "none (terminal state)"
        super().__init__(
            f"Invalid state transition from {current.value} to {requested.value}. "
            f"Valid transitions are: {allowed}"
        )


class BadRequest(DomainError):
    pass


class Forbidden(DomainError):
    pass


class TransientFailure(Exception):
    """Infrastructure failure; nothing was committed and the call is retryable"""

    def __init__(self, message: str, retry_after_seconds: int = 1):
        super().__init__(message)
        self.message = message
        self.retry_after_seconds = retry_after_seconds
