from typing import Any


class ValidationError(Exception):
    pass


class AccessDenied(ValidationError):
    pass


class NotFound(Exception):
    pass


class PreconditionError(Exception):
    pass


class CollaboratorFailure(Exception):
    """A write rejected by the persistence layer.

    The attempted payload is kept intact so the caller can retry by hand; the
    core itself never retries.
    """

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload
