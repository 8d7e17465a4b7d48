"""Error taxonomy shared by the core services.

Services raise these; the API layer maps each kind onto an HTTP status.
"""

from __future__ import annotations


class UrbanFixError(RuntimeError):
    """Base exception for every failure a core operation can report."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(UrbanFixError):
    """Malformed input rejected before anything is persisted."""

    kind = "validation_error"


class RateLimited(UrbanFixError):
    """The reporter already created a new issue today."""

    kind = "rate_limited"

    def __init__(self, message: str, *, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class NotFound(UrbanFixError):
    """The referenced issue (or other entity) does not exist."""

    kind = "not_found"


class Forbidden(UrbanFixError):
    """The acting principal's role does not allow the operation."""

    kind = "forbidden"


class Conflict(UrbanFixError):
    """A concurrent request won a race; ``issue_id`` names the winner."""

    kind = "conflict"

    def __init__(self, message: str, *, issue_id: str | None = None) -> None:
        super().__init__(message)
        self.issue_id = issue_id


class InvalidTransition(Conflict):
    """A lifecycle move that the issue's current status does not permit."""

    kind = "invalid_transition"


class TransientStorageError(UrbanFixError):
    """Storage or network hiccup; the whole operation is safe to retry."""

    kind = "transient_storage_error"
