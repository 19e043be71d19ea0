"""Custom exception classes for TaskHub.

Every error carries the HTTP status it maps to; ``main.py`` renders them
as ``{"success": false, "message": ...}``.
"""

from fastapi import status


class TaskHubError(Exception):
    """Base exception for TaskHub."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(TaskHubError):
    """Raised when credentials or tokens are invalid."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(TaskHubError):
    """Raised when the caller lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(TaskHubError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(TaskHubError):
    """Raised on duplicates and on invalid state transitions."""
    status_code = status.HTTP_409_CONFLICT


class ValidationError(TaskHubError):
    """Raised when input fails a business rule (bad OTP, bad file type...)."""
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentProviderError(TaskHubError):
    """Raised when a Stripe call fails."""
    status_code = status.HTTP_502_BAD_GATEWAY


class StorageError(TaskHubError):
    """Raised when a MinIO operation fails."""
    status_code = status.HTTP_502_BAD_GATEWAY


def invalid_state(entity: str, expected, actual) -> ResourceConflictError:
    """Build the conflict raised when a transition starts from the wrong state."""
    if isinstance(expected, (list, tuple, set)):
        wanted = " or ".join(sorted(e.value for e in expected))
    else:
        wanted = expected.value
    return ResourceConflictError(
        f"{entity} must be {wanted} (current status: {actual.value})"
    )
