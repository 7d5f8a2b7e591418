"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.

Sync failures that happen after an optimistic mutation never propagate to
the caller that requested the mutation. NoteSyncService converts them into
a store rollback plus a SyncFailed event carrying the error code.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class AuthenticationError(ApplicationError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication required", code: str = "AUTH_UNAUTHORIZED") -> None:
        super().__init__(message, code=code)


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class ExternalServiceError(ApplicationError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        message: str = "External service error",
        code: str = "SYS_EXTERNAL_SERVICE_ERROR",
    ) -> None:
        super().__init__(message, code=code)


# =============================================================================
# Sync errors
# =============================================================================


class NotAuthenticatedError(AuthenticationError):
    """Raised when a note operation is requested with no signed-in owner."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message, code="AUTH_NOT_AUTHENTICATED")


class RemoteCreateFailedError(ExternalServiceError):
    """The remote store did not persist an optimistically created note."""

    def __init__(self, message: str = "Failed to save note") -> None:
        super().__init__(message, code="SYNC_CREATE_FAILED")


class RemoteDeleteFailedError(ExternalServiceError):
    """The remote store did not delete a note that was removed locally."""

    def __init__(self, message: str = "Failed to delete note") -> None:
        super().__init__(message, code="SYNC_DELETE_FAILED")


class RemoteUpdateFailedError(ExternalServiceError):
    """The remote store rejected a field update (completion toggle)."""

    def __init__(self, message: str = "Failed to update note") -> None:
        super().__init__(message, code="SYNC_UPDATE_FAILED")


class ChannelDisconnectedError(ExternalServiceError):
    """The live snapshot feed lost its connection. Never shown to the user."""

    def __init__(self, message: str = "Snapshot channel disconnected") -> None:
        super().__init__(message, code="SYNC_CHANNEL_DISCONNECTED")
