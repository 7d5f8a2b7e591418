"""
Base Service.

Base class for all services providing common patterns for business logic.
Services orchestrate collaborators, translate their failures into
application errors, and implement business rules.

Usage:
    from modules.spark.services.base import BaseService

    class NoteSyncService(BaseService):
        def __init__(self, remote: RemoteStore) -> None:
            super().__init__()
            self.remote = remote

        async def _save(self, content: str) -> str:
            return await self._execute_remote_operation(
                "create_note",
                self.remote.create(...),
                RemoteCreateFailedError,
            )
"""

from collections.abc import Awaitable
from typing import Any, TypeVar

from modules.spark.core.exceptions import ApplicationError, ValidationError
from modules.spark.core.logging import get_logger

T = TypeVar("T")


class BaseService:
    """
    Base class for all services.

    Provides:
    - Logging context
    - Error wrapping for remote operations
    - Common validation patterns
    """

    def __init__(self) -> None:
        self._logger = get_logger(self.__class__.__module__)

    async def _execute_remote_operation(
        self,
        operation: str,
        coro: Awaitable[T],
        error_cls: type[ApplicationError],
    ) -> T:
        """
        Execute a remote store operation with error handling.

        Args:
            operation: Description of the operation for logging
            coro: Awaitable to execute
            error_cls: Application error raised when the operation fails

        Returns:
            Result of the awaitable

        Raises:
            error_cls: For any failure, chained to the original exception
        """
        try:
            return await coro
        except Exception as e:
            self._logger.warning(
                "Remote operation failed",
                extra={"operation": operation, "error": str(e), "error_type": type(e).__name__},
            )
            raise error_cls() from e

    def _validate_required(
        self,
        fields: dict[str, Any],
        field_names: list[str],
    ) -> None:
        """
        Validate that required fields are present and not empty.

        Raises:
            ValidationError: If any required field is missing or empty
        """
        missing = []
        for name in field_names:
            value = fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)

        if missing:
            raise ValidationError(
                "Required fields missing",
                details={"missing_fields": missing},
            )

    def _validate_string_length(
        self,
        value: str,
        field_name: str,
        min_length: int | None = None,
        max_length: int | None = None,
    ) -> None:
        """
        Validate string length constraints.

        Raises:
            ValidationError: If string length is out of bounds
        """
        if min_length is not None and len(value) < min_length:
            raise ValidationError(
                f"{field_name} too short",
                details={field_name: f"Minimum length is {min_length}"},
            )
        if max_length is not None and len(value) > max_length:
            raise ValidationError(
                f"{field_name} too long",
                details={field_name: f"Maximum length is {max_length}"},
            )

    def _log_operation(
        self,
        operation: str,
        **context: Any,
    ) -> None:
        """Log a service operation with context."""
        self._logger.info(
            operation,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_debug(
        self,
        message: str,
        **context: Any,
    ) -> None:
        """Log debug information."""
        self._logger.debug(
            message,
            extra={"service": self.__class__.__name__, **context},
        )
