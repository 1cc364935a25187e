"""
Error handling decorators for database operations.

Every service coroutine that touches the store is wrapped with one of the
convenience decorators at the bottom of this module:

- ``safe_database_query``: reads that must never break a caller (logs, returns a default)
- ``critical_database_operation``: writes whose failure must reach the caller
- ``transactional_database_operation``: commit on success, rollback + reraise on error
"""
import functools
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InvalidRequestError,
    OperationalError,
    PendingRollbackError,
    SQLAlchemyError,
    StatementError,
    TimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)


class DatabaseErrorHandler:
    """Classifies and logs database errors."""

    DATABASE_EXCEPTIONS = (
        SQLAlchemyError,
        IntegrityError,
        OperationalError,
        DisconnectionError,
        TimeoutError,
        StatementError,
        InvalidRequestError,
        PendingRollbackError,
        ConnectionError,
    )

    @staticmethod
    def handle_database_error(
        exc: Exception,
        operation: str,
        context: Optional[dict] = None,
    ) -> tuple[bool, str]:
        """
        Build a log message for a database error and decide whether a retry
        could succeed.

        Args:
            exc: The exception that occurred
            operation: Description of the database operation
            context: Additional context information

        Returns:
            Tuple of (is_recoverable, error_message)
        """
        context_str = f" | Context: {context}" if context else ""

        if isinstance(exc, IntegrityError):
            return False, f"Database integrity error during {operation}: {exc}{context_str}"

        if isinstance(exc, (ConnectionError, DisconnectionError)):
            return True, f"Database connection error during {operation}: {exc}{context_str}"

        if isinstance(exc, TimeoutError):
            return True, f"Database timeout during {operation}: {exc}{context_str}"

        if isinstance(exc, OperationalError):
            # SQLite reports "database is locked" as an OperationalError
            return True, f"Database operational error during {operation}: {exc}{context_str}"

        if isinstance(exc, StatementError):
            return False, f"Database statement error during {operation}: {exc}{context_str}"

        return False, (
            f"Unexpected database error during {operation}: "
            f"{type(exc).__name__}: {exc}{context_str}"
        )


def handle_database_exceptions(
    operation_name: Optional[str] = None,
    reraise: bool = True,
    default_return: Any = None,
    log_level: str = "error",
) -> Callable:
    """
    Decorator to wrap async database operations with error handling.

    Args:
        operation_name: Name of the operation for logging (defaults to function name)
        reraise: Whether to re-raise the exception after logging
        default_return: Value to return if an error occurs and reraise=False
        log_level: Logging level for database errors ('error', 'warning', 'info')

    Returns:
        Decorated coroutine function
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, "__name__", "unknown")

            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Successfully completed {operation}")
                return result

            except DatabaseErrorHandler.DATABASE_EXCEPTIONS as exc:
                is_recoverable, error_msg = DatabaseErrorHandler.handle_database_error(
                    exc,
                    operation,
                    {"function": getattr(func, "__name__", "unknown")},
                )
                getattr(logger, log_level)(
                    f"{error_msg} | Recoverable: {is_recoverable}"
                )

                if reraise:
                    raise
                logger.info(
                    f"Operation {operation} failed but continuing with default return: {default_return}"
                )
                return default_return

            except Exception as exc:
                if reraise:
                    raise
                logger.error(
                    f"Unexpected error in {operation}: {type(exc).__name__}: {exc}",
                    exc_info=True,
                )
                return default_return

        return async_wrapper

    return decorator


def database_transaction(
    operation_name: Optional[str] = None,
    commit_on_success: bool = True,
    rollback_on_error: bool = True,
) -> Callable:
    """
    Decorator to commit or roll back the AsyncSession passed to the wrapped
    coroutine (positional or keyword).

    Args:
        operation_name: Name of the operation for logging
        commit_on_success: Whether to commit on successful completion
        rollback_on_error: Whether to rollback on error
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, "__name__", "unknown")

            db_session: Optional[AsyncSession] = next(
                (
                    value
                    for value in (*args, *kwargs.values())
                    if isinstance(value, AsyncSession)
                ),
                None,
            )

            if db_session is None:
                logger.warning(f"No AsyncSession found for transaction operation {operation}")
                return await func(*args, **kwargs)

            try:
                result = await func(*args, **kwargs)
                if commit_on_success:
                    await db_session.commit()
                    logger.debug(f"Transaction committed for {operation}")
                return result

            except Exception:
                if rollback_on_error:
                    try:
                        await db_session.rollback()
                        logger.debug(f"Transaction rolled back for {operation} due to error")
                    except Exception as rollback_exc:
                        logger.error(f"Failed to rollback transaction for {operation}: {rollback_exc}")
                raise

        return async_wrapper

    return decorator


def log_database_operation(operation: str, level: str = "debug") -> Callable:
    """
    Decorator to log the start, end and failure of a database operation.

    Args:
        operation: Description of the operation
        level: Logging level ('debug', 'info', 'warning', 'error')
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            logger_method = getattr(logger, level)
            func_name = getattr(func, "__name__", "unknown")
            logger_method(f"Starting {operation} via {func_name}")

            try:
                result = await func(*args, **kwargs)
                logger_method(f"Completed {operation} via {func_name}")
                return result
            except Exception as exc:
                logger_method(f"Failed {operation} via {func_name}: {exc}")
                raise

        return async_wrapper

    return decorator


# Convenience decorators for common patterns
def safe_database_query(
    func=None, operation_name: Optional[str] = None, default_return: Any = None
) -> Callable:
    """
    Read decorator that never raises.

    Usable as ``@safe_database_query``, ``@safe_database_query()`` or
    ``@safe_database_query("name", default_return=[])``.
    """

    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(
            operation_name=operation_name,
            reraise=False,
            default_return=default_return,
            log_level="warning",
        )(f)

    if func is None:
        return decorator
    if callable(func):
        return decorator(func)
    return safe_database_query(operation_name=func, default_return=default_return)


def critical_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Write decorator that always logs database errors and reraises.

    Usable with or without parentheses, or with the operation name as the
    only positional argument.
    """

    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(
            operation_name=operation_name,
            reraise=True,
            log_level="error",
        )(f)

    if func is None:
        return decorator
    if callable(func):
        return decorator(func)
    return critical_database_operation(operation_name=func)


def transactional_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Commit-or-rollback plus error logging; errors always propagate.

    Usable with or without parentheses, or with the operation name as the
    only positional argument.
    """

    def decorator(f: Callable) -> Callable:
        transaction_decorated = database_transaction(operation_name=operation_name)(f)
        return handle_database_exceptions(operation_name=operation_name, reraise=True)(
            transaction_decorated
        )

    if func is None:
        return decorator
    if callable(func):
        return decorator(func)
    return transactional_database_operation(operation_name=func)
