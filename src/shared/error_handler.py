"""
Centralized error handling utilities for consistent error management across services.
"""
from typing import Any, Dict, Optional

from sqlalchemy.exc import DatabaseError, IntegrityError, SQLAlchemyError

from src.api.payments.exceptions import PersistenceError
from src.shared.utils import get_logger


class ErrorHandler:
    """Centralized error handler for services"""

    def __init__(self, logger_name: str):
        self.logger = get_logger(logger_name)

    def handle_database_error(
        self, error: Exception, operation: str, context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a database failure and re-raise it as a PersistenceError."""
        context = context or {}

        if isinstance(error, IntegrityError):
            error_msg = str(error.orig) if hasattr(error, "orig") else str(error)
            self.logger.error(
                f"Database integrity error during {operation}: {error_msg}", extra=context
            )
            raise PersistenceError(
                f"Data integrity error during {operation}", error, context
            )

        elif isinstance(error, (DatabaseError, SQLAlchemyError)):
            self.logger.error(f"Database error during {operation}: {str(error)}", extra=context)
            raise PersistenceError(
                f"Database operation failed for {operation}", error, context
            )

        else:
            # Not a database error, re-raise as is
            raise error
