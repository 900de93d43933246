"""
Payment reconciliation exceptions.

Errors raised by the verifier, the transaction store and the callback
handlers. Gateway transport failures live in
src.integrations.spaceremit.exceptions.
"""

from typing import Any, Dict, Optional


class PaymentError(Exception):
    """Base payment error with context"""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self):
        if self.original_error:
            return f"{self.message} | Original error: {str(self.original_error)}"
        return self.message


class VerificationError(PaymentError):
    """Raised when a payment cannot be confirmed with the gateway"""


class InvalidInputError(VerificationError):
    """Raised when the payment reference is empty"""


class ApiFailureError(VerificationError):
    """Raised when the gateway call itself failed"""


class RemoteRejectedError(VerificationError):
    """Raised when the gateway answered without a successful payment body"""


class ValidationFailedError(VerificationError):
    """Raised when a payment field does not match what the order expects"""

    def __init__(self, field: str, expected: Any, actual: Any, message: Optional[str] = None):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Invalid {field}: {actual}. Expected: {expected}",
            context={"field": field},
        )


class PaymentNotFoundError(PaymentError):
    """Raised when no order or transaction matches a payment reference"""


class SignatureError(PaymentError):
    """Raised when a webhook signature is missing or does not match"""


class PersistenceError(PaymentError):
    """Raised when the local transaction store cannot be written"""
