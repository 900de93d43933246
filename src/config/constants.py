from enum import Enum


class StatusCode(str, Enum):
    """Payment status codes reported by SpaceRemit."""

    APPROVED = "A"
    PENDING = "B"
    REFUSED = "C"
    PROCESSING = "D"
    EXPIRED = "E"
    FAILED = "F"
    TEST_APPROVED = "T"

    @classmethod
    def parse(cls, raw) -> "StatusCode | None":
        """Return the matching code, or None for anything outside the vocabulary."""
        try:
            return cls(raw) if isinstance(raw, str) else None
        except ValueError:
            return None


class InternalStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SignaturePolicy(str, Enum):
    OPTIONAL = "optional"
    STRICT = "strict"


APPROVED_CODES = frozenset({StatusCode.APPROVED, StatusCode.TEST_APPROVED})
CANCEL_REDIRECT_CODES = frozenset(
    {StatusCode.FAILED, StatusCode.REFUSED, StatusCode.EXPIRED}
)

SIGNATURE_HEADER = "X-Gateway-Signature"
PAYMENT_CODE_FIELDS = ("SP_payment_code", "payment_code")
AMOUNT_TOLERANCE = "0.01"
RESPONSE_PREFIX_LENGTH = 500
TRANSACTION_LIST_LIMIT = 100
STATS_WINDOW_DAYS = 30
