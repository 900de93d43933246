from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import ValidationError

from src.api.payments.exceptions import (
    ApiFailureError,
    InvalidInputError,
    RemoteRejectedError,
    ValidationFailedError,
)
from src.config.constants import AMOUNT_TOLERANCE
from src.integrations.spaceremit import (
    ExpectedPayment,
    PaymentData,
    SpaceRemitClient,
    SpaceRemitError,
)
from src.shared.error_handler import ErrorHandler


class PaymentVerifier:
    """Looks a payment up with SpaceRemit and checks it against the order."""

    def __init__(self, client: SpaceRemitClient):
        self._error_handler = ErrorHandler(__name__)
        self.client = client

    async def check_payment(
        self, payment_id: str, expected: Optional[ExpectedPayment] = None
    ) -> PaymentData:
        """
        Fetch a payment and validate it.

        Raises:
            InvalidInputError: payment_id is empty
            ApiFailureError: the gateway call failed
            RemoteRejectedError: the gateway did not report a payment
            ValidationFailedError: a field differs from `expected`
        """
        if not payment_id or not str(payment_id).strip():
            raise InvalidInputError("Payment ID is required.")

        constraints = expected.constraints() if expected else {}
        log_context = {"payment_id": payment_id, "test_mode": self.client.config.test_mode}
        self._error_handler.logger.info(
            f"Checking payment status for {payment_id}", extra=log_context
        )

        try:
            response = await self.client.send({"payment_id": payment_id})
        except SpaceRemitError as e:
            raise ApiFailureError(e.message, e, {"payment_id": payment_id})

        if response.get("response_status") != "success":
            self._error_handler.logger.warning(
                f"Payment check rejected for {payment_id}", extra=log_context
            )
            raise RemoteRejectedError(
                response.get("message") or "Payment verification failed.",
                context={"payment_id": payment_id},
            )

        raw = response.get("data")
        if not isinstance(raw, dict) or not raw:
            raise RemoteRejectedError(
                "No payment data received.", context={"payment_id": payment_id}
            )

        if constraints:
            try:
                self._validate(raw, constraints)
            except ValidationFailedError as e:
                self._error_handler.logger.warning(
                    f"Payment data validation failed for {payment_id}: {e.message}",
                    extra=log_context,
                )
                raise

        try:
            payment = PaymentData.model_validate(raw)
        except ValidationError as e:
            raise RemoteRejectedError(
                "Malformed payment data received.", e, {"payment_id": payment_id}
            )

        self._error_handler.logger.info(
            f"Payment {payment_id} verified with status {payment.status_tag}",
            extra=log_context,
        )
        return payment

    def _validate(self, raw: Dict[str, Any], constraints: Dict[str, Any]) -> None:
        for field, expected_value in constraints.items():
            if field not in raw or raw[field] is None:
                raise ValidationFailedError(
                    field, expected_value, None, f"Missing required field: {field}"
                )
            actual = raw[field]

            if field == "status_tag":
                allowed = (
                    expected_value
                    if isinstance(expected_value, (list, tuple, set, frozenset))
                    else [expected_value]
                )
                if actual not in allowed:
                    raise ValidationFailedError(
                        field,
                        expected_value,
                        actual,
                        f"Invalid status tag: {actual}. Expected one of: {', '.join(allowed)}",
                    )
            elif field == "original_amount":
                if not _amount_matches(actual, expected_value):
                    raise ValidationFailedError(
                        field,
                        expected_value,
                        actual,
                        f"Amount mismatch: {actual}. Expected: {expected_value}",
                    )
            elif str(actual) != str(expected_value):
                raise ValidationFailedError(field, expected_value, actual)


def _amount_matches(actual: Any, expected: Any) -> bool:
    try:
        difference = abs(Decimal(str(actual)) - Decimal(str(expected)))
        return difference <= Decimal(AMOUNT_TOLERANCE)
    except (InvalidOperation, ValueError):
        return False
