from datetime import datetime
from typing import Callable, Optional

from src.api.payments.services.transaction_service import TransactionService
from src.database.models.timestamps import as_utc, utcnow
from src.shared.error_handler import ErrorHandler

DEFAULT_WINDOW_SECONDS = 300


class IdempotencyGuard:
    """
    Detects repeated notifications for a payment reference.

    A notification counts as already applied when the stored row carries
    the same status code and was refreshed less than `window_seconds` ago.
    Outside the window the same code is treated as a fresh confirmation.
    """

    def __init__(
        self,
        transactions: TransactionService,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._error_handler = ErrorHandler(__name__)
        self.transactions = transactions
        self.window_seconds = window_seconds
        self.clock = clock

    async def already_processed(
        self, payment_id: str, incoming_status_code: Optional[str]
    ) -> bool:
        stored = await self.transactions.get_by_payment_id(payment_id)
        if stored is None:
            return False

        incoming = "" if incoming_status_code is None else str(incoming_status_code)
        if stored.external_status_code != incoming:
            return False

        age = (self.clock() - as_utc(stored.updated_at)).total_seconds()
        duplicate = age < self.window_seconds
        if duplicate:
            self._error_handler.logger.info(
                f"Notification for {payment_id} already applied {age:.0f}s ago",
                extra={"payment_id": payment_id, "status_code": incoming_status_code},
            )
        return duplicate
