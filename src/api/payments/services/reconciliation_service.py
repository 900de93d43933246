from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.api.orders.service import OrderService
from src.api.payments.exceptions import PersistenceError
from src.api.payments.services.transaction_service import TransactionService
from src.api.payments.status import status_label
from src.config.constants import APPROVED_CODES, OrderStatus, StatusCode
from src.database.models.order import Order
from src.integrations.spaceremit import PaymentData
from src.shared.error_handler import ErrorHandler

# Order status each non-approving code moves an unpaid order to
ORDER_TRANSITIONS: Dict[StatusCode, OrderStatus] = {
    StatusCode.PENDING: OrderStatus.ON_HOLD,
    StatusCode.PROCESSING: OrderStatus.PROCESSING,
    StatusCode.FAILED: OrderStatus.FAILED,
    StatusCode.REFUSED: OrderStatus.CANCELLED,
    StatusCode.EXPIRED: OrderStatus.CANCELLED,
}

TRANSITION_NOTES: Dict[OrderStatus, str] = {
    OrderStatus.ON_HOLD: "SpaceRemit payment pending ({label}). Payment ID: {payment_id}",
    OrderStatus.PROCESSING: "SpaceRemit payment processing ({label}). Payment ID: {payment_id}",
    OrderStatus.FAILED: "SpaceRemit payment failed ({label}). Payment ID: {payment_id}",
    OrderStatus.CANCELLED: "SpaceRemit payment cancelled/expired ({label}). Payment ID: {payment_id}",
}

if set(ORDER_TRANSITIONS) | APPROVED_CODES != set(StatusCode):
    raise RuntimeError("ORDER_TRANSITIONS must cover every non-approving status code")


@dataclass
class ReconciliationResult:
    order_id: int
    payment_id: str
    status_code: Optional[str]
    status_label: str
    previous_status: str
    order_status: str
    transitioned: bool
    transaction_updated: bool
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "status_code": self.status_code,
            "status_label": self.status_label,
            "previous_status": self.previous_status,
            "order_status": self.order_status,
            "transitioned": self.transitioned,
            "transaction_updated": self.transaction_updated,
            "warnings": self.warnings,
        }


class ReconciliationEngine:
    """
    Applies a verified SpaceRemit status to an order and its transaction row.

    The order write goes first and is idempotent; the transaction row is
    refreshed afterwards on every call so the idempotency window stays
    accurate. A failed row refresh is reported as a warning and never
    undoes the order change.
    """

    def __init__(self, orders: OrderService, transactions: TransactionService):
        self._error_handler = ErrorHandler(__name__)
        self.orders = orders
        self.transactions = transactions

    async def apply(
        self,
        order: Order,
        payment: PaymentData,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ReconciliationResult:
        order_id = order.id
        previous_status = order.status
        label = status_label(payment.status_tag)

        self._error_handler.logger.info(
            f"Reconciling payment {payment.id} for order {order_id}",
            extra={
                "payment_id": payment.id,
                "order_id": order_id,
                "previous_order_status": previous_status.value,
                "status_code": payment.status_tag,
            },
        )

        transitioned = await self._apply_order_transition(order, payment, label)
        order_status = order.status

        warnings: List[str] = []
        transaction_updated = False
        try:
            row = await self.transactions.record_status(
                payment.id, payment.status_tag, payload
            )
            transaction_updated = row is not None
        except PersistenceError as e:
            warnings.append(f"Transaction row not updated: {e.message}")
            try:
                await self.orders.refresh(order)
            except SQLAlchemyError as refresh_error:
                self._error_handler.logger.error(
                    f"Could not reload order {order_id} after row failure: {refresh_error}",
                    extra={"order_id": order_id, "payment_id": payment.id},
                )

        return ReconciliationResult(
            order_id=order_id,
            payment_id=payment.id,
            status_code=payment.status_tag,
            status_label=label,
            previous_status=previous_status.value,
            order_status=order_status.value,
            transitioned=transitioned,
            transaction_updated=transaction_updated,
            warnings=warnings,
        )

    async def _apply_order_transition(
        self, order: Order, payment: PaymentData, label: str
    ) -> bool:
        code = StatusCode.parse(payment.status_tag)

        if code is None:
            self._error_handler.logger.warning(
                f"Unknown status tag {payment.status_tag!r} for order {order.id}",
                extra={"order_id": order.id, "payment_id": payment.id},
            )
            return False

        if code in APPROVED_CODES:
            if order.is_paid:
                return False
            await self.orders.mark_paid(
                order,
                payment.id,
                f"SpaceRemit payment completed ({label}). Payment ID: {payment.id}",
            )
            self._error_handler.logger.info(
                f"Order {order.id} marked as paid",
                extra={"order_id": order.id, "payment_id": payment.id},
            )
            return True

        # A paid order never moves back to an earlier stage
        if order.is_paid:
            self._error_handler.logger.info(
                f"Ignoring status {code.value} for paid order {order.id}",
                extra={"order_id": order.id, "payment_id": payment.id},
            )
            return False

        target = ORDER_TRANSITIONS[code]
        if order.status == target:
            return False

        await self.orders.update_status(
            order,
            target,
            TRANSITION_NOTES[target].format(label=label, payment_id=payment.id),
        )
        return True
