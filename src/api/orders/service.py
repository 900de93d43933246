from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.constants import OrderStatus
from src.config.settings import settings
from src.database.models.order import Order, OrderNote
from src.database.models.timestamps import utcnow
from src.shared.error_handler import ErrorHandler


class OrderService:
    """
    Order store used by the payment callbacks.

    Wraps the order tables behind the handful of operations reconciliation
    needs: lookup, paid marking, status changes, notes and storefront URLs.
    """

    def __init__(self, session: AsyncSession, base_url: Optional[str] = None):
        self._error_handler = ErrorHandler(__name__)
        self.session = session
        self.base_url = (base_url or settings.STORE_BASE_URL).rstrip("/")

    async def get_order(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(select(Order).filter(Order.id == order_id))
        return result.scalars().first()

    async def refresh(self, order: Order) -> Order:
        """Reload an order whose state was expired by a rollback."""
        await self.session.refresh(order)
        return order

    async def add_note_by_id(self, order_id: int, note: str) -> bool:
        """Best-effort note used on error paths; never raises."""
        try:
            self.session.add(OrderNote(order_id=order_id, note=note))
            await self.session.commit()
            return True
        except SQLAlchemyError as e:
            await self.session.rollback()
            self._error_handler.logger.error(
                f"Could not add note to order {order_id}: {e}"
            )
            return False

    async def mark_paid(self, order: Order, payment_reference: str, note: str) -> Order:
        """Mark the order paid and attach the gateway payment reference."""
        order.date_paid = utcnow()
        order.transaction_id = payment_reference
        order.status = OrderStatus.COMPLETED
        return await self._save(order, note, "marking order paid")

    async def update_status(self, order: Order, status: OrderStatus, note: str) -> Order:
        previous = order.status
        order.status = status
        self._error_handler.logger.info(
            f"Order {order.id} status {previous.value} -> {status.value}"
        )
        return await self._save(order, note, "updating order status")

    async def add_note(self, order: Order, note: str) -> None:
        await self._save(order, note, "adding order note")

    async def _save(self, order: Order, note: Optional[str], operation: str) -> Order:
        try:
            self.session.add(order)
            if note:
                self.session.add(OrderNote(order_id=order.id, note=note))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self._error_handler.handle_database_error(
                e, operation, {"order_id": order.id}
            )
        return order

    def received_url(self, order: Order) -> str:
        return f"{self.base_url}/checkout/order-received/{order.id}/?" + urlencode(
            {"key": order.order_key}
        )

    def cancel_url(self, order: Order) -> str:
        return f"{self.base_url}/cart/?" + urlencode(
            {"cancel_order": "true", "order": order.order_key, "order_id": order.id}
        )

    def payment_url(self, order: Order) -> str:
        return f"{self.base_url}/checkout/order-pay/{order.id}/?" + urlencode(
            {"pay_for_order": "true", "key": order.order_key}
        )

    def checkout_url(self) -> str:
        return f"{self.base_url}/checkout/"
