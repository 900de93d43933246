from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.payments.status import internal_status
from src.config.constants import InternalStatus, STATS_WINDOW_DAYS, TRANSACTION_LIST_LIMIT
from src.database.models.order import Order
from src.database.models.payment import PaymentTransaction
from src.database.models.timestamps import utcnow
from src.integrations.spaceremit import PaymentData
from src.shared.error_handler import ErrorHandler


class TransactionService:
    """Persistence for SpaceRemit transaction rows."""

    def __init__(
        self, session: AsyncSession, clock: Callable[[], datetime] = utcnow
    ):
        self._error_handler = ErrorHandler(__name__)
        self.session = session
        self.clock = clock

    async def get_by_payment_id(self, payment_id: str) -> Optional[PaymentTransaction]:
        result = await self.session.execute(
            select(PaymentTransaction).filter(
                PaymentTransaction.external_payment_id == payment_id
            )
        )
        return result.scalars().first()

    async def get_by_id(self, transaction_id: int) -> Optional[PaymentTransaction]:
        return await self.session.get(PaymentTransaction, transaction_id)

    async def ensure_transaction(
        self, order: Order, payment: PaymentData
    ) -> Tuple[PaymentTransaction, bool]:
        """
        Return the row for payment.id, creating it on first sighting.

        Returns:
            (transaction, created)
        """
        existing = await self.get_by_payment_id(payment.id)
        if existing:
            return existing, False

        now = self.clock()
        transaction = PaymentTransaction(
            order_id=order.id,
            external_payment_id=payment.id,
            amount=payment.original_amount
            if payment.original_amount is not None
            else order.total,
            currency=payment.currency or order.currency,
            internal_status=internal_status(payment.status_tag).value,
            external_status_code=payment.status_tag or "",
            customer_email=order.billing_email,
            customer_name=order.billing_full_name,
            payment_method=payment.payment_method or "spaceremit",
            created_at=now,
            updated_at=now,
        )
        context = {"order_id": order.id, "payment_id": payment.id}

        try:
            self.session.add(transaction)
            await self.session.commit()
        except IntegrityError as e:
            # Another request may have inserted the same reference first
            await self.session.rollback()
            await self.session.refresh(order)
            existing = await self.get_by_payment_id(context["payment_id"])
            if existing:
                return existing, False
            self._error_handler.handle_database_error(e, "creating transaction", context)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self._error_handler.handle_database_error(e, "creating transaction", context)

        self._error_handler.logger.info("Transaction record created", extra=context)
        return transaction, True

    async def record_status(
        self,
        payment_id: str,
        status_code: Optional[str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[PaymentTransaction]:
        """
        Refresh the stored status for a payment reference.

        The internal status is always derived from the code here; nothing
        else writes it. Returns None when no row exists for the reference.

        Raises:
            PersistenceError: If the row cannot be written
        """
        context = {"payment_id": payment_id, "status_code": status_code}
        try:
            transaction = await self.get_by_payment_id(payment_id)
            if transaction is None:
                self._error_handler.logger.debug(
                    "No transaction row to refresh", extra=context
                )
                return None

            transaction.external_status_code = status_code or ""
            transaction.internal_status = internal_status(status_code).value
            transaction.updated_at = self.clock()
            if payload is not None:
                transaction.last_gateway_payload = payload
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self._error_handler.handle_database_error(e, "updating transaction", context)

        return transaction

    async def list_transactions(
        self,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = TRANSACTION_LIST_LIMIT,
    ) -> List[PaymentTransaction]:
        query = select(PaymentTransaction)
        if status:
            query = query.filter(PaymentTransaction.internal_status == status)
        if date_from:
            query = query.filter(
                PaymentTransaction.created_at
                >= datetime.combine(date_from, time.min, tzinfo=timezone.utc)
            )
        if date_to:
            query = query.filter(
                PaymentTransaction.created_at
                < datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
            )
        query = query.order_by(
            PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc()
        ).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_stats(self, days: int = STATS_WINDOW_DAYS) -> Dict[str, Any]:
        """Totals for rows created in the last `days` days."""
        since = self.clock() - timedelta(days=days)
        completed = PaymentTransaction.internal_status == InternalStatus.COMPLETED.value

        result = await self.session.execute(
            select(
                func.count(PaymentTransaction.id),
                func.coalesce(
                    func.sum(case((completed, PaymentTransaction.amount), else_=0)), 0
                ),
                func.count(case((completed, 1))),
                func.count(
                    case((PaymentTransaction.internal_status == InternalStatus.PENDING.value, 1))
                ),
                func.count(
                    case((PaymentTransaction.internal_status == InternalStatus.FAILED.value, 1))
                ),
            ).filter(PaymentTransaction.created_at >= since)
        )
        total, completed_amount, completed_count, pending_count, failed_count = result.one()

        return {
            "days": days,
            "total_transactions": total,
            "total_completed_amount": Decimal(str(completed_amount)).quantize(Decimal("0.01")),
            "completed_count": completed_count,
            "pending_count": pending_count,
            "failed_count": failed_count,
        }
