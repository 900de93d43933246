from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DECIMAL, JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.config.constants import InternalStatus
from src.database.base import Base
from src.database.models.timestamps import utcnow


class PaymentTransaction(Base):
    """One row per SpaceRemit payment reference."""

    __tablename__ = "payment_transactions"
    __table_args__ = (
        Index("idx_payment_transactions_internal_status", "internal_status"),
        Index("idx_payment_transactions_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id"), nullable=False, index=True
    )
    external_payment_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    amount: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # Always internal_status(external_status_code); written only by TransactionService
    internal_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InternalStatus.PENDING.value
    )
    external_status_code: Mapped[str] = mapped_column(String(5), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    customer_email: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    payment_method: Mapped[str] = mapped_column(
        String(50), nullable=False, default="spaceremit"
    )
    last_gateway_payload: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
