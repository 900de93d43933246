from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import DECIMAL, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.config.constants import OrderStatus
from src.database.base import Base
from src.database.models.timestamps import utcnow


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    order_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    billing_first_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    billing_last_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    billing_email: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    # Gateway payment reference recorded when the order is marked paid
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    date_paid: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    notes: Mapped[List["OrderNote"]] = relationship(
        "OrderNote",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderNote.id",
        lazy="selectin",
    )

    @property
    def is_paid(self) -> bool:
        return self.date_paid is not None

    @property
    def billing_full_name(self) -> str:
        return f"{self.billing_first_name} {self.billing_last_name}".strip()


class OrderNote(Base):
    __tablename__ = "order_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="notes")
