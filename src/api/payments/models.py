from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    external_payment_id: str
    amount: Decimal
    currency: str
    internal_status: str
    external_status_code: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    payment_method: str
    created_at: datetime
    updated_at: datetime


class PaymentStatusSchema(BaseModel):
    """Current state of a payment as the storefront sees it."""

    payment_id: str
    order_id: int
    status: str
    status_code: str
    status_label: str
    status_color: str
    amount: Decimal
    currency: str
    updated_at: datetime


class TransactionStatsSchema(BaseModel):
    days: int
    total_transactions: int
    total_completed_amount: Decimal
    completed_count: int
    pending_count: int
    failed_count: int


class SyncResultSchema(BaseModel):
    status_code: Optional[str] = None
    status_label: str
    status_color: str
    order_id: int
    payment_id: str
    previous_status: str
    order_status: str
    transitioned: bool
    transaction_updated: bool
    warnings: List[str] = Field(default_factory=list)


class KeyPair(BaseModel):
    public_key: str = ""
    secret_key: str = ""


class VerifyKeysRequest(BaseModel):
    """
    Keys to check against the gateway.

    Either pair may be omitted; omitted pairs fall back to the configured keys.
    """

    live: Optional[KeyPair] = None
    test: Optional[KeyPair] = None


class KeyCheckResult(BaseModel):
    mode: str
    success: bool
    message: str


class VerifyKeysResponse(BaseModel):
    results: Dict[str, KeyCheckResult]


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")
