"""
SpaceRemit Integration Models

Pydantic schemas for gateway configuration and API payloads
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config.constants import SignaturePolicy


class GatewayConfig(BaseModel):
    """Gateway credentials and behaviour, resolved once and injected."""

    model_config = ConfigDict(frozen=True)

    api_url: str = "https://spaceremit.com/apiinfo-v2"
    test_mode: bool = False
    live_public_key: str = ""
    live_secret_key: str = ""
    test_public_key: str = ""
    test_secret_key: str = ""
    timeout: float = 30.0
    connect_timeout: float = 10.0
    max_retries: int = 3
    webhook_secret: str = ""
    signature_policy: SignaturePolicy = SignaturePolicy.OPTIONAL
    idempotency_window_seconds: int = 300

    @classmethod
    def from_settings(cls, settings) -> "GatewayConfig":
        return cls(
            api_url=settings.SPACEREMIT_API_URL,
            test_mode=settings.SPACEREMIT_TEST_MODE,
            live_public_key=settings.SPACEREMIT_LIVE_PUBLIC_KEY,
            live_secret_key=settings.SPACEREMIT_LIVE_SECRET_KEY,
            test_public_key=settings.SPACEREMIT_TEST_PUBLIC_KEY,
            test_secret_key=settings.SPACEREMIT_TEST_SECRET_KEY,
            timeout=settings.SPACEREMIT_HTTP_TIMEOUT,
            connect_timeout=settings.SPACEREMIT_CONNECT_TIMEOUT,
            max_retries=settings.SPACEREMIT_MAX_RETRIES,
            webhook_secret=settings.SPACEREMIT_WEBHOOK_SECRET,
            signature_policy=SignaturePolicy(
                settings.SPACEREMIT_SIGNATURE_POLICY.strip().lower()
            ),
            idempotency_window_seconds=settings.SPACEREMIT_IDEMPOTENCY_WINDOW,
        )

    @property
    def mode(self) -> str:
        return "test" if self.test_mode else "live"

    @property
    def server_key(self) -> str:
        return self.test_secret_key if self.test_mode else self.live_secret_key

    @property
    def public_key(self) -> str:
        return self.test_public_key if self.test_mode else self.live_public_key

    def for_mode(self, test_mode: bool) -> "GatewayConfig":
        """Copy of this config pinned to live or test credentials."""
        return self.model_copy(update={"test_mode": test_mode})


class PaymentData(BaseModel):
    """Payment body returned by a successful payment lookup."""

    model_config = ConfigDict(extra="allow")

    id: str
    status_tag: Optional[str] = None
    original_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator("id", "status_tag", "currency", "payment_method", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


class ExpectedPayment(BaseModel):
    """Constraints a looked-up payment must satisfy before it is accepted."""

    model_config = ConfigDict(extra="allow")

    currency: Optional[str] = None
    original_amount: Optional[Decimal] = None
    status_tag: Optional[List[str]] = None

    def constraints(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ConnectionTestResult(BaseModel):
    success: bool
    mode: str
    message: str


class KeysInfo(BaseModel):
    test_mode: bool
    server_key_set: bool
    public_key_set: bool
    server_key_prefix: str = Field("", description="First characters of the secret key")
    public_key_prefix: str = Field("", description="First characters of the public key")
