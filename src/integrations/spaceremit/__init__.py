"""
SpaceRemit Gateway Integration Module

Provides the HTTP client for the SpaceRemit payment API together with its
configuration model and error types.
"""

from src.integrations.spaceremit.client import SpaceRemitClient
from src.integrations.spaceremit.exceptions import (
    SpaceRemitConfigurationError,
    SpaceRemitError,
    SpaceRemitRemoteError,
    SpaceRemitTransportError,
)
from src.integrations.spaceremit.models import (
    ConnectionTestResult,
    ExpectedPayment,
    GatewayConfig,
    KeysInfo,
    PaymentData,
)

__all__ = [
    # Client
    "SpaceRemitClient",
    # Exceptions
    "SpaceRemitError",
    "SpaceRemitTransportError",
    "SpaceRemitRemoteError",
    "SpaceRemitConfigurationError",
    # Models
    "GatewayConfig",
    "PaymentData",
    "ExpectedPayment",
    "ConnectionTestResult",
    "KeysInfo",
]
