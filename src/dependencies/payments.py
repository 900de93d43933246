"""
Dependencies that wire the SpaceRemit gateway into request handlers.
"""

from functools import lru_cache
from typing import Annotated, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.payments.service import PaymentCallbackService
from src.config.settings import settings
from src.database.connection import get_db
from src.integrations.spaceremit import GatewayConfig, SpaceRemitClient

ClientFactory = Callable[[GatewayConfig], SpaceRemitClient]


@lru_cache
def get_gateway_config() -> GatewayConfig:
    return GatewayConfig.from_settings(settings)


def get_client_factory() -> ClientFactory:
    return SpaceRemitClient


def get_spaceremit_client(
    config: Annotated[GatewayConfig, Depends(get_gateway_config)],
    factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> SpaceRemitClient:
    return factory(config)


def get_callback_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[SpaceRemitClient, Depends(get_spaceremit_client)],
    config: Annotated[GatewayConfig, Depends(get_gateway_config)],
) -> PaymentCallbackService:
    return PaymentCallbackService(session, client, config)
