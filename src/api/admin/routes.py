from datetime import date
from typing import Annotated, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.payments.exceptions import PaymentNotFoundError, VerificationError
from src.api.payments.models import (
    KeyCheckResult,
    KeyPair,
    SyncResultSchema,
    TransactionSchema,
    TransactionStatsSchema,
    VerifyKeysRequest,
    VerifyKeysResponse,
    dump,
)
from src.api.payments.service import PaymentCallbackService
from src.api.payments.services.transaction_service import TransactionService
from src.config.constants import InternalStatus
from src.core.responses import success_response
from src.database.connection import get_db
from src.dependencies.auth import require_admin_key
from src.dependencies.payments import (
    ClientFactory,
    get_client_factory,
    get_gateway_config,
)
from src.integrations.spaceremit import GatewayConfig
from src.shared.exceptions import BadGatewayException, ResourceNotFoundException
from src.shared.utils import get_logger

logger = get_logger(__name__)

admin_router = APIRouter(
    prefix="/admin/spaceremit",
    tags=["SpaceRemit Admin"],
    dependencies=[Depends(require_admin_key)],
)


def _mode_config(config: GatewayConfig, test_mode: Optional[bool]) -> GatewayConfig:
    return config if test_mode is None else config.for_mode(test_mode)


@admin_router.get("/transactions", summary="List recent SpaceRemit transactions")
async def list_transactions(
    session: Annotated[AsyncSession, Depends(get_db)],
    status: Optional[InternalStatus] = Query(None, description="Internal status filter"),
    date_from: Optional[date] = Query(None, description="Created on or after (UTC date)"),
    date_to: Optional[date] = Query(None, description="Created on or before (UTC date)"),
):
    transactions = await TransactionService(session).list_transactions(
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
    )
    return success_response(
        [dump(TransactionSchema.model_validate(t)) for t in transactions]
    )


@admin_router.get("/stats", summary="Transaction totals for the last 30 days")
async def get_stats(session: Annotated[AsyncSession, Depends(get_db)]):
    stats = await TransactionService(session).get_stats()
    return success_response(dump(TransactionStatsSchema(**stats)))


@admin_router.post(
    "/transactions/{transaction_id}/sync",
    summary="Re-check a transaction with SpaceRemit and reconcile its order",
)
async def sync_transaction(
    transaction_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[GatewayConfig, Depends(get_gateway_config)],
    factory: Annotated[ClientFactory, Depends(get_client_factory)],
    test_mode: Optional[bool] = Query(None, description="Use test keys (defaults to configured mode)"),
):
    mode_config = _mode_config(config, test_mode)
    service = PaymentCallbackService(session, factory(mode_config), mode_config)

    try:
        result = await service.sync_transaction(transaction_id)
    except PaymentNotFoundError as e:
        raise ResourceNotFoundException(e.message)
    except VerificationError as e:
        logger.warning(f"Manual sync of transaction {transaction_id} failed: {e}")
        raise BadGatewayException(e.message)

    return success_response(
        dump(SyncResultSchema(**result)), message="Payment status synced successfully"
    )


@admin_router.post("/test-connection", summary="Check the gateway accepts the configured keys")
async def test_connection(
    config: Annotated[GatewayConfig, Depends(get_gateway_config)],
    factory: Annotated[ClientFactory, Depends(get_client_factory)],
    test_mode: Optional[bool] = Query(None),
):
    result = await factory(_mode_config(config, test_mode)).test_connection()
    return success_response(dump(result), message=result.message)


@admin_router.post("/verify-keys", summary="Check live and test key pairs")
async def verify_keys(
    config: Annotated[GatewayConfig, Depends(get_gateway_config)],
    factory: Annotated[ClientFactory, Depends(get_client_factory)],
    payload: Optional[VerifyKeysRequest] = Body(None),
):
    """
    Runs a connection test for each complete key pair.

    Pairs missing from the body are taken from configuration; a pair with
    an empty public or secret key is skipped.
    """
    pairs: Dict[str, Optional[KeyPair]] = {
        "live": payload.live if payload else None,
        "test": payload.test if payload else None,
    }

    results: Dict[str, KeyCheckResult] = {}
    for mode, pair in pairs.items():
        if pair is None:
            pair = KeyPair(
                public_key=getattr(config, f"{mode}_public_key"),
                secret_key=getattr(config, f"{mode}_secret_key"),
            )
        if not (pair.public_key and pair.secret_key):
            continue

        candidate = config.model_copy(
            update={
                "test_mode": mode == "test",
                f"{mode}_public_key": pair.public_key,
                f"{mode}_secret_key": pair.secret_key,
            }
        )
        outcome = await factory(candidate).test_connection()
        results[mode] = KeyCheckResult(
            mode=mode, success=outcome.success, message=outcome.message
        )

    return success_response(dump(VerifyKeysResponse(results=results)))


@admin_router.get("/keys", summary="Masked key information for the active mode")
async def get_keys(
    config: Annotated[GatewayConfig, Depends(get_gateway_config)],
    factory: Annotated[ClientFactory, Depends(get_client_factory)],
):
    return success_response(dump(factory(config).keys_info()))
