from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.payments.models import PaymentStatusSchema, dump
from src.api.payments.service import BrowserOutcome, PaymentCallbackService
from src.api.payments.services.transaction_service import TransactionService
from src.api.payments.status import status_color, status_label
from src.config.constants import PAYMENT_CODE_FIELDS, SIGNATURE_HEADER
from src.core.responses import message_page, success_response
from src.database.connection import get_db
from src.dependencies.payments import get_callback_service
from src.shared.exceptions import ResourceNotFoundException

payments_router = APIRouter(prefix="/payments", tags=["Payments"])

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _browser_response(outcome: BrowserOutcome, redirect_status: int):
    if outcome.redirect_url:
        return RedirectResponse(outcome.redirect_url, status_code=redirect_status)
    return message_page(
        outcome.error_message or "Payment could not be processed.",
        outcome.error_status or status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@payments_router.post(
    "/spaceremit/callback",
    summary="SpaceRemit webhook or browser form return",
)
async def spaceremit_callback_post(
    request: Request,
    service: Annotated[PaymentCallbackService, Depends(get_callback_service)],
):
    """
    Single endpoint for both POST shapes SpaceRemit produces.

    A form body with an SP_payment_code or payment_code field, even a blank
    one, is the customer's browser coming back from the payment page and
    gets a redirect or an error page. Anything else is a server-to-server
    webhook and always gets JSON.
    """
    raw_body = await request.body()

    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        if any(field in form for field in PAYMENT_CODE_FIELDS):
            outcome = await service.handle_form_return(form)
            return _browser_response(outcome, status.HTTP_303_SEE_OTHER)

    outcome = await service.handle_webhook(raw_body, request.headers.get(SIGNATURE_HEADER))
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@payments_router.get(
    "/spaceremit/callback",
    summary="SpaceRemit browser return",
)
async def spaceremit_callback_get(
    request: Request,
    service: Annotated[PaymentCallbackService, Depends(get_callback_service)],
):
    outcome = await service.handle_get_return(request.query_params)
    return _browser_response(outcome, status.HTTP_302_FOUND)


@payments_router.get(
    "/status/{payment_id}",
    summary="Check status of a SpaceRemit payment",
)
async def get_payment_status(
    payment_id: str,
    session: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Polling endpoint for the storefront after the customer returns.
    """
    transaction = await TransactionService(session).get_by_payment_id(payment_id)
    if transaction is None:
        raise ResourceNotFoundException(f"Payment {payment_id} not found")

    code = transaction.external_status_code
    result = PaymentStatusSchema(
        payment_id=transaction.external_payment_id,
        order_id=transaction.order_id,
        status=transaction.internal_status,
        status_code=code,
        status_label=status_label(code),
        status_color=status_color(code),
        amount=transaction.amount,
        currency=transaction.currency,
        updated_at=transaction.updated_at,
    )
    return success_response(dump(result))
