import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.orders.service import OrderService
from src.api.payments.exceptions import (
    PaymentError,
    PaymentNotFoundError,
    VerificationError,
)
from src.api.payments.locks import PaymentLocks, payment_locks
from src.api.payments.security import WebhookSecretMissingError, verify_webhook_signature
from src.api.payments.services.idempotency_service import IdempotencyGuard
from src.api.payments.services.reconciliation_service import ReconciliationEngine
from src.api.payments.services.transaction_service import TransactionService
from src.api.payments.services.verification_service import PaymentVerifier
from src.api.payments.status import status_color, status_label, status_tags
from src.config.constants import (
    APPROVED_CODES,
    CANCEL_REDIRECT_CODES,
    PAYMENT_CODE_FIELDS,
    StatusCode,
)
from src.database.models.order import Order
from src.database.models.timestamps import utcnow
from src.integrations.spaceremit import (
    ExpectedPayment,
    GatewayConfig,
    PaymentData,
    SpaceRemitClient,
)
from src.shared.error_handler import ErrorHandler


@dataclass
class WebhookOutcome:
    status_code: int
    body: Dict[str, Any]


@dataclass
class BrowserOutcome:
    redirect_url: Optional[str] = None
    error_status: Optional[int] = None
    error_message: Optional[str] = None


def _error(status_code: int, error: str, message: str, **extra) -> WebhookOutcome:
    return WebhookOutcome(status_code, {"error": error, "message": message, **extra})


def _first_value(source: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = source.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _parse_order_id(raw: Any) -> Optional[int]:
    try:
        order_id = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return order_id if order_id > 0 else None


class PaymentCallbackService:
    """
    Entry point for the three SpaceRemit callback shapes.

    Webhooks answer with JSON, browser returns with redirects. Every status
    change goes through the ReconciliationEngine.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: SpaceRemitClient,
        config: GatewayConfig,
        locks: PaymentLocks = payment_locks,
        clock: Callable[[], datetime] = utcnow,
        base_url: Optional[str] = None,
    ):
        self._error_handler = ErrorHandler(__name__)
        self.config = config
        self.locks = locks
        self.orders = OrderService(session, base_url)
        self.transactions = TransactionService(session, clock)
        self.guard = IdempotencyGuard(
            self.transactions, config.idempotency_window_seconds, clock
        )
        self.verifier = PaymentVerifier(client)
        self.engine = ReconciliationEngine(self.orders, self.transactions)

    # ------------------------------------------------------------------
    # Webhook (server to server, JSON in and out)
    # ------------------------------------------------------------------

    async def handle_webhook(
        self, raw_body: bytes, signature: Optional[str] = None
    ) -> WebhookOutcome:
        try:
            return await self._process_webhook(raw_body, signature)
        except PaymentError as e:
            self._error_handler.logger.error(f"Webhook processing failed: {e}")
            return _error(500, "Processing Failed", e.message)
        except Exception as e:
            self._error_handler.logger.error(
                f"Unexpected webhook error: {e}", exc_info=True
            )
            return _error(500, "Internal Server Error", "Webhook processing failed")

    async def _process_webhook(
        self, raw_body: bytes, signature: Optional[str]
    ) -> WebhookOutcome:
        start_time = time.perf_counter()
        self._error_handler.logger.info(
            "Webhook notification received", extra={"content_length": len(raw_body)}
        )

        try:
            request_data = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            self._error_handler.logger.error(
                "Webhook: Invalid JSON",
                extra={"raw_input_preview": raw_body[:200].decode("utf-8", "replace")},
            )
            return _error(400, "Invalid JSON data", str(e))
        if not isinstance(request_data, dict):
            return _error(400, "Invalid JSON data", "Expected a JSON object")

        try:
            signature_ok = verify_webhook_signature(
                raw_body,
                signature,
                self.config.webhook_secret,
                self.config.signature_policy,
            )
        except WebhookSecretMissingError as e:
            return _error(500, "Server Misconfigured", e.message)
        if not signature_ok:
            return _error(401, "Unauthorized", "Invalid webhook signature")

        data = request_data.get("data")
        payment_id = _first_value(data, "id") if isinstance(data, dict) else ""
        if not payment_id:
            self._error_handler.logger.error(
                "Webhook: Missing payment ID",
                extra={"request_keys": sorted(request_data.keys())},
            )
            return _error(400, "Bad Request", "Missing payment ID")
        incoming_code = data.get("status_tag")

        async with self.locks.hold(payment_id):
            order = await self._order_for_payment(payment_id)
            if order is None:
                self._error_handler.logger.warning(
                    f"Webhook: Order not found for payment {payment_id}"
                )
                return _error(
                    404, "Not Found", f"Order not found for payment ID: {payment_id}"
                )
            order_id = order.id

            if await self.guard.already_processed(payment_id, incoming_code):
                return WebhookOutcome(
                    200,
                    {
                        "status": "success",
                        "message": "Already processed",
                        "order_id": order_id,
                        "payment_id": payment_id,
                    },
                )

            try:
                payment = await self.verifier.check_payment(payment_id)
            except VerificationError as e:
                self._error_handler.logger.error(
                    f"Webhook: Payment verification failed: {e.message}",
                    extra={"payment_id": payment_id, "order_id": order_id},
                )
                return _error(400, "Verification Failed", e.message)

            if payment.id != payment_id:
                return _error(
                    400,
                    "Verification Failed",
                    f"Gateway returned payment {payment.id} for {payment_id}",
                )

            result = await self.engine.apply(order, payment, payload=request_data)

        processing_time = round((time.perf_counter() - start_time) * 1000, 2)
        self._error_handler.logger.info(
            f"Webhook: Successfully processed payment {payment_id}",
            extra={
                "payment_id": payment_id,
                "order_id": order_id,
                "new_order_status": result.order_status,
                "processing_time_ms": processing_time,
            },
        )
        return WebhookOutcome(
            200,
            {
                "status": "success",
                "message": "Webhook processed successfully",
                "order_id": order_id,
                "payment_id": payment_id,
                "order_status": result.order_status,
                "status_tag": result.status_code,
                "processing_time_ms": processing_time,
                "warnings": result.warnings,
            },
        )

    # ------------------------------------------------------------------
    # Browser return via form POST
    # ------------------------------------------------------------------

    async def handle_form_return(self, form: Mapping[str, Any]) -> BrowserOutcome:
        payment_code = _first_value(form, *PAYMENT_CODE_FIELDS)
        order_id = _parse_order_id(form.get("order_id"))

        self._error_handler.logger.info(
            "Processing payment callback",
            extra={"payment_code": payment_code, "order_id": order_id},
        )

        if not order_id or not payment_code:
            self._error_handler.logger.error(
                "Payment callback: Invalid data",
                extra={
                    "has_order_id": bool(order_id),
                    "has_payment_code": bool(payment_code),
                },
            )
            return BrowserOutcome(error_status=400, error_message="Invalid payment data.")

        try:
            order = await self.orders.get_order(order_id)
        except SQLAlchemyError as e:
            self._error_handler.logger.error(f"Payment callback: order lookup failed: {e}")
            return BrowserOutcome(
                error_status=500, error_message="Payment could not be processed."
            )
        if order is None:
            self._error_handler.logger.error(f"Payment callback: Order {order_id} not found")
            return BrowserOutcome(error_status=404, error_message="Order not found.")

        cancel_url = self.orders.cancel_url(order)
        try:
            return await self._process_form_return(order, payment_code, cancel_url)
        except Exception as e:
            self._error_handler.logger.error(
                f"Payment callback failed for order {order_id}: {e}", exc_info=True
            )
            await self.orders.add_note_by_id(
                order_id, f"SpaceRemit payment processing error: {e}"
            )
            return BrowserOutcome(redirect_url=cancel_url)

    async def _process_form_return(
        self, order: Order, payment_code: str, cancel_url: str
    ) -> BrowserOutcome:
        order_id = order.id
        expected = ExpectedPayment(
            currency=order.currency,
            original_amount=order.total,
            status_tag=status_tags(self.config.test_mode),
        )

        try:
            payment = await self.verifier.check_payment(payment_code, expected)
        except VerificationError as e:
            self._error_handler.logger.error(
                f"Payment verification failed: {e.message}",
                extra={"payment_code": payment_code, "order_id": order_id},
            )
            await self.orders.add_note_by_id(
                order_id, f"SpaceRemit payment verification failed: {e.message}"
            )
            return BrowserOutcome(redirect_url=cancel_url)

        try:
            async with self.locks.hold(payment.id):
                await self._apply_verified(order, payment)
        except PaymentError as e:
            self._error_handler.logger.error(
                f"Payment callback could not be applied: {e}",
                extra={"payment_code": payment_code, "order_id": order_id},
            )
            await self.orders.add_note_by_id(
                order_id, f"SpaceRemit payment verification failed: {e.message}"
            )
            return BrowserOutcome(redirect_url=cancel_url)

        code = StatusCode.parse(payment.status_tag)
        if code in APPROVED_CODES:
            redirect_url = self.orders.received_url(order)
        elif code in CANCEL_REDIRECT_CODES:
            redirect_url = cancel_url
        else:
            redirect_url = self.orders.payment_url(order)

        await self.orders.add_note_by_id(
            order_id,
            f"SpaceRemit payment processed. Status: {payment.status_tag}. "
            f"Redirecting to: {redirect_url}",
        )
        return BrowserOutcome(redirect_url=redirect_url)

    async def _apply_verified(self, order: Order, payment: PaymentData):
        """Ensure the transaction row exists for this order, then reconcile."""
        transaction, created = await self.transactions.ensure_transaction(order, payment)
        if transaction.order_id != order.id:
            raise PaymentError(
                f"Payment {payment.id} belongs to order {transaction.order_id}",
                context={"payment_id": payment.id, "order_id": order.id},
            )
        return await self.engine.apply(order, payment)

    # ------------------------------------------------------------------
    # Browser return via GET
    # ------------------------------------------------------------------

    async def handle_get_return(self, params: Mapping[str, Any]) -> BrowserOutcome:
        payment_id = _first_value(params, "SP_payment_code", "payment_id")
        order_id = _parse_order_id(params.get("order_id"))
        key = _first_value(params, "key")

        try:
            if order_id:
                order = await self.orders.get_order(order_id)
            elif payment_id:
                order = await self._order_for_payment(payment_id)
            else:
                order = None
        except SQLAlchemyError as e:
            self._error_handler.logger.error(f"GET return: order lookup failed: {e}")
            order = None

        if order is None:
            self._error_handler.logger.warning(
                "GET return: Order not found",
                extra={"payment_id": payment_id, "order_id": order_id},
            )
            return BrowserOutcome(redirect_url=self.orders.checkout_url())

        received_url = self.orders.received_url(order)

        if key and hmac.compare_digest(order.order_key.encode(), key.encode()):
            if payment_id:
                await self._resync(order, payment_id)
        elif key:
            self._error_handler.logger.warning(
                f"GET return: order key mismatch for order {order.id}"
            )

        return BrowserOutcome(redirect_url=received_url)

    async def _resync(self, order: Order, payment_id: str) -> None:
        """Best-effort status refresh; failures only get logged."""
        expected = ExpectedPayment(
            currency=order.currency,
            original_amount=order.total,
            status_tag=status_tags(self.config.test_mode),
        )
        try:
            payment = await self.verifier.check_payment(payment_id, expected)
            async with self.locks.hold(payment.id):
                await self._apply_verified(order, payment)
        except (PaymentError, SQLAlchemyError) as e:
            self._error_handler.logger.warning(
                f"GET return: status sync skipped for payment {payment_id}: {e}"
            )

    # ------------------------------------------------------------------
    # Manual sync
    # ------------------------------------------------------------------

    async def sync_transaction(self, transaction_id: int) -> Dict[str, Any]:
        """Re-verify a stored transaction with the gateway and reconcile it."""
        transaction = await self.transactions.get_by_id(transaction_id)
        if transaction is None:
            raise PaymentNotFoundError(f"Transaction {transaction_id} not found")
        payment_id = transaction.external_payment_id

        order = await self.orders.get_order(transaction.order_id)
        if order is None:
            raise PaymentNotFoundError(f"Order {transaction.order_id} not found")

        async with self.locks.hold(payment_id):
            payment = await self.verifier.check_payment(payment_id)
            result = await self.engine.apply(order, payment)

        return {
            "status_label": status_label(payment.status_tag),
            "status_color": status_color(payment.status_tag),
            **result.to_dict(),
        }

    async def _order_for_payment(self, payment_id: str) -> Optional[Order]:
        transaction = await self.transactions.get_by_payment_id(payment_id)
        if transaction is None:
            return None
        return await self.orders.get_order(transaction.order_id)
