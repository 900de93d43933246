import json
from decimal import Decimal
from urllib.parse import urlencode

import pytest
from httpx import AsyncClient

from main import app
from src.api.payments.security import compute_signature
from src.api.payments.services.transaction_service import TransactionService
from src.config.constants import SignaturePolicy
from src.config.settings import settings
from src.database.models import Order
from src.dependencies.payments import get_gateway_config
from src.integrations.spaceremit import PaymentData

CALLBACK_URL = "/payments/spaceremit/callback"


def received_url(order):
    return f"{settings.STORE_BASE_URL}/checkout/order-received/{order.id}/?" + urlencode(
        {"key": order.order_key}
    )


def cancel_url(order):
    return f"{settings.STORE_BASE_URL}/cart/?" + urlencode(
        {"cancel_order": "true", "order": order.order_key, "order_id": order.id}
    )


def payment_url(order):
    return f"{settings.STORE_BASE_URL}/checkout/order-pay/{order.id}/?" + urlencode(
        {"pay_for_order": "true", "key": order.order_key}
    )


@pytest.fixture
def seed_transaction(session_factory):
    async def _seed(order_id, payment_id, status_tag="B"):
        async with session_factory() as session:
            order = await session.get(Order, order_id)
            await TransactionService(session).ensure_transaction(
                order,
                PaymentData(
                    id=payment_id,
                    status_tag=status_tag,
                    original_amount=Decimal("25.00"),
                    currency="USD",
                ),
            )

    return _seed


@pytest.fixture
def fetch_transaction(session_factory):
    async def _fetch(payment_id):
        async with session_factory() as session:
            return await TransactionService(session).get_by_payment_id(payment_id)

    return _fetch


async def post_webhook(client: AsyncClient, payload, headers=None):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return await client.post(
        CALLBACK_URL,
        content=body,
        headers={"Content-Type": "application/json", **(headers or {})},
    )


@pytest.mark.asyncio
class TestWebhook:
    async def test_approved_webhook_marks_order_paid(
        self, api_client, make_order, seed_transaction, fetch_order, fetch_transaction, gateway
    ):
        order = await make_order()
        await seed_transaction(order.id, "pay_1", "B")
        gateway.add_payment("pay_1", status_tag="A")

        response = await post_webhook(
            api_client, {"data": {"id": "pay_1", "status_tag": "A"}}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["message"] == "Webhook processed successfully"
        assert data["order_id"] == order.id
        assert data["payment_id"] == "pay_1"
        assert data["order_status"] == "completed"
        assert data["warnings"] == []
        assert "processing_time_ms" in data
        assert (await fetch_order(order.id)).is_paid
        row = await fetch_transaction("pay_1")
        assert row.internal_status == "completed"
        assert row.last_gateway_payload == {"data": {"id": "pay_1", "status_tag": "A"}}

    async def test_unknown_payment_returns_404(self, api_client, gateway, fetch_transaction):
        gateway.add_payment("pay_unknown")

        response = await post_webhook(
            api_client, {"data": {"id": "pay_unknown", "status_tag": "A"}}
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Order not found for payment ID: pay_unknown"
        assert await fetch_transaction("pay_unknown") is None
        assert gateway.requests == []

    async def test_duplicate_webhook_is_already_processed(
        self, api_client, make_order, seed_transaction, fetch_order, gateway
    ):
        order = await make_order()
        await seed_transaction(order.id, "pay_3", "B")
        gateway.add_payment("pay_3", status_tag="F")
        payload = {"data": {"id": "pay_3", "status_tag": "F"}}

        first = await post_webhook(api_client, payload)
        second = await post_webhook(api_client, payload)

        assert first.json()["order_status"] == "failed"
        assert second.status_code == 200
        assert second.json() == {
            "status": "success",
            "message": "Already processed",
            "order_id": order.id,
            "payment_id": "pay_3",
        }
        assert len(gateway.requests) == 1
        notes = (await fetch_order(order.id)).notes
        assert sum("payment failed" in n.note for n in notes) == 1

    async def test_paid_order_ignores_later_failure(
        self, api_client, make_order, seed_transaction, fetch_order, gateway
    ):
        order = await make_order()
        await seed_transaction(order.id, "pay_5", "B")
        gateway.add_payment("pay_5", status_tag="A")
        await post_webhook(api_client, {"data": {"id": "pay_5", "status_tag": "A"}})

        gateway.add_payment("pay_5", status_tag="F")
        response = await post_webhook(
            api_client, {"data": {"id": "pay_5", "status_tag": "F"}}
        )

        assert response.status_code == 200
        assert response.json()["order_status"] == "completed"
        assert (await fetch_order(order.id)).is_paid

    async def test_invalid_json(self, api_client):
        response = await post_webhook(api_client, b"{not json")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON data"

    @pytest.mark.parametrize(
        "payload", [{}, {"data": {}}, {"data": {"id": ""}}, {"data": "pay_1"}]
    )
    async def test_missing_payment_id(self, api_client, payload):
        response = await post_webhook(api_client, payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Missing payment ID"

    async def test_verification_failure(
        self, api_client, make_order, seed_transaction, gateway
    ):
        order = await make_order()
        await seed_transaction(order.id, "pay_6", "B")

        response = await post_webhook(
            api_client, {"data": {"id": "pay_6", "status_tag": "A"}}
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Verification Failed",
            "message": "Payment not found",
        }

    async def test_form_encoded_body_without_payment_code_is_a_webhook(self, api_client):
        response = await api_client.post(CALLBACK_URL, data={"order_id": "1"})

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/json")


@pytest.mark.asyncio
class TestWebhookSignature:
    def _use_config(self, gateway_config, **update):
        config = gateway_config.model_copy(update=update)
        app.dependency_overrides[get_gateway_config] = lambda: config

    async def test_valid_signature(
        self, api_client, gateway_config, make_order, seed_transaction, gateway
    ):
        self._use_config(gateway_config, webhook_secret="whsec")
        order = await make_order()
        await seed_transaction(order.id, "pay_7", "B")
        gateway.add_payment("pay_7", status_tag="A")
        body = json.dumps({"data": {"id": "pay_7", "status_tag": "A"}}).encode()

        response = await post_webhook(
            api_client,
            body,
            {"X-Gateway-Signature": compute_signature(body, "whsec")},
        )

        assert response.status_code == 200

    @pytest.mark.parametrize(
        "headers",
        [{}, {"X-Gateway-Signature": "deadbeef"}, {"X-Gateway-Signature": b"\xe9abc"}],
    )
    async def test_bad_or_missing_signature(self, api_client, gateway_config, headers):
        self._use_config(gateway_config, webhook_secret="whsec")

        response = await post_webhook(
            api_client, {"data": {"id": "pay_7", "status_tag": "A"}}, headers
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid webhook signature"

    async def test_strict_policy_without_secret(self, api_client, gateway_config):
        self._use_config(gateway_config, signature_policy=SignaturePolicy.STRICT)

        response = await post_webhook(
            api_client, {"data": {"id": "pay_7", "status_tag": "A"}}
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Webhook secret not configured"


@pytest.mark.asyncio
class TestFormReturn:
    async def test_approved_payment_redirects_to_received_page(
        self, api_client, make_order, fetch_order, fetch_transaction, gateway
    ):
        order = await make_order(total="25.00", currency="USD")
        gateway.add_payment("pay_2", status_tag="A", original_amount="25.00", currency="USD")

        response = await api_client.post(
            CALLBACK_URL, data={"payment_code": "pay_2", "order_id": str(order.id)}
        )

        assert response.status_code == 303
        assert response.headers["location"] == received_url(order)
        row = await fetch_transaction("pay_2")
        assert row.order_id == order.id
        assert row.internal_status == "completed"
        assert row.customer_name == "Jane Doe"
        stored = await fetch_order(order.id)
        assert stored.is_paid
        assert any(
            n.note == f"SpaceRemit payment processed. Status: A. Redirecting to: {received_url(order)}"
            for n in stored.notes
        )

    async def test_amount_mismatch_redirects_to_cancel(
        self, api_client, make_order, fetch_order, fetch_transaction, gateway
    ):
        order = await make_order(total="25.00")
        gateway.add_payment("pay_2", status_tag="A", original_amount="30.00")

        response = await api_client.post(
            CALLBACK_URL, data={"payment_code": "pay_2", "order_id": str(order.id)}
        )

        assert response.status_code == 303
        assert response.headers["location"] == cancel_url(order)
        assert await fetch_transaction("pay_2") is None
        stored = await fetch_order(order.id)
        assert not stored.is_paid
        assert any(
            n.note.startswith("SpaceRemit payment verification failed: Amount mismatch")
            for n in stored.notes
        )

    async def test_sp_payment_code_field(self, api_client, make_order, gateway):
        order = await make_order()
        gateway.add_payment("pay_8", status_tag="F")

        response = await api_client.post(
            CALLBACK_URL, data={"SP_payment_code": "pay_8", "order_id": str(order.id)}
        )

        assert response.status_code == 303
        assert response.headers["location"] == cancel_url(order)

    async def test_pending_payment_returns_to_payment_page(
        self, api_client, make_order, fetch_order, gateway
    ):
        order = await make_order()
        gateway.add_payment("pay_9", status_tag="B")

        response = await api_client.post(
            CALLBACK_URL, data={"payment_code": "pay_9", "order_id": str(order.id)}
        )

        assert response.status_code == 303
        assert response.headers["location"] == payment_url(order)
        assert (await fetch_order(order.id)).status.value == "on-hold"

    async def test_test_payment_rejected_in_live_mode(self, api_client, make_order, gateway):
        order = await make_order()
        gateway.add_payment("pay_10", status_tag="T")

        response = await api_client.post(
            CALLBACK_URL, data={"payment_code": "pay_10", "order_id": str(order.id)}
        )

        assert response.headers["location"] == cancel_url(order)

    async def test_payment_linked_to_other_order(
        self, api_client, make_order, seed_transaction, fetch_order, gateway
    ):
        first = await make_order()
        second = await make_order()
        await seed_transaction(first.id, "pay_11", "B")
        gateway.add_payment("pay_11", status_tag="A")

        response = await api_client.post(
            CALLBACK_URL, data={"payment_code": "pay_11", "order_id": str(second.id)}
        )

        assert response.headers["location"] == cancel_url(second)
        assert not (await fetch_order(second.id)).is_paid
        assert not (await fetch_order(first.id)).is_paid

    @pytest.mark.parametrize(
        "form", [{"payment_code": "pay_2"}, {"payment_code": "pay_2", "order_id": "abc"}]
    )
    async def test_invalid_form_data(self, api_client, form):
        response = await api_client.post(CALLBACK_URL, data=form)

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/html")
        assert "Invalid payment data." in response.text

    @pytest.mark.parametrize("field", ["SP_payment_code", "payment_code"])
    async def test_blank_payment_code_gets_error_page(self, api_client, make_order, field):
        order = await make_order()

        response = await api_client.post(
            CALLBACK_URL, data={field: "", "order_id": str(order.id)}
        )

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/html")
        assert "Invalid payment data." in response.text

    async def test_unknown_order(self, api_client):
        response = await api_client.post(
            CALLBACK_URL, data={"payment_code": "pay_2", "order_id": "99999"}
        )

        assert response.status_code == 404
        assert "Order not found." in response.text


@pytest.mark.asyncio
class TestGetReturn:
    async def test_matching_key_resyncs_and_redirects(
        self, api_client, make_order, fetch_order, gateway
    ):
        order = await make_order()
        gateway.add_payment("pay_12", status_tag="A")

        response = await api_client.get(
            CALLBACK_URL,
            params={"SP_payment_code": "pay_12", "order_id": order.id, "key": order.order_key},
        )

        assert response.status_code == 302
        assert response.headers["location"] == received_url(order)
        assert (await fetch_order(order.id)).is_paid

    async def test_wrong_key_skips_gateway(self, api_client, make_order, fetch_order, gateway):
        order = await make_order()
        gateway.add_payment("pay_12", status_tag="A")

        response = await api_client.get(
            CALLBACK_URL,
            params={"payment_id": "pay_12", "order_id": order.id, "key": "wrong"},
        )

        assert response.status_code == 302
        assert response.headers["location"] == received_url(order)
        assert gateway.requests == []
        assert not (await fetch_order(order.id)).is_paid

    async def test_resolves_order_from_payment_reference(
        self, api_client, make_order, seed_transaction
    ):
        order = await make_order()
        await seed_transaction(order.id, "pay_13", "B")

        response = await api_client.get(CALLBACK_URL, params={"payment_id": "pay_13"})

        assert response.status_code == 302
        assert response.headers["location"] == received_url(order)

    async def test_gateway_failure_still_redirects(self, api_client, make_order):
        order = await make_order()

        response = await api_client.get(
            CALLBACK_URL,
            params={"payment_id": "missing", "order_id": order.id, "key": order.order_key},
        )

        assert response.status_code == 302
        assert response.headers["location"] == received_url(order)

    @pytest.mark.parametrize("params", [{}, {"payment_id": "nope"}, {"order_id": "99999"}])
    async def test_unresolved_order_goes_to_checkout(self, api_client, params):
        response = await api_client.get(CALLBACK_URL, params=params)

        assert response.status_code == 302
        assert response.headers["location"] == f"{settings.STORE_BASE_URL}/checkout/"


@pytest.mark.asyncio
class TestPaymentStatus:
    async def test_status_of_known_payment(self, api_client, make_order, seed_transaction):
        order = await make_order()
        await seed_transaction(order.id, "pay_14", "D")

        response = await api_client.get("/payments/status/pay_14")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["order_id"] == order.id
        assert data["status"] == "processing"
        assert data["status_code"] == "D"
        assert data["status_label"] == "Processing"
        assert data["status_color"] == "#00a0d2"

    async def test_unknown_payment(self, api_client):
        response = await api_client.get("/payments/status/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "Payment nope not found"
