import asyncio
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.future import select

from config import settings
from models.charge_order import ChargeOrder
from models.charge_product import ChargeProduct
from models.credit_account import UserCredit
from models.credit_transaction import UserCreditTransaction
from services.errors import OrderPhaseError
from services.opaque_ids import charge_order_ids, charge_product_ids
from services.payments import PaymentReceipt, settle_payment_succeeded
from services.webhooks import WebhookDispatcher, dispatcher, verify_event


PAYER_ID = "payer-user"


@pytest_asyncio.fixture
async def pending_order(session_maker):
    async with session_maker() as session:
        product = ChargeProduct(title="Starter pack", credit=200, amount=999, currency="usd")
        session.add(product)
        await session.flush()
        order = ChargeOrder(user_id=PAYER_ID, charge_product_id=product.id, amount=999, currency="usd")
        session.add(order)
        await session.commit()
        return {
            "order_id": order.id,
            "product_id": product.id,
            "metadata": {
                "orderId": charge_order_ids.encode(order.id),
                "chargeProductId": charge_product_ids.encode(product.id),
                "userId": PAYER_ID,
            },
        }


async def _post_event(api_client, sign_webhook, payload: str):
    return await api_client.post(
        "/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": sign_webhook(payload), "Content-Type": "application/json"},
    )


async def _order(session_maker, order_id: int) -> ChargeOrder:
    async with session_maker() as session:
        result = await session.execute(select(ChargeOrder).where(ChargeOrder.id == order_id))
        return result.scalar_one()


async def _ledger(session_maker, user_id: str) -> list:
    async with session_maker() as session:
        result = await session.execute(
            select(UserCreditTransaction).where(UserCreditTransaction.user_id == user_id)
        )
        return list(result.scalars().all())


async def _credit(session_maker, user_id: str):
    async with session_maker() as session:
        result = await session.execute(select(UserCredit.credit).where(UserCredit.user_id == user_id))
        return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_webhook_get_is_liveness(api_client):
    response = await api_client.get("/webhooks/stripe")
    assert response.status_code == 200
    assert response.text == "OK"


@pytest.mark.asyncio
async def test_payment_succeeded_credits_once_and_rejects_replay(
    api_client, session_maker, sign_webhook, stripe_event, pending_order
):
    payload = stripe_event("payment_intent.succeeded", pending_order["metadata"])

    first = await _post_event(api_client, sign_webhook, payload)
    assert first.status_code == 200

    order = await _order(session_maker, pending_order["order_id"])
    assert order.phase == "Paid"
    assert order.payment_at is not None
    assert order.result["id"] == "pi_test_1"
    assert await _credit(session_maker, PAYER_ID) == 200
    entries = await _ledger(session_maker, PAYER_ID)
    assert [(entry.type, entry.credit, entry.balance) for entry in entries] == [("Charge", 200, 200)]

    replay = await _post_event(api_client, sign_webhook, payload)
    assert replay.status_code == 400
    assert replay.text == "Order Phase Error"
    assert await _credit(session_maker, PAYER_ID) == 200
    assert len(await _ledger(session_maker, PAYER_ID)) == 1


@pytest.mark.asyncio
async def test_payment_failed_marks_order_failed(api_client, session_maker, sign_webhook, stripe_event, pending_order):
    response = await _post_event(
        api_client, sign_webhook, stripe_event("payment_intent.payment_failed", pending_order["metadata"])
    )
    assert response.status_code == 200

    order = await _order(session_maker, pending_order["order_id"])
    assert order.phase == "Failed"
    assert "failedAt" in order.result
    assert await _credit(session_maker, PAYER_ID) is None

    late_success = await _post_event(
        api_client, sign_webhook, stripe_event("payment_intent.succeeded", pending_order["metadata"])
    )
    assert late_success.status_code == 400
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Failed"


@pytest.mark.asyncio
async def test_cancel_keeps_order_pending_and_allows_later_payment(
    api_client, session_maker, sign_webhook, stripe_event, pending_order
):
    canceled = await _post_event(
        api_client, sign_webhook, stripe_event("payment_intent.canceled", pending_order["metadata"])
    )
    assert canceled.status_code == 200
    order = await _order(session_maker, pending_order["order_id"])
    assert order.phase == "Pending"
    assert "canceledAt" in order.result

    paid = await _post_event(
        api_client, sign_webhook, stripe_event("payment_intent.succeeded", pending_order["metadata"], "pi_test_2")
    )
    assert paid.status_code == 200
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Paid"
    assert await _credit(session_maker, PAYER_ID) == 200


@pytest.mark.asyncio
async def test_cancel_on_paid_order_is_phase_conflict(api_client, session_maker, sign_webhook, stripe_event, pending_order):
    await _post_event(api_client, sign_webhook, stripe_event("payment_intent.succeeded", pending_order["metadata"]))
    before = await _order(session_maker, pending_order["order_id"])

    response = await _post_event(
        api_client, sign_webhook, stripe_event("payment_intent.canceled", pending_order["metadata"])
    )

    assert response.status_code == 400
    after = await _order(session_maker, pending_order["order_id"])
    assert after.phase == "Paid"
    assert after.result == before.result
    assert after.payment_at == before.payment_at


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_without_side_effects(
    api_client, session_maker, sign_webhook, stripe_event, pending_order
):
    payload = stripe_event("payment_intent.succeeded", pending_order["metadata"])
    response = await api_client.post(
        "/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": sign_webhook(payload, secret="whsec_wrong")},
    )
    assert response.status_code == 400
    assert response.text.startswith("Webhook Error")
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Pending"
    assert await _credit(session_maker, PAYER_ID) is None


@pytest.mark.asyncio
async def test_missing_signature_header_is_rejected(api_client, stripe_event, pending_order):
    payload = stripe_event("payment_intent.succeeded", pending_order["metadata"])
    response = await api_client.post("/webhooks/stripe", content=payload.encode("utf-8"))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_stale_signature_timestamp_is_rejected(api_client, sign_webhook, stripe_event, pending_order):
    payload = stripe_event("payment_intent.succeeded", pending_order["metadata"])
    stale = sign_webhook(payload, timestamp=1_000_000)
    response = await api_client.post(
        "/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": stale},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unhandled_event_type_is_acknowledged(api_client, session_maker, sign_webhook, stripe_event, pending_order):
    response = await _post_event(
        api_client, sign_webhook, stripe_event("customer.subscription.created", pending_order["metadata"])
    )
    assert response.status_code == 200
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Pending"


@pytest.mark.asyncio
async def test_malformed_order_token_is_phase_conflict(api_client, sign_webhook, stripe_event, pending_order):
    metadata = {**pending_order["metadata"], "orderId": "not-a-real-token"}
    response = await _post_event(api_client, sign_webhook, stripe_event("payment_intent.succeeded", metadata))
    assert response.status_code == 400
    assert response.text == "Order Phase Error"


@pytest.mark.asyncio
async def test_unknown_product_is_phase_conflict_and_order_untouched(
    api_client, session_maker, sign_webhook, stripe_event, pending_order
):
    metadata = {**pending_order["metadata"], "chargeProductId": charge_product_ids.encode(9999)}
    response = await _post_event(api_client, sign_webhook, stripe_event("payment_intent.succeeded", metadata))
    assert response.status_code == 400
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Pending"
    assert await _credit(session_maker, PAYER_ID) is None


@pytest.mark.asyncio
async def test_analytics_failure_does_not_fail_payment(
    api_client, session_maker, sign_webhook, stripe_event, pending_order
):
    with (
        patch.object(settings, "LOGSNAG_TOKEN", "logsnag-token"),
        patch("services.analytics.httpx.AsyncClient", side_effect=httpx.ConnectError("analytics down")),
    ):
        response = await _post_event(
            api_client, sign_webhook, stripe_event("payment_intent.succeeded", pending_order["metadata"])
        )

    assert response.status_code == 200
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Paid"
    assert await _credit(session_maker, PAYER_ID) == 200


def test_dispatcher_registers_payment_intent_handlers():
    for event_type in (
        "payment_intent.succeeded",
        "payment_intent.payment_failed",
        "payment_intent.canceled",
    ):
        assert dispatcher.handles(event_type)
    assert not dispatcher.handles("checkout.session.completed")


def test_dispatcher_rejects_duplicate_registration():
    local = WebhookDispatcher()

    @local.register("payment_intent.succeeded")
    async def _first(db, intent):
        return None

    with pytest.raises(ValueError):
        local.register("payment_intent.succeeded")(_first)


@pytest.mark.asyncio
async def test_concurrent_redeliveries_grant_credit_once(session_maker, pending_order):
    snapshot = {"id": "pi_test_1", "object": "payment_intent", "metadata": pending_order["metadata"]}

    async def _deliver():
        async with session_maker() as session:
            try:
                return await settle_payment_succeeded(session, pending_order["metadata"], snapshot)
            except OrderPhaseError as exc:
                return exc

    results = await asyncio.gather(*[_deliver() for _ in range(8)])

    receipts = [result for result in results if isinstance(result, PaymentReceipt)]
    conflicts = [result for result in results if isinstance(result, OrderPhaseError)]
    assert len(receipts) == 1
    assert len(conflicts) == 7
    assert receipts[0].balance == 200
    assert await _credit(session_maker, PAYER_ID) == 200
    entries = await _ledger(session_maker, PAYER_ID)
    assert [(entry.type, entry.credit) for entry in entries] == [("Charge", 200)]
    assert (await _order(session_maker, pending_order["order_id"])).phase == "Paid"


def test_verify_event_returns_signed_event(sign_webhook, stripe_event):
    metadata = {"orderId": charge_order_ids.encode(1), "chargeProductId": charge_product_ids.encode(1), "userId": PAYER_ID}
    payload = stripe_event("payment_intent.succeeded", metadata)

    event = verify_event(payload.encode("utf-8"), sign_webhook(payload))

    assert event["type"] == "payment_intent.succeeded"
    assert event["data"]["object"]["metadata"]["orderId"] == metadata["orderId"]


@pytest.mark.asyncio
async def test_signed_non_json_body_is_rejected(api_client, sign_webhook):
    payload = "not-json"
    response = await api_client.post(
        "/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": sign_webhook(payload)},
    )
    assert response.status_code == 400
    assert response.text.startswith("Webhook Error")
