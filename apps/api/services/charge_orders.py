"""Charge order lifecycle: Pending -> Paid | Failed, with cancel re-opening Pending."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.charge_order import ChargeOrder
from models.charge_product import ChargeProduct
from models.enums import OrderPhase
from services.errors import OrderPhaseError, PaymentProviderError
from services.opaque_ids import charge_order_ids, charge_product_ids

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def order_to_dict(order: ChargeOrder) -> Dict[str, Any]:
    return {
        "orderId": charge_order_ids.encode(order.id),
        "chargeProductId": charge_product_ids.encode(order.charge_product_id),
        "phase": order.phase,
        "amount": order.amount,
        "currency": order.currency,
        "paymentAt": order.payment_at.isoformat() if order.payment_at else None,
    }


async def load_pending_order(db: AsyncSession, order_id: Optional[int]) -> ChargeOrder:
    """Lock the order row and ensure it can still transition.

    Missing orders and orders already out of Pending are both phase
    conflicts, so a redelivered event is rejected instead of reapplied.
    """
    if order_id is None:
        raise OrderPhaseError()
    result = await db.execute(select(ChargeOrder).where(ChargeOrder.id == order_id).with_for_update())
    order = result.scalar_one_or_none()
    if order is None or order.phase != OrderPhase.PENDING.value:
        logger.warning(
            "Charge order phase conflict order=%s phase=%s",
            order_id,
            order.phase if order is not None else None,
        )
        raise OrderPhaseError()
    return order


def mark_paid(order: ChargeOrder, snapshot: Dict[str, Any]) -> None:
    """Pending -> Paid. Caller commits together with the credit grant."""
    order.phase = OrderPhase.PAID.value
    order.payment_at = _utcnow()
    order.result = dict(snapshot)


async def mark_failed(db: AsyncSession, order_token: Any, snapshot: Dict[str, Any]) -> ChargeOrder:
    """Pending -> Failed on a processor payment failure."""
    order = await load_pending_order(db, charge_order_ids.decode(order_token))
    order.phase = OrderPhase.FAILED.value
    order.result = {**snapshot, "failedAt": _utcnow().isoformat()}
    await db.commit()
    logger.info("Charge order failed order=%s user=%s", order.id, order.user_id)
    return order


async def reopen_canceled(db: AsyncSession, order_token: Any, snapshot: Dict[str, Any]) -> ChargeOrder:
    """Pending -> Pending on cancellation so the user can retry checkout."""
    order = await load_pending_order(db, charge_order_ids.decode(order_token))
    order.phase = OrderPhase.PENDING.value
    order.result = {**snapshot, "canceledAt": _utcnow().isoformat()}
    await db.commit()
    logger.info("Charge order canceled, kept pending order=%s user=%s", order.id, order.user_id)
    return order


async def get_charge_product(db: AsyncSession, product_id: Optional[int]) -> Optional[ChargeProduct]:
    if product_id is None:
        return None
    result = await db.execute(select(ChargeProduct).where(ChargeProduct.id == product_id))
    return result.scalar_one_or_none()


async def list_charge_products(db: AsyncSession) -> list:
    result = await db.execute(
        select(ChargeProduct).where(ChargeProduct.state == "enable").order_by(ChargeProduct.amount.asc())
    )
    return [
        {
            "id": charge_product_ids.encode(product.id),
            "title": product.title,
            "credit": product.credit,
            "amount": product.amount,
            "currency": product.currency,
        }
        for product in result.scalars().all()
    ]


def _create_payment_intent(order: ChargeOrder, product: ChargeProduct) -> Any:
    return stripe.PaymentIntent.create(
        amount=int(product.amount),
        currency=order.currency,
        metadata={
            "orderId": charge_order_ids.encode(order.id),
            "chargeProductId": charge_product_ids.encode(product.id),
            "userId": order.user_id,
        },
        automatic_payment_methods={"enabled": True},
        api_key=settings.STRIPE_SECRET_KEY,
    )


async def create_charge_order(user_id: str, product_token: Any, db: AsyncSession) -> Dict[str, Any]:
    """Open a Pending order and the PaymentIntent whose webhooks will settle it."""
    product = await get_charge_product(db, charge_product_ids.decode(product_token))
    if product is None or product.state != "enable":
        raise LookupError("Charge product not found")
    if not settings.STRIPE_SECRET_KEY:
        raise PaymentProviderError("Stripe is not configured.")

    order = ChargeOrder(
        user_id=user_id,
        charge_product_id=product.id,
        phase=OrderPhase.PENDING.value,
        amount=int(product.amount),
        currency=product.currency or settings.CHARGE_CURRENCY,
    )
    db.add(order)
    await db.commit()

    try:
        intent = await asyncio.to_thread(_create_payment_intent, order, product)
    except stripe.StripeError as exc:
        logger.warning("PaymentIntent creation failed order=%s user=%s: %s", order.id, user_id, exc)
        order.phase = OrderPhase.FAILED.value
        order.result = {"error": str(exc), "failedAt": _utcnow().isoformat()}
        await db.commit()
        raise PaymentProviderError() from exc

    order.payment_intent_id = intent["id"]
    await db.commit()
    logger.info("Charge order created order=%s user=%s product=%s", order.id, user_id, product.id)
    payload = order_to_dict(order)
    payload["clientSecret"] = intent["client_secret"]
    return payload


async def get_charge_order(user_id: str, order_token: Any, db: AsyncSession) -> Optional[Dict[str, Any]]:
    order_id = charge_order_ids.decode(order_token)
    if order_id is None:
        return None
    result = await db.execute(
        select(ChargeOrder).where(ChargeOrder.id == order_id, ChargeOrder.user_id == user_id)
    )
    order = result.scalar_one_or_none()
    return order_to_dict(order) if order else None
