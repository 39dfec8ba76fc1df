"""Stripe webhook verification and per-event-type dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from services.charge_orders import mark_failed, reopen_canceled
from services.errors import SignatureInvalidError
from services.payments import PaymentReceipt, settle_payment_succeeded

logger = logging.getLogger(__name__)

WebhookHandler = Callable[[AsyncSession, Dict[str, Any]], Awaitable[Optional[PaymentReceipt]]]


@dataclass(frozen=True)
class WebhookOutcome:
    event_id: Optional[str]
    event_type: str
    handled: bool
    receipt: Optional[PaymentReceipt] = None


def verify_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Check the Stripe-Signature header and return the parsed event."""
    secret = (settings.STRIPE_WEBHOOK_SECRET or "").strip()
    if not secret:
        raise SignatureInvalidError("Webhook secret is not configured")
    if not signature:
        raise SignatureInvalidError("Missing Stripe-Signature header")
    try:
        event = stripe.Webhook.construct_event(
            payload,
            signature,
            secret,
            tolerance=int(settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS),
        )
    except stripe.SignatureVerificationError as exc:
        raise SignatureInvalidError(f"Webhook Error: {exc}") from exc
    except ValueError as exc:
        raise SignatureInvalidError(f"Webhook Error: invalid payload ({exc})") from exc

    if not isinstance(event, dict) or not event.get("type"):
        raise SignatureInvalidError("Webhook Error: event type missing")
    return event


def _event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    data = event.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


class WebhookDispatcher:
    """Routes verified events to the handler registered for their type."""

    def __init__(self) -> None:
        self._handlers: Dict[str, WebhookHandler] = {}

    def register(self, event_type: str) -> Callable[[WebhookHandler], WebhookHandler]:
        def _decorator(handler: WebhookHandler) -> WebhookHandler:
            if event_type in self._handlers:
                raise ValueError(f"Handler already registered for {event_type}")
            self._handlers[event_type] = handler
            return handler

        return _decorator

    def handles(self, event_type: str) -> bool:
        return event_type in self._handlers

    async def dispatch(self, event: Dict[str, Any], db: AsyncSession) -> WebhookOutcome:
        event_type = str(event.get("type") or "")
        event_id = event.get("id")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.debug("Unhandled webhook event type=%s id=%s", event_type, event_id)
            return WebhookOutcome(event_id=event_id, event_type=event_type, handled=False)

        logger.info("Processing webhook event type=%s id=%s", event_type, event_id)
        receipt = await handler(db, _event_object(event))
        return WebhookOutcome(event_id=event_id, event_type=event_type, handled=True, receipt=receipt)


dispatcher = WebhookDispatcher()


@dispatcher.register("payment_intent.payment_failed")
async def handle_payment_failed(db: AsyncSession, intent: Dict[str, Any]) -> None:
    await mark_failed(db, (intent.get("metadata") or {}).get("orderId"), intent)


@dispatcher.register("payment_intent.canceled")
async def handle_payment_canceled(db: AsyncSession, intent: Dict[str, Any]) -> None:
    await reopen_canceled(db, (intent.get("metadata") or {}).get("orderId"), intent)


@dispatcher.register("payment_intent.succeeded")
async def handle_payment_succeeded(db: AsyncSession, intent: Dict[str, Any]) -> PaymentReceipt:
    return await settle_payment_succeeded(db, intent.get("metadata") or {}, intent)
