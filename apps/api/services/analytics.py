"""Best-effort payment analytics (LogSnag)."""

from __future__ import annotations

import logging

import httpx

from config import settings
from services.payments import PaymentReceipt

logger = logging.getLogger(__name__)


async def track_payment(receipt: PaymentReceipt) -> None:
    """Publish a "Successful Payment" event; failures are logged and dropped."""
    if not settings.LOGSNAG_TOKEN:
        return
    event = {
        "project": settings.LOGSNAG_PROJECT,
        "channel": "payments",
        "event": "Successful Payment",
        "user_id": receipt.user_id,
        "description": f"{receipt.product_title} - {receipt.amount}",
        "icon": "💰",
        "tags": {"title": receipt.product_title, "amount": receipt.amount},
    }
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.post(
                settings.LOGSNAG_URL,
                json=event,
                headers={"Authorization": f"Bearer {settings.LOGSNAG_TOKEN}"},
            )
            response.raise_for_status()
    except Exception as exc:
        logger.warning("Payment analytics event failed order=%s: %s", receipt.order_id, exc)
