"""Payment processor webhook endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.analytics import track_payment
from services.errors import OrderPhaseError, SignatureInvalidError
from services.webhooks import dispatcher, verify_event

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/stripe")
async def stripe_webhook_liveness():
    return PlainTextResponse("OK")


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    payload = await request.body()
    try:
        event = verify_event(payload, request.headers.get("stripe-signature"))
    except SignatureInvalidError as exc:
        logger.warning("Rejected Stripe webhook: %s", exc.message)
        return PlainTextResponse(exc.message, status_code=400)

    try:
        outcome = await dispatcher.dispatch(event, db)
    except OrderPhaseError as exc:
        await db.rollback()
        return PlainTextResponse(exc.message, status_code=400)
    except Exception:
        await db.rollback()
        logger.exception("Stripe webhook handling failed type=%s id=%s", event.get("type"), event.get("id"))
        return PlainTextResponse("Webhook handling failed", status_code=400)

    if outcome.receipt is not None:
        background_tasks.add_task(track_payment, outcome.receipt)
    return Response(status_code=200)
