"""Credits, product catalog and charge order router."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.charge_orders import create_charge_order, get_charge_order, list_charge_products
from services.credits import get_credit_summary
from services.errors import BillingError

router = APIRouter()
logger = logging.getLogger(__name__)


class ChargeOrderRequest(BaseModel):
    productId: str


@router.get("/credits")
async def credits_summary(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_credit_summary(auth.user_id, db)


@router.get("/products")
async def charge_products(db: AsyncSession = Depends(get_db)):
    return {"products": await list_charge_products(db)}


@router.post("/charge_orders")
async def create_order(
    request: ChargeOrderRequest,
    _rate_limit: None = Depends(rate_limit("charge_order", limit=20, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await create_charge_order(auth.user_id, request.productId, db)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.get("/charge_orders/{order_id}")
async def charge_order_status(
    order_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    order = await get_charge_order(auth.user_id, order_id, db)
    if order is None:
        raise HTTPException(status_code=404, detail="Charge order not found")
    return order
