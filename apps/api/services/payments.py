"""Credit grant for confirmed payments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from models.enums import CreditTransactionType
from services.charge_orders import get_charge_product, load_pending_order, mark_paid
from services.credits import adjust_credit, append_ledger_entry, get_account
from services.errors import OrderPhaseError
from services.opaque_ids import charge_order_ids, charge_product_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentReceipt:
    order_id: int
    user_id: str
    product_title: str
    amount: int
    credit: int
    balance: int


async def settle_payment_succeeded(
    db: AsyncSession,
    metadata: Dict[str, Any],
    snapshot: Dict[str, Any],
) -> PaymentReceipt:
    """Mark the order Paid and grant the product's credits in one transaction.

    Raises ``OrderPhaseError`` when the order or product cannot be resolved
    or the order already left Pending; nothing is written in that case.
    """
    order_id = charge_order_ids.decode(metadata.get("orderId"))
    product_id = charge_product_ids.decode(metadata.get("chargeProductId"))

    try:
        order = await load_pending_order(db, order_id)
        product = await get_charge_product(db, product_id)
        if product is None or product.id != order.charge_product_id:
            logger.warning("Payment for order=%s references unknown product=%s", order_id, product_id)
            raise OrderPhaseError()

        meta_user_id = metadata.get("userId")
        if meta_user_id and meta_user_id != order.user_id:
            logger.warning(
                "Payment metadata user=%s differs from order owner=%s order=%s",
                meta_user_id,
                order.user_id,
                order.id,
            )

        mark_paid(order, snapshot)
        account = await get_account(order.user_id, db)
        new_balance = await adjust_credit(account.id, int(product.credit), db)
        await append_ledger_entry(
            db,
            user_id=order.user_id,
            credit=int(product.credit),
            balance=new_balance,
            entry_type=CreditTransactionType.CHARGE,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Payment settled order=%s user=%s credit=%s balance=%s",
        order.id,
        order.user_id,
        product.credit,
        new_balance,
    )
    return PaymentReceipt(
        order_id=order.id,
        user_id=order.user_id,
        product_title=product.title,
        amount=int(product.amount),
        credit=int(product.credit),
        balance=new_balance,
    )
