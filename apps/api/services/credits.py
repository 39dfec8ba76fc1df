"""Credit account store and ledger helpers.

Every balance change goes through :func:`adjust_credit` and is paired with
exactly one :func:`append_ledger_entry` call inside the same transaction. The
callers own the transaction boundary (commit/rollback).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import credit_cost_table
from models.credit_account import UserCredit
from models.credit_transaction import UserCreditTransaction
from models.enums import CreditTransactionType
from services.errors import AccountNotFoundError, CreditConstraintError

logger = logging.getLogger(__name__)


async def get_account(user_id: str, db: AsyncSession) -> UserCredit:
    """Return the user's account, provisioning a zero balance on first use."""
    result = await db.execute(select(UserCredit).where(UserCredit.user_id == user_id))
    account = result.scalar_one_or_none()
    if account is not None:
        return account

    try:
        async with db.begin_nested():
            account = UserCredit(user_id=user_id, credit=0)
            db.add(account)
    except IntegrityError:
        # Another request provisioned the account first.
        result = await db.execute(select(UserCredit).where(UserCredit.user_id == user_id))
        account = result.scalar_one()
    else:
        logger.info("Provisioned credit account user=%s account=%s", user_id, account.id)
    return account


async def adjust_credit(account_id: int, delta: int, db: AsyncSession) -> int:
    """Atomically add ``delta`` to an account and return the new balance.

    The guard in the WHERE clause makes the database the enforcement point
    for a non-negative balance; the row is locked by the UPDATE until the
    surrounding transaction ends.
    """
    stmt = (
        update(UserCredit)
        .where(UserCredit.id == account_id, UserCredit.credit + int(delta) >= 0)
        .values(credit=UserCredit.credit + int(delta), updated_at=func.now())
        .returning(UserCredit.credit)
        .execution_options(synchronize_session="fetch")
    )
    result = await db.execute(stmt)
    new_balance = result.scalar_one_or_none()
    if new_balance is not None:
        return int(new_balance)

    exists = await db.execute(select(UserCredit.id).where(UserCredit.id == account_id))
    if exists.scalar_one_or_none() is None:
        raise AccountNotFoundError(f"Credit account {account_id} not found")
    raise CreditConstraintError()


async def append_ledger_entry(
    db: AsyncSession,
    *,
    user_id: str,
    credit: int,
    balance: int,
    entry_type: CreditTransactionType,
    billing_id: Optional[int] = None,
) -> UserCreditTransaction:
    entry = UserCreditTransaction(
        user_id=user_id,
        credit=int(credit),
        balance=int(balance),
        billing_id=billing_id,
        type=entry_type.value,
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_ledger_total(user_id: str, db: AsyncSession) -> int:
    """Sum of every ledger delta for the user; equals the account balance."""
    result = await db.execute(
        select(func.coalesce(func.sum(UserCreditTransaction.credit), 0)).where(
            UserCreditTransaction.user_id == user_id
        )
    )
    return int(result.scalar() or 0)


async def get_credit_summary(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    account = await get_account(user_id, db)
    await db.commit()
    result = await db.execute(
        select(UserCreditTransaction)
        .where(UserCreditTransaction.user_id == user_id)
        .order_by(UserCreditTransaction.id.desc())
        .limit(30)
    )
    entries = result.scalars().all()
    return {
        "balance": int(account.credit or 0),
        "costs": credit_cost_table(),
        "recent_entries": [
            {
                "id": entry.id,
                "type": entry.type,
                "credit": entry.credit,
                "balance": entry.balance,
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in entries
        ],
    }
