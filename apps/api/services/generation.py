"""Generation admission: validate funds, create the provider task, bill it."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import credit_cost_table
from models.billing import UserBilling
from models.enums import AspectRatio, BillingState, BillingType, CreditTransactionType, FluxModel
from models.flux_job import FluxData
from services.credits import adjust_credit, append_ledger_entry, get_account
from services.errors import (
    CreditConstraintError,
    InsufficientCreditError,
    UnbilledInsufficientCreditError,
    UnbilledJobError,
    UpstreamInconsistencyError,
)
from services.flux_client import FluxApiClient, FluxTaskRequest
from services.opaque_ids import flux_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    model: FluxModel
    input_prompt: str
    aspect_ratio: AspectRatio
    is_private: int = 0
    locale: str = "en"


def required_credit(model: FluxModel) -> int:
    return credit_cost_table()[model.value]


async def request_generation(
    user_id: str,
    request: GenerationRequest,
    db: AsyncSession,
    client: FluxApiClient,
) -> str:
    """Admit a generation request and return the opaque job reference.

    The provider call cannot be rolled back, so billing commits only after
    the job record it produced is found locally. A failure after the call
    leaves an unbilled job; it is logged and raised, never retried.
    """
    need_credit = required_credit(request.model)

    account = await get_account(user_id, db)
    available = int(account.credit or 0)
    account_id = account.id
    await db.commit()
    # Fast path only; the guarded UPDATE below is the real check.
    if available < need_credit:
        logger.info("Generation rejected user=%s need=%s available=%s", user_id, need_credit, available)
        raise InsufficientCreditError()

    replicate_id = await client.create_task(
        FluxTaskRequest(
            model=request.model.provider_name,
            input_prompt=request.input_prompt,
            aspect_ratio=request.aspect_ratio.value,
            is_private=int(request.is_private),
            user_id=user_id,
            locale=request.locale,
        )
    )

    result = await db.execute(select(FluxData).where(FluxData.replicate_id == replicate_id))
    flux = result.scalar_one_or_none()
    if flux is None:
        await db.rollback()
        logger.error("Flux job record missing after task creation user=%s replicate_id=%s", user_id, replicate_id)
        raise UpstreamInconsistencyError("Create Task Error")
    flux_id = flux.id

    try:
        new_balance = await adjust_credit(account_id, -need_credit, db)
        billing = UserBilling(
            user_id=user_id,
            flux_id=flux_id,
            state=BillingState.DONE.value,
            amount=-need_credit,
            type=BillingType.WITHDRAW.value,
            description=f"Generate {request.model.provider_name} - {request.aspect_ratio.value} Withdraw",
        )
        db.add(billing)
        await db.flush()
        await append_ledger_entry(
            db,
            user_id=user_id,
            credit=-need_credit,
            balance=new_balance,
            entry_type=CreditTransactionType.GENERATE,
            billing_id=billing.id,
        )
        await db.commit()
    except CreditConstraintError:
        await db.rollback()
        logger.error(
            "Unbilled flux job user=%s flux_id=%s replicate_id=%s: balance dropped below %s before commit",
            user_id,
            flux_id,
            replicate_id,
            need_credit,
        )
        raise UnbilledInsufficientCreditError()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Unbilled flux job user=%s flux_id=%s replicate_id=%s", user_id, flux_id, replicate_id)
        raise UnbilledJobError() from exc

    logger.info(
        "Generation billed user=%s flux_id=%s credit=%s balance=%s",
        user_id,
        flux_id,
        -need_credit,
        new_balance,
    )
    return flux_ids.encode(flux_id)
