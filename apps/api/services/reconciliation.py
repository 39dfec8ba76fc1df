"""Find generation jobs that were created upstream but never billed."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.billing import UserBilling
from models.flux_job import FluxData
from services.opaque_ids import flux_ids

logger = logging.getLogger(__name__)


async def find_unbilled_jobs(
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
    grace_minutes: Optional[int] = None,
    limit: int = 500,
) -> List[Dict[str, Any]]:
    """Jobs older than the grace period with no billing row attached."""
    current = now or datetime.now(timezone.utc)
    grace = max(int(grace_minutes if grace_minutes is not None else settings.RECONCILE_GRACE_MINUTES), 0)
    cutoff = current - timedelta(minutes=grace)
    result = await db.execute(
        select(FluxData)
        .outerjoin(UserBilling, UserBilling.flux_id == FluxData.id)
        .where(UserBilling.id.is_(None), FluxData.created_at <= cutoff)
        .order_by(FluxData.id.asc())
        .limit(limit)
    )
    return [
        {
            "id": flux_ids.encode(job.id),
            "flux_id": job.id,
            "user_id": job.user_id,
            "replicate_id": job.replicate_id,
            "model": job.model,
            "created_at": job.created_at.isoformat() if job.created_at else None,
        }
        for job in result.scalars().all()
    ]


async def run_unbilled_job_sweep() -> int:
    """Log every unbilled job; returns how many were found. Never charges."""
    async with async_session_maker() as db:
        jobs = await find_unbilled_jobs(db)
    for job in jobs:
        logger.error(
            "Unbilled flux job flux_id=%s user=%s replicate_id=%s created_at=%s",
            job["flux_id"],
            job["user_id"],
            job["replicate_id"],
            job["created_at"],
        )
    return len(jobs)
