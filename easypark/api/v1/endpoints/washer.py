"""Washer dashboard endpoints."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import day_filter, get_db_session, require_washer
from easypark.db.models import User
from easypark.exceptions import EasyParkError
from easypark.schemas.washer import (
    WashJobBulkAction,
    WashJobBulkResult,
    WashJobReschedule,
    WashJobResponse,
    WasherCustomer,
    WasherStats,
)
from easypark.services.roles import effective_roles
from easypark.services.wash_jobs import (
    SORT_OPTIONS,
    accept_job,
    cancel_job,
    complete_job,
    job_payload,
    list_jobs,
    load_job,
    reschedule_job,
    washer_customers,
    washer_stats,
)

logger = logging.getLogger(__name__)

router = APIRouter()

BULK_ACTIONS = {
    "accept": accept_job,
    "complete": complete_job,
}


async def get_visible_job(db: AsyncSession, job_id: UUID, user: User):
    job = await load_job(db, job_id, user, effective_roles(user))

    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Wash job with id {job_id} not found",
        )

    return job


async def _reloaded(db: AsyncSession, job_id: UUID, user: User) -> dict:
    return job_payload(await get_visible_job(db, job_id, user))


@router.get("/jobs", response_model=List[WashJobResponse])
async def list_wash_jobs(
    status_filter: Optional[str] = Query(
        None, alias="status", description="PENDING, ACCEPTED, COMPLETED, CANCELLED or ALL"
    ),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    search: Optional[str] = Query(None),
    sort_by: str = Query("earliest", description=", ".join(SORT_OPTIONS)),
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Wash jobs visible to the caller."""
    jobs = await list_jobs(
        db,
        user,
        effective_roles(user),
        status=status_filter,
        day=day_filter(date),
        search=search,
        sort_by=sort_by,
    )
    return [job_payload(job) for job in jobs]


@router.get("/jobs/{job_id}", response_model=WashJobResponse)
async def get_wash_job(
    job_id: UUID,
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    return job_payload(await get_visible_job(db, job_id, user))


@router.patch("/jobs/{job_id}/accept", response_model=WashJobResponse)
async def accept_wash_job(
    job_id: UUID,
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Take a pending job."""
    job = await get_visible_job(db, job_id, user)
    await accept_job(db, job, user)
    await db.commit()
    return await _reloaded(db, job_id, user)


@router.patch("/jobs/{job_id}/complete", response_model=WashJobResponse)
async def complete_wash_job(
    job_id: UUID,
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Finish an accepted job and notify the customer."""
    job = await get_visible_job(db, job_id, user)
    await complete_job(db, job, user)
    await db.commit()
    return await _reloaded(db, job_id, user)


@router.patch("/jobs/{job_id}/cancel", response_model=WashJobResponse)
async def cancel_wash_job(
    job_id: UUID,
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Cancel the booking behind a job."""
    job = await get_visible_job(db, job_id, user)
    await cancel_job(db, job, user)
    await db.commit()
    return await _reloaded(db, job_id, user)


@router.patch("/jobs/{job_id}/reschedule", response_model=WashJobResponse)
async def reschedule_wash_job(
    job_id: UUID,
    data: WashJobReschedule,
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Move a job's booking to a new start time."""
    job = await get_visible_job(db, job_id, user)
    # Booking times are local wall-clock values
    slot_time = data.slot_time.replace(tzinfo=None)
    await reschedule_job(db, job, user, slot_time)
    await db.commit()
    return await _reloaded(db, job_id, user)


@router.post("/jobs/bulk", response_model=List[WashJobBulkResult])
async def bulk_update(
    data: WashJobBulkAction,
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Accept or complete several jobs; failures do not stop the batch."""
    action = BULK_ACTIONS[data.action]
    results = []
    for job_id in dict.fromkeys(data.job_ids):
        job = await load_job(db, job_id, user, effective_roles(user))
        if job is None:
            results.append(WashJobBulkResult(job_id=job_id, success=False, error="Job not found"))
            continue
        try:
            await action(db, job, user)
        except EasyParkError as exc:
            # State checks run before any change, so nothing needs undoing
            results.append(WashJobBulkResult(job_id=job_id, success=False, error=exc.detail))
            continue
        results.append(WashJobBulkResult(job_id=job_id, success=True))
    await db.commit()
    logger.info(
        "Bulk %s by %s: %d of %d succeeded",
        data.action,
        user.id,
        sum(1 for result in results if result.success),
        len(results),
    )
    return results


@router.get("/stats", response_model=WasherStats)
async def get_stats(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Per-day and all-time job counts plus upcoming jobs."""
    day = day_filter(date) or datetime.now().date()
    return await washer_stats(db, user, effective_roles(user), day)


@router.get("/customers", response_model=List[WasherCustomer])
async def get_customers(
    user: User = Depends(require_washer),
    db: AsyncSession = Depends(get_db_session),
):
    """Customers with wash jobs visible to the caller."""
    return await washer_customers(db, user, effective_roles(user))
