"""Job creation and assignment."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.errors import NotFoundError, ValidationError
from inspector_pro.models import Job, User
from inspector_pro.models.user import ROLE_INSPECTOR
from inspector_pro.services import events
from inspector_pro.services.notifications import NotificationDispatcher, log_outcome

logger = logging.getLogger(__name__)


async def get_job(db: AsyncSession, job_id: str) -> Job:
    job = await crud.get_job(db, job_id)
    if job is None:
        raise NotFoundError("Job", job_id, code="JOB_NOT_FOUND")
    return job


async def _check_inspector(db: AsyncSession, inspector_id: str) -> User:
    inspector = await crud.get_user(db, inspector_id)
    if inspector is None or inspector.role != ROLE_INSPECTOR:
        raise ValidationError(f"User {inspector_id} is not an inspector", code="INVALID_INSPECTOR")
    if inspector.is_suspended:
        raise ValidationError(f"Inspector {inspector_id} is suspended", code="INSPECTOR_SUSPENDED")
    return inspector


async def create_job(
    db: AsyncSession, dispatcher: NotificationDispatcher, actor: User, fields: dict[str, Any],
) -> Job:
    """Create a job, then notify the assigned inspector and the admins."""
    await _check_inspector(db, fields["inspector_id"])
    job = await crud.create_job(db, **fields, created_by=actor.id, last_updated_by=actor.id)
    logger.info("Job %s created by %s for inspector %s", job.id, actor.id, job.inspector_id)

    notif = await dispatcher.notify(events.job_assigned(job, actor.id))
    log_outcome(notif, f"job {job.id} assigned")
    notif = await dispatcher.notify(events.job_created(job, actor.id))
    log_outcome(notif, f"job {job.id} created")
    return job


async def assign_job(
    db: AsyncSession, dispatcher: NotificationDispatcher, job_id: str, inspector_id: str, actor: User,
) -> Job:
    job = await get_job(db, job_id)
    if await crud.report_exists_for_job(db, job_id):
        raise ValidationError("Cannot reassign a job that already has a report", code="JOB_UPDATE_NOT_ALLOWED")
    await _check_inspector(db, inspector_id)
    if job.inspector_id == inspector_id:
        return job

    job = await crud.update_job(db, job, inspector_id=inspector_id, last_updated_by=actor.id)
    logger.info("Job %s reassigned to %s by %s", job.id, inspector_id, actor.id)

    notif = await dispatcher.notify(events.job_assigned(job, actor.id))
    log_outcome(notif, f"job {job.id} assigned")
    return job


async def list_jobs_for(db: AsyncSession, user: User) -> list[Job]:
    """Admins see every job; inspectors see only their own."""
    if user.is_admin:
        return await crud.list_jobs(db)
    return await crud.list_jobs(db, inspector_id=user.id)
