from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db.engine import get_db
from inspector_pro.dependencies import get_current_user, get_dispatcher, require_role
from inspector_pro.models import User
from inspector_pro.models.user import ADMIN_ROLES
from inspector_pro.schemas import JobAssign, JobCreate, JobRead
from inspector_pro.services import jobs
from inspector_pro.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", response_model=JobRead, status_code=201)
async def create_job(
    body: JobCreate,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await jobs.create_job(db, dispatcher, actor, body.model_dump())


@router.get("", response_model=list[JobRead])
async def list_jobs(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await jobs.list_jobs_for(db, user)


@router.get("/{job_id}", response_model=JobRead)
async def get_job(
    job_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await jobs.get_job(db, job_id)
    if not user.is_admin and job.inspector_id != user.id:
        raise HTTPException(403, "Insufficient permissions")
    return job


@router.patch("/{job_id}/assign", response_model=JobRead)
async def assign_job(
    job_id: str,
    body: JobAssign,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await jobs.assign_job(db, dispatcher, job_id, body.inspector_id, actor)
