from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.db.engine import get_db
from inspector_pro.dependencies import (
    get_current_user, get_dispatcher, get_media_store, get_report_saga, require_role,
)
from inspector_pro.errors import ValidationError
from inspector_pro.models import User
from inspector_pro.models.user import ADMIN_ROLES, ROLE_INSPECTOR
from inspector_pro.schemas import ReportPage, ReportRead, ReportStatusUpdate
from inspector_pro.services import reports
from inspector_pro.services.media_store import MediaStore
from inspector_pro.services.notifications import NotificationDispatcher
from inspector_pro.services.report_saga import ImageUpload, ReportUploadSaga

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("", response_model=ReportRead, status_code=201)
async def create_report(
    job_id: str = Form(...),
    label_ids: list[str] = Form(...),
    notes: list[str] = Form(default=[]),
    files: list[UploadFile] = File(...),
    user: User = Depends(require_role(ROLE_INSPECTOR)),
    saga: ReportUploadSaga = Depends(get_report_saga),
):
    """Multipart upload: one ``label_ids`` entry per file, in the same order."""
    if len(label_ids) != len(files):
        raise ValidationError(f"Got {len(files)} file(s) but {len(label_ids)} label id(s)")
    images = [
        ImageUpload(
            label_id=label_id,
            file_name=upload.filename or "file",
            stream=upload.file,
            mime_type=upload.content_type or "application/octet-stream",
            size=upload.size or 0,
            note_for_admin=notes[i] if i < len(notes) else "",
        )
        for i, (label_id, upload) in enumerate(zip(label_ids, files))
    ]
    return await saga.create_report(job_id, user.id, images)


@router.get("", response_model=ReportPage)
async def list_reports(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    inspector_id = None if user.is_admin else user.id
    items, total = await crud.list_reports(db, status, page, limit, inspector_id=inspector_id)
    return ReportPage(
        items=[ReportRead.model_validate(r) for r in items],
        total=total, page=page, limit=limit,
    )


@router.get("/{report_id}", response_model=ReportRead)
async def get_report(
    report_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    report = await reports.get_report(db, report_id)
    if not user.is_admin and report.inspector_id != user.id:
        raise HTTPException(403, "Insufficient permissions")
    return report


@router.patch("/{report_id}/status", response_model=ReportRead)
async def update_report_status(
    report_id: str,
    body: ReportStatusUpdate,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await reports.update_report_status(db, dispatcher, report_id, body.status, actor.id)


@router.delete("/{report_id}", status_code=204)
async def delete_report(
    report_id: str,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    await reports.delete_report(db, store, report_id)
