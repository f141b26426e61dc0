from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.db.engine import get_db
from inspector_pro.dependencies import get_current_user
from inspector_pro.models import Notification, User
from inspector_pro.schemas import NotificationPage, NotificationRead

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


async def _visible_notification(db: AsyncSession, notification_id: str, user: User) -> Notification:
    notif = await crud.get_notification(db, notification_id)
    if not notif or not notif.is_visible_to(user.id):
        raise HTTPException(404, "Notification not found")
    return notif


@router.get("", response_model=NotificationPage)
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await crud.list_notifications_for_user(db, user.id, page, limit)
    return NotificationPage(
        items=[NotificationRead.model_validate(n) for n in items],
        total=total, page=page, limit=limit,
    )


@router.get("/{notification_id}", response_model=NotificationRead)
async def get_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _visible_notification(db, notification_id, user)


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notif = await _visible_notification(db, notification_id, user)
    return await crud.mark_notification_read(db, notif, user.id)
