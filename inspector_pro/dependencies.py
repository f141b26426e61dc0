"""FastAPI dependency providers for the acting user, role enforcement and shared services."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.config import Settings, get_settings
from inspector_pro.db import crud
from inspector_pro.db.engine import get_db
from inspector_pro.models import User
from inspector_pro.services.media_store import MediaStore
from inspector_pro.services.notifications import NotificationDispatcher
from inspector_pro.services.report_saga import ReportUploadSaga


@lru_cache
def get_settings_dep() -> Settings:
    return get_settings()


async def get_current_user(
    x_user_id: str = Header(default=""),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the acting user from the ``X-User-Id`` header.

    Suspended and not-yet-approved accounts are refused.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = await crud.get_user(db, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    if user.is_suspended:
        raise HTTPException(status_code=403, detail="You are suspended")
    if not user.is_approved:
        raise HTTPException(status_code=403, detail="Your account is awaiting approval")
    return user


def require_role(*allowed_roles: str):
    """Factory: returns a dependency that enforces role membership."""
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed_roles:
            raise HTTPException(403, "Insufficient permissions")
        return user
    return _check


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_report_saga(
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings_dep),
) -> ReportUploadSaga:
    return ReportUploadSaga(
        db, store, dispatcher,
        max_images=settings.reports.max_images,
        concurrency=settings.reports.upload_concurrency,
    )
