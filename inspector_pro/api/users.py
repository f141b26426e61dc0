from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db.engine import get_db
from inspector_pro.dependencies import get_current_user, get_dispatcher, require_role
from inspector_pro.models import User
from inspector_pro.models.user import ADMIN_ROLES
from inspector_pro.schemas import UserRegister, UserRead
from inspector_pro.services import users
from inspector_pro.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: UserRegister,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await users.register_user(db, dispatcher, body.first_name, body.last_name, body.email, body.role)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.id != user_id and not user.is_admin:
        raise HTTPException(403, "Insufficient permissions")
    return await users.get_user(db, user_id)


@router.post("/{user_id}/approve", response_model=UserRead)
async def approve_user(
    user_id: str,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await users.approve_user(db, dispatcher, user_id, actor)


@router.post("/{user_id}/suspend", response_model=UserRead)
async def suspend_user(
    user_id: str,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await users.suspend_user(db, dispatcher, user_id, actor)


@router.post("/{user_id}/unsuspend", response_model=UserRead)
async def unsuspend_user(
    user_id: str,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return await users.unsuspend_user(db, dispatcher, user_id, actor)
