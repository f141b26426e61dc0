from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db.engine import get_db
from inspector_pro.dependencies import get_current_user
from inspector_pro.models import User
from inspector_pro.schemas import DeviceRead, DeviceRegister, DeviceSessionRead, DeviceToggle
from inspector_pro.services import devices

router = APIRouter(prefix="/api/devices", tags=["devices"])


@router.post("", response_model=DeviceRead, status_code=201)
async def register_device(
    body: DeviceRegister,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    push_token, entry = await devices.register_device(
        db, user, body.device_id, body.token, body.platform, body.device_name,
    )
    return DeviceRead(
        id=push_token.id,
        device_id=push_token.device_id,
        platform=push_token.platform,
        device_name=push_token.device_name,
        last_used=push_token.last_used,
        session=DeviceSessionRead.model_validate(entry),
    )


@router.post("/{device_id}/logout")
async def logout_device(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changed = await devices.logout_device(db, user, device_id)
    return {"ok": True, "changed": changed}


@router.post("/{device_id}/toggle")
async def toggle_notifications(
    device_id: str,
    body: DeviceToggle,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await devices.set_notifications(db, user, device_id, body.notification_active)
    return {"ok": True, "notification_active": body.notification_active}
