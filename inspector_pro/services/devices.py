"""Device registration and per-user login state on a device."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.errors import NotFoundError, ValidationError
from inspector_pro.models import PushToken, PushTokenSession, User
from inspector_pro.models.push_token import PLATFORMS

logger = logging.getLogger(__name__)


async def register_device(
    db: AsyncSession, user: User, device_id: str, token: str, platform: str, device_name: str = "",
) -> tuple[PushToken, PushTokenSession]:
    """Upsert the device's token and mark ``user`` logged in on it."""
    if platform not in PLATFORMS:
        raise ValidationError(f"Unknown platform '{platform}'", code="INVALID_PLATFORM")
    if not token:
        raise ValidationError("Device token is required")
    push_token = await crud.upsert_push_token(db, device_id, token, platform, device_name)
    entry = await crud.login_session(db, push_token, user.id)
    logger.info("User %s logged in on device %s (%s)", user.id, device_id, platform)
    return push_token, entry


async def _get_device(db: AsyncSession, device_id: str) -> PushToken:
    push_token = await crud.get_push_token_by_device(db, device_id)
    if push_token is None:
        raise NotFoundError("Device", device_id)
    return push_token


async def logout_device(db: AsyncSession, user: User, device_id: str) -> bool:
    """Returns False when the user was not logged in on the device."""
    push_token = await _get_device(db, device_id)
    changed = await crud.logout_session(db, push_token, user.id)
    if changed:
        logger.info("User %s logged out of device %s", user.id, device_id)
    return changed


async def set_notifications(db: AsyncSession, user: User, device_id: str, active: bool) -> None:
    push_token = await _get_device(db, device_id)
    if not await crud.set_notifications_active(db, push_token, user.id, active):
        raise NotFoundError("Device session", f"{device_id}/{user.id}")
