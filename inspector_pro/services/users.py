"""User lifecycle: registration, approval and suspension."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.errors import ConflictError, NotFoundError, ValidationError
from inspector_pro.models import User
from inspector_pro.models.user import ROLE_ADMIN, ROLE_INSPECTOR, ROLE_SUPER_ADMIN
from inspector_pro.services import events
from inspector_pro.services.notifications import NotificationDispatcher, log_outcome

logger = logging.getLogger(__name__)

REGISTRABLE_ROLES = (ROLE_ADMIN, ROLE_INSPECTOR)


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await crud.get_user(db, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def register_user(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    first_name: str,
    last_name: str,
    email: str,
    role: str = ROLE_INSPECTOR,
) -> User:
    """Create an unapproved account and tell the admins about it."""
    if role not in REGISTRABLE_ROLES:
        raise ValidationError(f"Cannot register with role '{role}'", code="INVALID_ROLE")
    if await crud.get_user_by_email(db, email):
        raise ConflictError(f"Email {email} is already registered", code="EMAIL_TAKEN")

    user = await crud.create_user(db, first_name, last_name, email, role)
    logger.info("Registered %s %s (%s)", role, user.id, user.email)

    notif = await dispatcher.notify(events.user_registered(user))
    log_outcome(notif, f"user {user.id} registered")
    return user


async def approve_user(
    db: AsyncSession, dispatcher: NotificationDispatcher, user_id: str, actor: User,
) -> User:
    user = await get_user(db, user_id)
    if user.is_approved:
        return user
    user = await crud.update_user(db, user, is_approved=True)
    logger.info("User %s approved by %s", user.id, actor.id)

    notif = await dispatcher.notify(events.user_approved(user, actor.id))
    log_outcome(notif, f"user {user.id} approved")
    return user


def _check_can_moderate(user: User, actor: User) -> None:
    if user.id == actor.id:
        raise ValidationError("You cannot change your own suspension state", code="CANNOT_SUSPEND_SELF")
    if user.role == ROLE_SUPER_ADMIN:
        raise ValidationError("Cannot suspend a super admin", code="CANNOT_SUSPEND_ROOT")
    if user.role == actor.role:
        raise ValidationError("Cannot suspend a user with the same role as yours", code="CANNOT_SUSPEND_SAME_ROLE")


async def suspend_user(
    db: AsyncSession, dispatcher: NotificationDispatcher, user_id: str, actor: User,
) -> User:
    user = await get_user(db, user_id)
    _check_can_moderate(user, actor)
    user = await crud.update_user(db, user, is_suspended=True)
    logger.info("User %s suspended by %s", user.id, actor.id)

    notif = await dispatcher.notify(events.user_suspended(user, actor.id))
    log_outcome(notif, f"user {user.id} suspended")
    return user


async def unsuspend_user(
    db: AsyncSession, dispatcher: NotificationDispatcher, user_id: str, actor: User,
) -> User:
    user = await get_user(db, user_id)
    _check_can_moderate(user, actor)
    user = await crud.update_user(db, user, is_suspended=False)
    logger.info("User %s reinstated by %s", user.id, actor.id)

    notif = await dispatcher.notify(events.user_unsuspended(user, actor.id))
    log_outcome(notif, f"user {user.id} unsuspended")
    return user
