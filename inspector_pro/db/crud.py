"""CRUD operations for the inspection data store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update, delete, func, or_, bindparam, cast, String, DateTime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from inspector_pro.models import (
    User, Job, ImageLabel, Report, ReportImage,
    Notification, PushToken, PushTokenSession,
)
from inspector_pro.models.base import utcnow
from inspector_pro.models.user import ADMIN_ROLES


# ── User ─────────────────────────────────────────────────

async def create_user(
    db: AsyncSession, first_name: str, last_name: str, email: str,
    role: str, is_approved: bool = False,
) -> User:
    user = User(
        first_name=first_name, last_name=last_name, email=email.strip().lower(),
        role=role, is_approved=is_approved,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalars().first()


async def update_user(db: AsyncSession, user: User, **kwargs) -> User:
    for k, v in kwargs.items():
        setattr(user, k, v)
    await db.commit()
    await db.refresh(user)
    return user


async def list_active_admin_ids(db: AsyncSession, exclude_ids: list[str] | None = None) -> list[str]:
    """Ids of approved, non-suspended admins (super_admin and admin roles)."""
    stmt = select(User.id).where(
        User.role.in_(ADMIN_ROLES),
        User.is_suspended == False,
        User.is_approved == True,
    )
    if exclude_ids:
        stmt = stmt.where(User.id.not_in(exclude_ids))
    result = await db.execute(stmt.order_by(User.id))
    return list(result.scalars().all())


# ── Job ──────────────────────────────────────────────────

async def create_job(db: AsyncSession, **fields) -> Job:
    job = Job(**fields)
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


async def get_job(db: AsyncSession, job_id: str) -> Job | None:
    return await db.get(Job, job_id)


async def update_job(db: AsyncSession, job: Job, **kwargs) -> Job:
    for k, v in kwargs.items():
        setattr(job, k, v)
    await db.commit()
    await db.refresh(job)
    return job


async def list_jobs(db: AsyncSession, inspector_id: str | None = None) -> list[Job]:
    stmt = select(Job).order_by(Job.created_at.desc())
    if inspector_id:
        stmt = stmt.where(Job.inspector_id == inspector_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ── ImageLabel ───────────────────────────────────────────

async def create_image_label(db: AsyncSession, label: str, created_by: str) -> ImageLabel:
    lbl = ImageLabel(label=label.strip(), created_by=created_by)
    db.add(lbl)
    await db.commit()
    await db.refresh(lbl)
    return lbl


async def list_image_labels(db: AsyncSession) -> list[ImageLabel]:
    result = await db.execute(select(ImageLabel).order_by(ImageLabel.label))
    return list(result.scalars().all())


async def get_label_texts(db: AsyncSession, label_ids: list[str]) -> dict[str, str]:
    """Batch lookup: label id -> display text for the ids that exist."""
    if not label_ids:
        return {}
    result = await db.execute(
        select(ImageLabel.id, ImageLabel.label).where(ImageLabel.id.in_(set(label_ids)))
    )
    return {row.id: row.label for row in result.all()}


# ── Report ───────────────────────────────────────────────

async def report_exists_for_job(db: AsyncSession, job_id: str) -> bool:
    result = await db.execute(select(Report.id).where(Report.job_id == job_id))
    return result.first() is not None


async def create_draft_report(
    db: AsyncSession, job_id: str, inspector_id: str, images: list[dict],
) -> Report:
    """Insert a report with placeholder image rows (empty url/key)."""
    report = Report(job_id=job_id, inspector_id=inspector_id, status="submitted")
    report.images = [
        ReportImage(seq=seq, url="", key="", **img) for seq, img in enumerate(images, start=1)
    ]
    db.add(report)
    await db.commit()
    await db.refresh(report)
    return report


async def commit_report_images(
    db: AsyncSession, report: Report, uploads: list[tuple[str, str]],
) -> bool:
    """Fill in (url, key) per image, in seq order, if the draft still exists.

    Returns False without writing anything when the draft row is gone.
    """
    result = await db.execute(
        update(Report)
        .where(Report.id == report.id)
        .values(updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return False
    for img, (url, key) in zip(report.images, uploads):
        img.url = url
        img.key = key
    await db.commit()
    return True


async def delete_report_by_id(db: AsyncSession, report_id: str) -> None:
    await db.execute(delete(ReportImage).where(ReportImage.report_id == report_id))
    await db.execute(delete(Report).where(Report.id == report_id))
    await db.commit()


async def get_report(db: AsyncSession, report_id: str) -> Report | None:
    result = await db.execute(
        select(Report)
        .where(Report.id == report_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def list_reports(
    db: AsyncSession, status: str | None = None, page: int = 1, limit: int = 10,
    inspector_id: str | None = None,
) -> tuple[list[Report], int]:
    stmt = select(Report)
    count_stmt = select(func.count(Report.id))
    if inspector_id:
        stmt = stmt.where(Report.inspector_id == inspector_id)
        count_stmt = count_stmt.where(Report.inspector_id == inspector_id)
    if status:
        stmt = stmt.where(Report.status == status)
        count_stmt = count_stmt.where(Report.status == status)
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(
        stmt.order_by(Report.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_report(db: AsyncSession, report: Report, **kwargs) -> Report:
    for k, v in kwargs.items():
        setattr(report, k, v)
    await db.commit()
    await db.refresh(report)
    return report


# ── Notification ─────────────────────────────────────────

async def create_notification(db: AsyncSession, **fields) -> Notification:
    notif = Notification(status="pending", **fields)
    db.add(notif)
    await db.commit()
    await db.refresh(notif)
    return notif


async def finalize_notification(
    db: AsyncSession, notif: Notification, status: str, result: dict,
    sent_at: datetime | None = None, **fields,
) -> bool:
    """Move a pending notification to its terminal status.

    The WHERE clause on ``status == 'pending'`` makes the transition one-way.
    """
    values = {"status": status, "result": result, "sent_at": sent_at, **fields}
    res = await db.execute(
        update(Notification)
        .where(Notification.id == notif.id, Notification.status == "pending")
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if res.rowcount != 1:
        return False
    for k, v in values.items():
        set_committed_value(notif, k, v)
    return True


def _visible_to(user_id: str):
    # recipients is a JSON list; match the quoted id inside its serialized form
    return or_(
        Notification.recipient_id == user_id,
        Notification.author_id == user_id,
        cast(Notification.recipients, String).contains(f'"{user_id}"'),
    )


async def list_notifications_for_user(
    db: AsyncSession, user_id: str, page: int = 1, limit: int = 10,
) -> tuple[list[Notification], int]:
    cond = _visible_to(user_id)
    total = (await db.execute(select(func.count(Notification.id)).where(cond))).scalar_one()
    result = await db.execute(
        select(Notification).where(cond)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_notification(db: AsyncSession, notification_id: str) -> Notification | None:
    return await db.get(Notification, notification_id)


async def mark_notification_read(db: AsyncSession, notif: Notification, user_id: str) -> Notification:
    if user_id not in (notif.read_by or []):
        notif.read_by = [*(notif.read_by or []), user_id]
        await db.commit()
        await db.refresh(notif)
    return notif


# ── PushToken ────────────────────────────────────────────

async def get_push_token_by_device(db: AsyncSession, device_id: str) -> PushToken | None:
    result = await db.execute(select(PushToken).where(PushToken.device_id == device_id))
    return result.scalars().first()


async def upsert_push_token(
    db: AsyncSession, device_id: str, token: str, platform: str, device_name: str = "",
) -> PushToken:
    """Insert or update a device by device_id. A new token replaces the old one."""
    existing = await get_push_token_by_device(db, device_id)
    if existing:
        existing.token = token
        existing.platform = platform
        existing.device_name = device_name or existing.device_name
        existing.last_used = utcnow()
        await db.commit()
        await db.refresh(existing)
        return existing
    pt = PushToken(
        device_id=device_id, token=token, platform=platform,
        device_name=device_name, last_used=utcnow(),
    )
    db.add(pt)
    await db.commit()
    await db.refresh(pt)
    return pt


async def login_session(db: AsyncSession, push_token: PushToken, user_id: str) -> PushTokenSession:
    """Mark ``user_id`` logged in on this device, creating the entry if needed."""
    now = utcnow()
    entry = push_token.session_for(user_id)
    if entry is None:
        entry = PushTokenSession(
            token_id=push_token.id, user_id=user_id, notification_active=True,
            logged_in_status=True, last_logged_in_at=now,
        )
        db.add(entry)
        await db.commit()
        await db.refresh(push_token, attribute_names=["sessions"])
        return entry
    await db.execute(
        update(PushTokenSession)
        .where(PushTokenSession.token_id == push_token.id, PushTokenSession.user_id == user_id)
        .values(logged_in_status=True, last_logged_in_at=now)
    )
    await db.commit()
    await db.refresh(entry)
    return entry


async def logout_session(db: AsyncSession, push_token: PushToken, user_id: str) -> bool:
    res = await db.execute(
        update(PushTokenSession)
        .where(
            PushTokenSession.token_id == push_token.id,
            PushTokenSession.user_id == user_id,
            PushTokenSession.logged_in_status == True,
        )
        .values(logged_in_status=False, last_logged_out_at=utcnow())
    )
    await db.commit()
    return res.rowcount == 1


async def set_notifications_active(
    db: AsyncSession, push_token: PushToken, user_id: str, active: bool,
) -> bool:
    res = await db.execute(
        update(PushTokenSession)
        .where(PushTokenSession.token_id == push_token.id, PushTokenSession.user_id == user_id)
        .values(notification_active=active)
    )
    await db.commit()
    return res.rowcount == 1


async def active_tokens_for_users(db: AsyncSession, user_ids: list[str]) -> list[str]:
    """Tokens with a session entry for one of ``user_ids`` that is logged in with notifications on."""
    if not user_ids:
        return []
    result = await db.execute(
        select(PushToken.token)
        .join(PushTokenSession, PushTokenSession.token_id == PushToken.id)
        .where(
            PushTokenSession.user_id.in_(user_ids),
            PushTokenSession.notification_active == True,
            PushTokenSession.logged_in_status == True,
        )
        .distinct()
        .order_by(PushToken.token)
    )
    return [t for t in result.scalars().all() if t]


async def notifiable_tokens_for_user(db: AsyncSession, user_id: str) -> list[str]:
    """Every token where the user has notifications on, logged in or not."""
    result = await db.execute(
        select(PushToken.token)
        .join(PushTokenSession, PushTokenSession.token_id == PushToken.id)
        .where(
            PushTokenSession.user_id == user_id,
            PushTokenSession.notification_active == True,
        )
        .distinct()
    )
    return [t for t in result.scalars().all() if t]


async def delete_push_tokens(db: AsyncSession, tokens: list[str]) -> int:
    """Delete token records (and their session entries) by token string."""
    if not tokens:
        return 0
    ids = (await db.execute(select(PushToken.id).where(PushToken.token.in_(tokens)))).scalars().all()
    if not ids:
        return 0
    await db.execute(delete(PushTokenSession).where(PushTokenSession.token_id.in_(ids)))
    await db.execute(delete(PushToken).where(PushToken.id.in_(ids)))
    await db.commit()
    return len(ids)


# ── Session sweep ────────────────────────────────────────

def _expired_entry(expiry: datetime):
    return (PushTokenSession.logged_in_status == True) & (PushTokenSession.last_logged_in_at < expiry)


async def expired_session_token_ids(
    db: AsyncSession, expiry: datetime, after_id: str | None, limit: int,
) -> list[str]:
    """One keyset page of token ids holding at least one expired logged-in entry."""
    stmt = select(PushToken.id).where(PushToken.sessions.any(_expired_entry(expiry)))
    if after_id is not None:
        stmt = stmt.where(PushToken.id > after_id)
    result = await db.execute(stmt.order_by(PushToken.id).limit(limit))
    return list(result.scalars().all())


async def bulk_expire_sessions(
    db: AsyncSession, token_ids: list[str], expiry: datetime, now: datetime,
) -> None:
    """Unordered batch of per-token partial updates.

    Only entries that are still logged in and older than ``expiry`` are
    touched; other entries of the same token keep their state.
    """
    sessions = PushTokenSession.__table__
    tokens = PushToken.__table__
    await db.execute(
        update(sessions)
        .where(
            sessions.c.token_id == bindparam("b_token_id"),
            sessions.c.logged_in_status == True,
            sessions.c.last_logged_in_at < bindparam("b_expiry", type_=DateTime(timezone=True)),
        )
        .values(
            logged_in_status=False,
            last_logged_in_at=None,
            last_logged_out_at=bindparam("b_now", type_=DateTime(timezone=True)),
        ),
        [{"b_token_id": tid, "b_expiry": expiry, "b_now": now} for tid in token_ids],
    )
    await db.execute(
        update(tokens)
        .where(tokens.c.id == bindparam("b_token_id"))
        .values(last_used=bindparam("b_now", type_=DateTime(timezone=True))),
        [{"b_token_id": tid, "b_now": now} for tid in token_ids],
    )
    await db.commit()
