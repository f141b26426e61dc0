"""Report operations after creation: status changes, lookup and deletion."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.errors import NotFoundError, ValidationError
from inspector_pro.models import Report
from inspector_pro.models.report import REPORT_STATUSES
from inspector_pro.services import events
from inspector_pro.services.media_store import MediaStore
from inspector_pro.services.notifications import NotificationDispatcher, log_outcome

logger = logging.getLogger(__name__)


async def get_report(db: AsyncSession, report_id: str) -> Report:
    report = await crud.get_report(db, report_id)
    if report is None:
        raise NotFoundError("Report", report_id)
    return report


async def update_report_status(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    report_id: str,
    status: str,
    actor_id: str,
) -> Report:
    if status not in REPORT_STATUSES:
        raise ValidationError(f"Invalid status '{status}'; expected one of {', '.join(REPORT_STATUSES)}")
    report = await get_report(db, report_id)
    report = await crud.update_report(db, report, status=status, last_updated_by=actor_id)
    logger.info("Report %s moved to %s by %s", report.id, status, actor_id)

    notif = await dispatcher.notify(events.report_status_updated(report, actor_id))
    log_outcome(notif, f"report {report.id} status update")
    return report


async def delete_report(db: AsyncSession, store: MediaStore, report_id: str) -> None:
    """Remove the report row, then its blobs on a best-effort basis."""
    report = await get_report(db, report_id)
    keys = [img.key for img in report.images if img.key]
    await crud.delete_report_by_id(db, report.id)
    logger.info("Report %s deleted", report_id)
    if not keys:
        return
    try:
        await store.delete_many(keys)
    except Exception:
        logger.exception("Could not delete %d blob(s) of report %s", len(keys), report_id)
