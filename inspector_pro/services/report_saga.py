"""Report creation as a saga over the blob store and the database.

    none -> draft -> uploaded -> committed
                  \\-> upload_failed -> rolled_back

A draft row is written first so its id can be used as the storage prefix.
Images are then uploaded concurrently; if any upload fails the draft and
every blob that did land are removed before ``UploadError`` is raised.
Cancellation before the images are committed triggers the same cleanup.
The ``report.created`` notification goes out only after the final commit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import BinaryIO

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.errors import ConflictError, NotFoundError, PermissionDeniedError, UploadError, ValidationError
from inspector_pro.models import Job, Report
from inspector_pro.services import events
from inspector_pro.services.media_store import MediaStore, StoredObject, make_key, report_prefix
from inspector_pro.services.notifications import NotificationDispatcher, log_outcome

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    label_id: str
    file_name: str
    stream: BinaryIO | bytes
    mime_type: str = "application/octet-stream"
    size: int = 0
    note_for_admin: str = ""


class _UploadsFailed(Exception):
    def __init__(self, cause: BaseException, succeeded: list[StoredObject]):
        self.cause = cause
        self.succeeded = succeeded
        super().__init__(str(cause))


class ReportUploadSaga:
    def __init__(
        self,
        db: AsyncSession,
        store: MediaStore,
        dispatcher: NotificationDispatcher,
        max_images: int = 20,
        concurrency: int = 4,
    ):
        self.db = db
        self.store = store
        self.dispatcher = dispatcher
        self.max_images = max_images
        self.concurrency = max(1, concurrency)

    async def create_report(self, job_id: str, inspector_id: str, images: list[ImageUpload]) -> Report:
        job = await crud.get_job(self.db, job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        if job.inspector_id != inspector_id:
            raise PermissionDeniedError(f"Job {job_id} is not assigned to you")
        if await crud.report_exists_for_job(self.db, job_id):
            raise ConflictError(f"A report already exists for job {job_id}", code="REPORT_EXISTS")

        if not images:
            raise ValidationError("At least one image is required")
        if len(images) > self.max_images:
            raise ValidationError(f"At most {self.max_images} images are allowed, got {len(images)}")

        labels = await crud.get_label_texts(self.db, list({img.label_id for img in images}))
        missing = sorted({img.label_id for img in images} - labels.keys())
        if missing:
            raise ValidationError(f"Unknown image label(s): {', '.join(missing)}", code="INVALID_LABEL")

        report = await self._create_draft(job_id, inspector_id, images, labels)
        report_id = report.id

        started: list[str] = []
        try:
            keys = await self._upload_and_commit(report, images, started)
        except asyncio.CancelledError:
            logger.warning(
                "Creation of report %s was cancelled with %d upload(s) started; rolling back",
                report_id, len(started),
            )
            await asyncio.shield(self._rollback_interrupted(report_id, list(started)))
            raise

        report = await crud.get_report(self.db, report_id)
        logger.info("Report %s created for job %s with %d image(s)", report_id, job_id, len(keys))

        await self._announce(report, job)
        return report

    async def _upload_and_commit(
        self, report: Report, images: list[ImageUpload], started: list[str],
    ) -> list[str]:
        """Upload then fill in the draft. Returns the stored keys."""
        report_id = report.id
        try:
            stored = await self._upload_all(images, report_prefix(report_id), started)
        except _UploadsFailed as failure:
            logger.warning(
                "Upload failed for report %s (%d of %d landed); rolling back: %s",
                report_id, len(failure.succeeded), len(images), failure.cause,
            )
            await self._compensate(report_id, [s.key for s in failure.succeeded])
            raise UploadError(f"Image upload failed for report {report_id}", cause=failure.cause) from failure.cause

        keys = [s.key for s in stored]
        try:
            committed = await crud.commit_report_images(self.db, report, [(s.url, s.key) for s in stored])
        except Exception as exc:
            await self.db.rollback()
            await self._compensate(report_id, keys)
            raise UploadError(f"Could not commit images for report {report_id}", cause=exc) from exc
        if not committed:
            await self._compensate(None, keys)
            raise UploadError(f"Report {report_id} was removed before its images were committed")
        return keys

    async def _create_draft(
        self, job_id: str, inspector_id: str, images: list[ImageUpload], labels: dict[str, str],
    ) -> Report:
        rows = [
            {
                "label": labels[img.label_id],
                "file_name": img.file_name,
                "mime_type": img.mime_type or "application/octet-stream",
                "size": img.size,
                "uploaded_by": inspector_id,
                "note_for_admin": img.note_for_admin,
            }
            for img in images
        ]
        try:
            return await crud.create_draft_report(self.db, job_id, inspector_id, rows)
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError(f"A report already exists for job {job_id}", code="REPORT_EXISTS") from exc

    async def _upload_all(
        self, images: list[ImageUpload], prefix: str, started: list[str],
    ) -> list[StoredObject]:
        """Upload every image under ``prefix``, in input order.

        After the first failure no new upload starts. Uploads already in
        flight finish, and those that succeed are reported for cleanup.
        Every key handed to the store is appended to ``started``.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        results: list[StoredObject | None] = [None] * len(images)
        errors: list[BaseException] = []

        async def upload(index: int, img: ImageUpload) -> None:
            async with semaphore:
                if errors:
                    return
                key = make_key(img.file_name, prefix)
                started.append(key)
                try:
                    results[index] = await self.store.put(img.stream, key, img.mime_type)
                except Exception as exc:
                    errors.append(exc)

        await asyncio.gather(*(upload(i, img) for i, img in enumerate(images)))

        succeeded = [r for r in results if r is not None]
        if errors:
            raise _UploadsFailed(errors[0], succeeded)
        return succeeded

    async def _compensate(self, report_id: str | None, keys: list[str]) -> None:
        """Undo the draft and uploaded blobs. Failures are logged, not raised."""
        if report_id is not None:
            try:
                await crud.delete_report_by_id(self.db, report_id)
            except Exception:
                logger.exception("Could not delete draft report %s", report_id)
                await self.db.rollback()
        if keys:
            try:
                await self.store.delete_many(keys)
            except Exception:
                logger.exception("Could not delete %d orphaned blob(s): %s", len(keys), keys)

    async def _rollback_interrupted(self, report_id: str, keys: list[str]) -> None:
        # the session may have been mid-statement when the task was cancelled
        try:
            await self.db.rollback()
        except Exception:
            logger.exception("Rollback of interrupted report %s failed", report_id)
        await self._compensate(report_id, keys)

    async def _announce(self, report: Report, job: Job) -> None:
        notif = await self.dispatcher.notify(events.report_created(report, job))
        log_outcome(notif, f"report {report.id} created")
