import asyncio
import io

import pytest
from sqlalchemy import select

from inspector_pro.db import crud
from inspector_pro.errors import ConflictError, NotFoundError, PermissionDeniedError, UploadError, ValidationError
from inspector_pro.models import Notification, Report, ReportImage
from inspector_pro.services.report_saga import ImageUpload, ReportUploadSaga
from tests.support import FakeMediaStore, FakePushGateway, add_device, make_admin, make_job, make_label, make_user


@pytest.fixture
async def world(db):
    admin = await make_admin(db)
    inspector = await make_user(db)
    job = await make_job(db, inspector, admin)
    roof = await make_label(db, "Roof", admin)
    kitchen = await make_label(db, "Kitchen", admin)
    return {"admin": admin, "inspector": inspector, "job": job, "roof": roof, "kitchen": kitchen}


def _image(label, name, data=b"jpeg-bytes"):
    return ImageUpload(label_id=label.id, file_name=name, stream=io.BytesIO(data), mime_type="image/jpeg", size=len(data))


def _saga(db, store, dispatcher, **kwargs):
    return ReportUploadSaga(db, store, dispatcher, **kwargs)


async def _report_count(db):
    return len((await db.execute(select(Report.id))).scalars().all())


async def test_create_report_uploads_and_commits(db, store, dispatcher, world):
    saga = _saga(db, store, dispatcher)
    report = await saga.create_report(
        world["job"].id, world["inspector"].id,
        [_image(world["roof"], "roof photo.jpg"), _image(world["kitchen"], "kitchen.jpg")],
    )

    assert report.status == "submitted"
    assert [img.label for img in report.images] == ["Roof", "Kitchen"]
    assert [img.seq for img in report.images] == [1, 2]
    assert len(store.objects) == 2
    for img in report.images:
        assert img.key.startswith(f"reports/{report.id}/")
        assert img.url == f"https://media.test/{img.key}"
        assert img.key in store.objects
    # whitespace in file names becomes underscores
    assert report.images[0].key.endswith("_roof_photo.jpg")
    assert report.images[0].file_name == "roof photo.jpg"


async def test_second_report_for_same_job_conflicts(db, store, dispatcher, world):
    saga = _saga(db, store, dispatcher)
    await saga.create_report(world["job"].id, world["inspector"].id, [_image(world["roof"], "a.jpg")])
    uploads_before = len(store.put_calls)

    with pytest.raises(ConflictError):
        await saga.create_report(world["job"].id, world["inspector"].id, [_image(world["kitchen"], "b.jpg")])

    assert len(store.put_calls) == uploads_before
    assert await _report_count(db) == 1


async def test_conflict_is_reported_before_image_validation(db, store, dispatcher, world):
    saga = _saga(db, store, dispatcher)
    await saga.create_report(world["job"].id, world["inspector"].id, [_image(world["roof"], "a.jpg")])

    with pytest.raises(ConflictError):
        await saga.create_report(world["job"].id, world["inspector"].id, [])


async def test_unknown_job_is_not_found(db, store, dispatcher, world):
    with pytest.raises(NotFoundError):
        await _saga(db, store, dispatcher).create_report("missing", world["inspector"].id, [_image(world["roof"], "a.jpg")])


async def test_job_of_another_inspector_is_refused(db, store, dispatcher, world):
    other = await make_user(db)
    with pytest.raises(PermissionDeniedError):
        await _saga(db, store, dispatcher).create_report(world["job"].id, other.id, [_image(world["roof"], "a.jpg")])
    assert store.put_calls == []


async def test_empty_image_list_is_rejected(db, store, dispatcher, world):
    with pytest.raises(ValidationError):
        await _saga(db, store, dispatcher).create_report(world["job"].id, world["inspector"].id, [])
    assert await _report_count(db) == 0


async def test_too_many_images_is_rejected(db, store, dispatcher, world):
    images = [_image(world["roof"], f"{i}.jpg") for i in range(3)]
    with pytest.raises(ValidationError):
        await _saga(db, store, dispatcher, max_images=2).create_report(world["job"].id, world["inspector"].id, images)
    assert store.put_calls == []


async def test_unknown_label_is_rejected_before_any_side_effect(db, store, dispatcher, world):
    bogus = ImageUpload(label_id="no-such-label", file_name="x.jpg", stream=b"x")
    with pytest.raises(ValidationError) as exc_info:
        await _saga(db, store, dispatcher).create_report(
            world["job"].id, world["inspector"].id, [_image(world["roof"], "a.jpg"), bogus],
        )
    assert "no-such-label" in str(exc_info.value)
    assert store.put_calls == []
    assert await _report_count(db) == 0


async def test_failed_upload_rolls_back_blobs_and_draft(db, dispatcher, world):
    store = FakeMediaStore(fail_on={"bad.jpg"})
    saga = _saga(db, store, dispatcher, concurrency=4)
    images = [_image(world["roof"], "one.jpg"), _image(world["kitchen"], "bad.jpg"), _image(world["roof"], "two.jpg")]

    with pytest.raises(UploadError) as exc_info:
        await saga.create_report(world["job"].id, world["inspector"].id, images)

    assert isinstance(exc_info.value.__cause__, IOError)
    assert store.objects == {}
    assert await _report_count(db) == 0
    assert (await db.execute(select(ReportImage.id))).scalars().all() == []
    deleted = [k for batch in store.deleted for k in batch]
    assert all(not k.endswith("bad.jpg") for k in deleted)
    assert not await crud.report_exists_for_job(db, world["job"].id)


async def test_no_new_uploads_start_after_a_failure(db, dispatcher, world):
    store = FakeMediaStore(fail_on={"first.jpg"})
    saga = _saga(db, store, dispatcher, concurrency=1)
    images = [_image(world["roof"], "first.jpg")] + [_image(world["roof"], f"{i}.jpg") for i in range(4)]

    with pytest.raises(UploadError):
        await saga.create_report(world["job"].id, world["inspector"].id, images)

    assert len(store.put_calls) == 1
    assert store.deleted == []


async def test_uploads_respect_concurrency_limit(db, dispatcher, world):
    store = FakeMediaStore(delay=0.01)
    saga = _saga(db, store, dispatcher, concurrency=2)
    images = [_image(world["roof"], f"{i}.jpg") for i in range(6)]

    report = await saga.create_report(world["job"].id, world["inspector"].id, images)

    assert len(report.images) == 6
    assert store.max_in_flight <= 2
    assert [img.file_name for img in report.images] == [f"{i}.jpg" for i in range(6)]


async def test_report_created_notifies_admins(db, store, dispatcher, gateway, world):
    await add_device(db, world["admin"], "admin-token")

    report = await _saga(db, store, dispatcher).create_report(
        world["job"].id, world["inspector"].id, [_image(world["roof"], "a.jpg")],
    )

    notif = (await db.execute(select(Notification).where(Notification.event == "report.created"))).scalars().one()
    assert notif.status == "sent"
    assert notif.recipients == [world["admin"].id]
    assert notif.author_id == world["inspector"].id
    assert notif.data["reportId"] == report.id
    assert gateway.multicast_calls == [["admin-token"]]


async def test_notification_failure_does_not_fail_report(db, store, session_factory, world):
    from inspector_pro.services.notifications import NotificationDispatcher

    await add_device(db, world["admin"], "admin-token")
    broken = NotificationDispatcher(session_factory, FakePushGateway(raise_multicast=True))

    report = await _saga(db, store, broken).create_report(
        world["job"].id, world["inspector"].id, [_image(world["roof"], "a.jpg")],
    )

    assert report.id
    assert len(store.objects) == 1
    notif = (await db.execute(select(Notification).where(Notification.event == "report.created"))).scalars().one()
    assert notif.status == "failed"


async def test_failed_commit_rolls_back_blobs_and_draft(db, store, dispatcher, world, monkeypatch):
    async def broken_commit(*args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(crud, "commit_report_images", broken_commit)

    with pytest.raises(UploadError) as exc_info:
        await _saga(db, store, dispatcher).create_report(
            world["job"].id, world["inspector"].id,
            [_image(world["roof"], "a.jpg"), _image(world["kitchen"], "b.jpg")],
        )

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert len(store.put_calls) == 2
    assert store.objects == {}
    assert await _report_count(db) == 0


async def test_draft_removed_before_commit_cleans_up_blobs(db, store, dispatcher, world, monkeypatch):
    real_commit = crud.commit_report_images

    async def commit_after_delete(db, report, uploads):
        await crud.delete_report_by_id(db, report.id)
        return await real_commit(db, report, uploads)

    monkeypatch.setattr(crud, "commit_report_images", commit_after_delete)

    with pytest.raises(UploadError) as exc_info:
        await _saga(db, store, dispatcher).create_report(
            world["job"].id, world["inspector"].id, [_image(world["roof"], "a.jpg")],
        )

    assert "removed before" in str(exc_info.value)
    assert len(store.put_calls) == 1
    assert store.objects == {}
    assert await _report_count(db) == 0


async def test_cancelled_creation_removes_draft_and_landed_blobs(db, dispatcher, world):
    store = FakeMediaStore(delay=0.2)
    saga = _saga(db, store, dispatcher, concurrency=1)
    images = [_image(world["roof"], f"{i}.jpg") for i in range(3)]

    task = asyncio.create_task(saga.create_report(world["job"].id, world["inspector"].id, images))
    for _ in range(100):
        if store.objects:
            break
        await asyncio.sleep(0.02)
    landed = list(store.objects)
    assert len(landed) == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert store.objects == {}
    deleted = [k for batch in store.deleted for k in batch]
    assert landed[0] in deleted
    assert await _report_count(db) == 0
    assert not await crud.report_exists_for_job(db, world["job"].id)
