from datetime import timedelta

from inspector_pro.db import crud
from inspector_pro.models.base import utcnow
from inspector_pro.models.user import ROLE_SUPER_ADMIN
from tests.support import add_device, make_admin, make_job, make_label, make_user


async def test_create_and_get_user(db):
    user = await crud.create_user(db, "Sam", "Lee", " Sam@Example.com ", "inspector")
    assert user.id is not None
    assert user.email == "sam@example.com"
    assert user.is_approved is False

    fetched = await crud.get_user_by_email(db, "SAM@example.com")
    assert fetched is not None and fetched.id == user.id


async def test_list_active_admin_ids(db):
    admin = await make_admin(db)
    root = await make_user(db, role=ROLE_SUPER_ADMIN)
    await make_admin(db, approved=False)
    await make_admin(db, suspended=True)
    await make_user(db)

    assert set(await crud.list_active_admin_ids(db)) == {admin.id, root.id}
    assert await crud.list_active_admin_ids(db, exclude_ids=[admin.id]) == [root.id]


async def test_get_label_texts_returns_only_known_ids(db):
    admin = await make_admin(db)
    roof = await make_label(db, " Roof ", admin)

    assert await crud.get_label_texts(db, [roof.id, "nope"]) == {roof.id: "Roof"}
    assert await crud.get_label_texts(db, []) == {}


async def test_draft_report_and_commit_images(db):
    admin = await make_admin(db)
    inspector = await make_user(db)
    job = await make_job(db, inspector, admin)
    image = {"label": "Roof", "file_name": "a.jpg", "mime_type": "image/jpeg", "size": 3, "uploaded_by": inspector.id}

    report = await crud.create_draft_report(db, job.id, inspector.id, [image, dict(image, file_name="b.jpg")])
    assert [img.seq for img in report.images] == [1, 2]
    assert all(img.url == "" and img.key == "" for img in report.images)
    assert await crud.report_exists_for_job(db, job.id)

    ok = await crud.commit_report_images(db, report, [("u1", "k1"), ("u2", "k2")])
    assert ok is True
    fetched = await crud.get_report(db, report.id)
    assert [(img.url, img.key) for img in fetched.images] == [("u1", "k1"), ("u2", "k2")]


async def test_commit_images_fails_when_draft_is_gone(db):
    admin = await make_admin(db)
    inspector = await make_user(db)
    job = await make_job(db, inspector, admin)
    image = {"label": "Roof", "file_name": "a.jpg", "uploaded_by": inspector.id}
    report = await crud.create_draft_report(db, job.id, inspector.id, [image])
    report_id = report.id

    await crud.delete_report_by_id(db, report_id)

    assert await crud.commit_report_images(db, report, [("u", "k")]) is False
    assert await crud.get_report(db, report_id) is None


async def test_list_reports_filters_and_paginates(db):
    admin = await make_admin(db)
    inspector = await make_user(db)
    other = await make_user(db)
    image = {"label": "Roof", "file_name": "a.jpg", "uploaded_by": inspector.id}
    for i in range(3):
        job = await make_job(db, inspector, admin, order_id=f"ORD-{i}")
        await crud.create_draft_report(db, job.id, inspector.id, [image])
    job = await make_job(db, other, admin, order_id="ORD-X")
    theirs = await crud.create_draft_report(db, job.id, other.id, [dict(image, uploaded_by=other.id)])
    await crud.update_report(db, theirs, status="completed")

    items, total = await crud.list_reports(db, page=1, limit=2)
    assert total == 4 and len(items) == 2

    items, total = await crud.list_reports(db, status="completed")
    assert total == 1 and items[0].id == theirs.id

    items, total = await crud.list_reports(db, inspector_id=inspector.id)
    assert total == 3


async def test_device_sessions_are_per_user(db):
    a = await make_user(db)
    b = await make_user(db)
    pt = await add_device(db, a, "tok-1", device_id="tablet")
    await crud.login_session(db, pt, b.id)

    assert await crud.active_tokens_for_users(db, [a.id]) == ["tok-1"]

    assert await crud.logout_session(db, pt, a.id) is True
    assert await crud.logout_session(db, pt, a.id) is False
    assert await crud.active_tokens_for_users(db, [a.id]) == []
    assert await crud.active_tokens_for_users(db, [b.id]) == ["tok-1"]
    assert await crud.notifiable_tokens_for_user(db, a.id) == ["tok-1"]


async def test_upsert_push_token_replaces_token(db):
    first = await crud.upsert_push_token(db, "phone-1", "old", "ios", "iPhone")
    second = await crud.upsert_push_token(db, "phone-1", "new", "ios")

    assert second.id == first.id
    assert second.token == "new"
    assert second.device_name == "iPhone"


async def test_delete_push_tokens_removes_sessions(db):
    user = await make_user(db)
    await add_device(db, user, "dead")
    await add_device(db, user, "alive")

    assert await crud.delete_push_tokens(db, ["dead", "unknown"]) == 1
    assert await crud.active_tokens_for_users(db, [user.id]) == ["alive"]


async def test_expired_session_token_ids_uses_keyset_pages(db):
    now = utcnow()
    user = await make_user(db)
    ids = []
    for i in range(3):
        pt = await add_device(db, user, f"tok-{i}", logged_in_at=now - timedelta(days=10))
        ids.append(pt.id)
    await add_device(db, user, "fresh", logged_in_at=now)
    expiry = now - timedelta(days=7)

    first = await crud.expired_session_token_ids(db, expiry, None, 2)
    rest = await crud.expired_session_token_ids(db, expiry, first[-1], 2)

    assert first + rest == sorted(ids)
    assert await crud.expired_session_token_ids(db, expiry, rest[-1], 2) == []
