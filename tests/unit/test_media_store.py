import asyncio
import io
import re
import threading

import pytest

from inspector_pro.config import MediaConfig
from inspector_pro.services.media_store import (
    LocalMediaStore, S3MediaStore, build_media_store, make_key, report_prefix, sanitize_filename,
)


def test_sanitize_filename_replaces_whitespace_runs():
    assert sanitize_filename("front  door photo.jpg") == "front_door_photo.jpg"
    assert sanitize_filename("") == "file"


def test_make_key_format():
    key = make_key("roof 1.jpg")
    assert re.fullmatch(r"\d{13}_[A-Za-z0-9_-]{16}_roof_1\.jpg", key)


def test_make_key_with_report_prefix():
    key = make_key("a.jpg", report_prefix("01ABC"))
    assert key.startswith("reports/01ABC/")
    assert key.endswith("_a.jpg")


def test_make_key_is_unique():
    assert len({make_key("same.jpg") for _ in range(200)}) == 200


@pytest.fixture
def local_store(tmp_path):
    return LocalMediaStore(str(tmp_path / "media"), "http://localhost:8000/media/")


def test_local_put_read_and_delete(local_store):
    key = make_key("a.jpg", "reports/r1/")
    stored = asyncio.run(local_store.put(io.BytesIO(b"data"), key, "image/jpeg"))

    assert stored.key == key
    assert stored.url == f"http://localhost:8000/media/{key}"
    assert local_store.read(key) == b"data"

    asyncio.run(local_store.delete_many([key, "reports/r1/missing.jpg"]))
    with pytest.raises(FileNotFoundError):
        local_store.read(key)


def test_local_put_accepts_bytes(local_store):
    asyncio.run(local_store.put(b"raw", "k.bin", "application/octet-stream"))
    assert local_store.read("k.bin") == b"raw"


class ThreadRecordingStream(io.BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.read_in = None

    def read(self, *args):
        self.read_in = threading.get_ident()
        return super().read(*args)


def test_local_put_reads_stream_off_the_event_loop(local_store):
    stream = ThreadRecordingStream(b"large")
    asyncio.run(local_store.put(stream, "big.jpg", "image/jpeg"))

    assert local_store.read("big.jpg") == b"large"
    assert stream.read_in is not None
    assert stream.read_in != threading.get_ident()


def test_local_rejects_keys_outside_root(local_store):
    with pytest.raises(ValueError):
        asyncio.run(local_store.put(b"x", "../escape.txt", "text/plain"))


def test_delete_many_requires_keys(local_store):
    with pytest.raises(ValueError):
        asyncio.run(local_store.delete_many([]))


class RecordingS3Client:
    def __init__(self, errors=None):
        self.uploads = []
        self.delete_requests = []
        self.errors = errors or []

    def upload_fileobj(self, body, bucket, key, ExtraArgs=None):
        self.uploads.append((bucket, key, body.read(), ExtraArgs))

    def delete_objects(self, Bucket, Delete):
        self.delete_requests.append([o["Key"] for o in Delete["Objects"]])
        return {"Errors": self.errors} if self.errors else {}


def test_s3_put_uploads_with_content_type():
    client = RecordingS3Client()
    store = S3MediaStore("inspections", "eu-west-2", client=client)

    stored = asyncio.run(store.put(b"jpeg", "reports/r1/k.jpg", "image/jpeg"))

    assert client.uploads == [("inspections", "reports/r1/k.jpg", b"jpeg", {"ContentType": "image/jpeg"})]
    assert stored.url == "https://inspections.s3.eu-west-2.amazonaws.com/reports/r1/k.jpg"


def test_s3_delete_many_batches_by_thousand():
    client = RecordingS3Client()
    store = S3MediaStore("inspections", client=client)

    asyncio.run(store.delete_many([f"k{i}" for i in range(2500)]))

    assert [len(r) for r in client.delete_requests] == [1000, 1000, 500]


def test_s3_delete_many_raises_on_errors():
    client = RecordingS3Client(errors=[{"Key": "k1", "Code": "AccessDenied"}])
    store = S3MediaStore("inspections", client=client)

    with pytest.raises(RuntimeError):
        asyncio.run(store.delete_many(["k1"]))


def test_s3_requires_bucket():
    with pytest.raises(ValueError):
        S3MediaStore("", client=RecordingS3Client())


def test_build_media_store_defaults_to_local(tmp_path):
    store = build_media_store(MediaConfig(base_dir=str(tmp_path)))
    assert isinstance(store, LocalMediaStore)
