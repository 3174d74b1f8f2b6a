"""Integration tests for the blob store backends."""

import json
import uuid

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from paperflow.config import Settings
from paperflow.kernel.errors import NotFoundError, StorageError
from paperflow.kernel.storage.blob_store import (
    CONTENT_TYPE,
    LocalBlobStore,
    S3BlobStore,
    build_blob_path,
    create_blob_store,
)


def test_build_blob_path():
    owner, file_id = uuid.uuid4(), uuid.uuid4()
    assert build_blob_path(owner, file_id, "paper.pdf") == f"{owner}/{file_id}/paper.pdf.enc"
    assert build_blob_path(owner, file_id, "paper.pdf", version=3) == f"{owner}/{file_id}_v3/paper.pdf.enc"
    assert build_blob_path(owner, file_id, "../x/y.pdf").endswith("/.._x_y.pdf.enc")


class TestLocalBlobStore:
    @pytest.fixture
    def store(self, tmp_path) -> LocalBlobStore:
        return LocalBlobStore(str(tmp_path / "blobs"))

    async def test_put_get_delete(self, store, tmp_path):
        path = "owner/file/paper.pdf.enc"
        await store.put(path, b"ciphertext", metadata={"encrypted": "true"})
        assert await store.get(path) == b"ciphertext"

        sidecar = json.loads((tmp_path / "blobs" / (path + ".meta.json")).read_text())
        assert sidecar == {"contentType": CONTENT_TYPE, "metadata": {"encrypted": "true"}}

        await store.delete(path)
        with pytest.raises(NotFoundError):
            await store.get(path)

    async def test_delete_missing_is_silent(self, store):
        await store.delete("nobody/nothing.enc")

    async def test_path_traversal_refused(self, store):
        with pytest.raises(StorageError):
            await store.put("../escape.enc", b"data")


class FakeBody:
    def __init__(self, data: bytes):
        self._data = data

    def read(self) -> bytes:
        return self._data


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, fail_with=None):
        self.objects = {}
        self.fail_with = fail_with

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def put_object(self, Bucket, Key, Body, ContentType, Metadata):
        self._maybe_fail()
        self.objects[(Bucket, Key)] = (Body, ContentType, Metadata)

    def get_object(self, Bucket, Key):
        self._maybe_fail()
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": FakeBody(self.objects[(Bucket, Key)][0])}

    def delete_object(self, Bucket, Key):
        self._maybe_fail()
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "DeleteObject")
        del self.objects[(Bucket, Key)]


class TestS3BlobStore:
    async def test_put_sets_content_type_and_metadata(self):
        client = FakeS3Client()
        store = S3BlobStore("exam-files", client=client)
        await store.put("a/b/c.enc", b"ciphertext", metadata={"version": "2"})

        body, content_type, metadata = client.objects[("exam-files", "a/b/c.enc")]
        assert body == b"ciphertext"
        assert content_type == "application/octet-stream"
        assert metadata == {"version": "2"}
        assert await store.get("a/b/c.enc") == b"ciphertext"

    async def test_missing_object(self):
        store = S3BlobStore("exam-files", client=FakeS3Client())
        with pytest.raises(NotFoundError):
            await store.get("nope.enc")

    async def test_delete_ignores_missing_object(self):
        store = S3BlobStore("exam-files", client=FakeS3Client())
        await store.delete("nope.enc")

    async def test_access_denied_is_storage_error(self):
        denied = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        store = S3BlobStore("exam-files", client=FakeS3Client(fail_with=denied))
        with pytest.raises(StorageError):
            await store.put("a.enc", b"x")
        with pytest.raises(StorageError):
            await store.delete("a.enc")

    async def test_connection_failure_is_storage_error(self):
        offline = EndpointConnectionError(endpoint_url="http://minio:9000")
        store = S3BlobStore("exam-files", client=FakeS3Client(fail_with=offline))
        with pytest.raises(StorageError):
            await store.get("a.enc")


def test_create_blob_store(tmp_path):
    local = create_blob_store(Settings(storage_backend="local", local_storage_path=str(tmp_path)))
    assert isinstance(local, LocalBlobStore)

    s3 = create_blob_store(
        Settings(
            storage_backend="S3",
            s3_endpoint="http://localhost:9000",
            s3_access_key="minio",
            s3_secret_key="minio123",
        )
    )
    assert isinstance(s3, S3BlobStore)
    assert s3.bucket == "paperflow"

    with pytest.raises(ValueError):
        create_blob_store(Settings(storage_backend="ftp"))
