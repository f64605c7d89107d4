"""
Tests for FileUploadService and the object stores.

Usage:
    pytest tests/uploads/test_upload_service.py -v
"""

import asyncio
import json
from typing import List
from unittest.mock import AsyncMock

import boto3
import pytest
from botocore.stub import Stubber

from outreach_core.exceptions import StoreError, UploadError, UploadValidationError
from outreach_core.store import InMemoryRecordStore
from outreach_core.uploads import (
    FileUploadService,
    InMemoryObjectStore,
    S3ObjectStore,
    UploadFile,
    sanitize_filename,
)
from outreach_core.workflows import WorkflowName, WorkflowOutcome


FIXED_TIME = 1700000000.5


def pdf(name: str = "Q3 deck.pdf", size: int = 64) -> UploadFile:
    return UploadFile(filename=name, content_type="application/pdf", data=b"%" * size)


class FailingInsertStore(InMemoryRecordStore):
    async def insert(self, collection, record):
        raise StoreError("insert rejected")


class TimingOutInsertStore(InMemoryRecordStore):
    """Store whose first insert times out."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    async def insert(self, collection, record):
        self.attempts += 1
        if self.attempts == 1:
            raise asyncio.TimeoutError()
        return await super().insert(collection, record)


class FailingObjectStore(InMemoryObjectStore):
    def __init__(self, fail_names: List[str]):
        super().__init__()
        self.fail_names = fail_names

    async def upload(self, path, data, content_type):
        if any(path.endswith(name) for name in self.fail_names):
            raise StoreError("bucket unavailable")
        await super().upload(path, data, content_type)


@pytest.fixture
def objects():
    return InMemoryObjectStore(base_url="https://cdn.example.com/uploads")


@pytest.fixture
def dispatcher():
    mock = AsyncMock()
    mock.trigger.return_value = WorkflowOutcome(success=True, task_id="wh-1")
    return mock


@pytest.fixture
def uploads(objects, memory_store, dispatcher):
    return FileUploadService(objects, memory_store, dispatcher=dispatcher, clock=lambda: FIXED_TIME)


# ============================================================================
# Validation
# ============================================================================

class TestValidation:

    @pytest.mark.parametrize("name, expected", [
        ("Q3 deck.pdf", "Q3_deck.pdf"),
        ("résumé (final).docx", "r_sum___final_.docx"),
        ("../../etc/passwd", ".._.._etc_passwd"),
        ("plain-name.txt", "plain-name.txt"),
    ])
    def test_sanitize_filename(self, name, expected):
        assert sanitize_filename(name) == expected

    def test_path_layout(self, uploads):
        assert uploads.build_path(pdf(), "user-1") == "user-1/1700000000500-Q3_deck.pdf"

    def test_unsupported_type(self, uploads):
        with pytest.raises(UploadValidationError) as exc_info:
            uploads.validate_file(UploadFile("run.exe", "application/x-msdownload", b"MZ"))
        assert "not supported" in exc_info.value.message

    def test_size_limit(self, uploads):
        uploads.validate_file(pdf(size=10 * 1024 * 1024))
        with pytest.raises(UploadValidationError) as exc_info:
            uploads.validate_file(pdf(size=10 * 1024 * 1024 + 1))
        assert "exceeds limit of 10MB" in exc_info.value.message


# ============================================================================
# Single upload
# ============================================================================

class TestUploadFile:

    @pytest.mark.asyncio
    async def test_stores_object_and_record(self, uploads, objects, memory_store, dispatcher):
        result = await uploads.upload_file(pdf(), "user-1")
        await uploads.drain()

        path = "user-1/1700000000500-Q3_deck.pdf"
        assert result.path == path
        assert result.url == f"https://cdn.example.com/uploads/{path}"
        assert result.size == 64
        assert result.type == "application/pdf"
        assert objects.objects[path] == (b"%" * 64, "application/pdf")

        records = memory_store.records("file_uploads")
        assert len(records) == 1
        assert records[0]["id"] == result.upload_id
        assert records[0]["file_path"] == path
        assert records[0]["user_id"] == "user-1"

        dispatcher.trigger.assert_awaited_once_with(
            WorkflowName.DOCUMENT_ANALYSIS,
            {"fileUrl": result.url, "fileType": "application/pdf", "status": "pending_analysis"},
        )

    @pytest.mark.asyncio
    async def test_rejected_file_is_not_stored(self, uploads, objects, dispatcher):
        with pytest.raises(UploadValidationError):
            await uploads.upload_file(UploadFile("x.gif", "image/gif", b"GIF89a"), "user-1")
        assert objects.objects == {}
        dispatcher.trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_object_store_failure(self, memory_store):
        service = FileUploadService(FailingObjectStore(["deck.pdf"]), memory_store)

        with pytest.raises(UploadError) as exc_info:
            await service.upload_file(pdf("deck.pdf"), "user-1")

        assert exc_info.value.message == "Upload failed: bucket unavailable"
        assert memory_store.records("file_uploads") == []

    @pytest.mark.asyncio
    async def test_insert_failure_removes_object(self, objects, dispatcher):
        service = FileUploadService(objects, FailingInsertStore(), dispatcher=dispatcher)

        with pytest.raises(UploadError) as exc_info:
            await service.upload_file(pdf(), "user-1")

        assert exc_info.value.message == "Database insert failed: insert rejected"
        assert objects.objects == {}
        dispatcher.trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_analysis_failure_does_not_fail_upload(self, uploads, dispatcher):
        dispatcher.trigger.side_effect = RuntimeError("n8n down")

        result = await uploads.upload_file(pdf(), "user-1")
        await uploads.drain()

        assert result.filename == "Q3 deck.pdf"

    @pytest.mark.asyncio
    async def test_without_dispatcher(self, objects, memory_store):
        service = FileUploadService(objects, memory_store)
        result = await service.upload_file(pdf(), "user-1")
        assert result.upload_id


# ============================================================================
# Batch upload
# ============================================================================

class TestUploadMultiple:

    @pytest.mark.asyncio
    async def test_too_many_files(self, uploads, objects):
        with pytest.raises(UploadValidationError) as exc_info:
            await uploads.upload_multiple([pdf(f"{i}.pdf") for i in range(6)], "user-1")
        assert exc_info.value.message == "Maximum 5 files allowed per upload"
        assert objects.objects == {}

    @pytest.mark.asyncio
    async def test_partial_failure_returns_successes(self, uploads):
        files = [pdf("a.pdf"), UploadFile("b.gif", "image/gif", b"x"), pdf("c.pdf")]

        results = await uploads.upload_multiple(files, "user-1")
        await uploads.drain()

        assert [r.filename for r in results] == ["a.pdf", "c.pdf"]

    @pytest.mark.asyncio
    async def test_insert_timeout_drops_only_that_file(self, objects, dispatcher):
        records = TimingOutInsertStore()
        service = FileUploadService(objects, records, dispatcher=dispatcher, clock=lambda: FIXED_TIME)

        results = await service.upload_multiple([pdf("a.pdf"), pdf("b.pdf")], "user-1")
        await service.drain()

        assert [r.filename for r in results] == ["b.pdf"]
        assert list(objects.objects) == ["user-1/1700000000500-b.pdf"]
        assert [r["filename"] for r in records.records("file_uploads")] == ["b.pdf"]

    @pytest.mark.asyncio
    async def test_all_failed(self, uploads):
        files = [UploadFile("a.gif", "image/gif", b"x"), UploadFile("b.exe", "application/octet-stream", b"x")]

        with pytest.raises(UploadError) as exc_info:
            await uploads.upload_multiple(files, "user-1")

        message = exc_info.value.message
        assert message.startswith("All uploads failed: ")
        errors = json.loads(message[len("All uploads failed: "):])
        assert [e["file"] for e in errors] == ["a.gif", "b.exe"]


# ============================================================================
# Deletion and URLs
# ============================================================================

class TestDeleteFile:

    @pytest.mark.asyncio
    async def test_removes_object_and_record(self, uploads, objects, memory_store):
        result = await uploads.upload_file(pdf(), "user-1")
        await uploads.drain()

        await uploads.delete_file(result.path)

        assert objects.objects == {}
        assert memory_store.records("file_uploads") == []

    def test_file_url(self, uploads):
        assert uploads.get_file_url("u/1-a b.pdf") == "https://cdn.example.com/uploads/u/1-a%20b.pdf"


# ============================================================================
# S3 object store
# ============================================================================

@pytest.fixture
def s3_store():
    store = S3ObjectStore(bucket_name="test-uploads", region="us-west-2")
    store._client = boto3.client(
        "s3",
        region_name="us-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    return store


class TestS3ObjectStore:

    def test_public_url_from_bucket_and_region(self, s3_store):
        assert s3_store.public_url("u/1-a.pdf") == "https://test-uploads.s3.us-west-2.amazonaws.com/u/1-a.pdf"

    def test_public_url_with_endpoint(self):
        store = S3ObjectStore(bucket_name="b", endpoint_url="http://localhost:4566/")
        assert store.public_url("k") == "http://localhost:4566/b/k"

    @pytest.mark.asyncio
    async def test_put_object(self, s3_store):
        with Stubber(s3_store._client) as stub:
            stub.add_response("put_object", {})
            await s3_store.upload("u/1-a.pdf", b"data", "application/pdf")
            stub.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_put_object_error(self, s3_store):
        with Stubber(s3_store._client) as stub:
            stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
            with pytest.raises(StoreError):
                await s3_store.upload("u/1-a.pdf", b"data", "application/pdf")

    @pytest.mark.asyncio
    async def test_remove_reports_partial_errors(self, s3_store):
        with Stubber(s3_store._client) as stub:
            stub.add_response(
                "delete_objects",
                {"Errors": [{"Key": "k", "Code": "AccessDenied", "Message": "Access Denied"}]},
            )
            with pytest.raises(StoreError) as exc_info:
                await s3_store.remove(["k"])
        assert "Access Denied" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_remove_nothing(self, s3_store):
        with Stubber(s3_store._client):
            await s3_store.remove([])
