"""
File Upload Service.

Validates and stores user files, records their metadata and kicks off
document analysis:

1. validate type and size
2. store the object at ``{user_id}/{timestamp_ms}-{sanitized_filename}``
3. insert a ``file_uploads`` record (the object is removed again if this fails)
4. trigger the ``analyze-document`` workflow without waiting for it

Batch uploads return the files that succeeded and only fail when every file
failed.
"""

import asyncio
import json
import re
import time
from typing import Callable, List, Optional, Sequence, Set

from outreach_core import constants
from outreach_core.constants import LOGGER_UPLOADS
from outreach_core.exceptions import OutreachError, StoreError, UploadError, UploadValidationError
from outreach_core.store import IRecordStore
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from outreach_core.workflows import WorkflowDispatcher, WorkflowName, WorkflowOutcome
from .object_store import IObjectStore
from .spec import FileUploadResult, UploadFile


ALLOWED_TYPE_LABELS = "PDF, DOCX, TXT, CSV, XLSX, PNG, JPG"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


class FileUploadService:
    """
    Upload pipeline over an object store and a record store.

    Attributes:
        object_store: Blob storage for file contents
        record_store: Store receiving one metadata record per upload
        dispatcher: Dispatcher used to trigger document analysis (optional)
    """

    def __init__(
        self,
        object_store: IObjectStore,
        record_store: IRecordStore,
        dispatcher: Optional[WorkflowDispatcher] = None,
        collection: str = constants.UPLOADS_COLLECTION,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.object_store = object_store
        self.record_store = record_store
        self.dispatcher = dispatcher
        self.collection = collection
        self._clock = clock or time.time
        self._analysis_tasks: Set[asyncio.Task] = set()
        self.logger = LoggerAdaptor.get_logger(LOGGER_UPLOADS)

    def validate_file(self, upload: UploadFile) -> None:
        """
        Raises:
            UploadValidationError: Unsupported type or file over the size limit
        """
        if upload.content_type not in constants.ALLOWED_UPLOAD_TYPES:
            raise UploadValidationError(
                f"File type {upload.content_type} not supported. Allowed types: {ALLOWED_TYPE_LABELS}",
                details={"filename": upload.filename},
            )
        if upload.size > constants.MAX_FILE_SIZE_BYTES:
            raise UploadValidationError(
                f"File size {upload.size} exceeds limit of 10MB",
                details={"filename": upload.filename},
            )

    def build_path(self, upload: UploadFile, user_id: str) -> str:
        timestamp_ms = int(self._clock() * 1000)
        return f"{user_id}/{timestamp_ms}-{sanitize_filename(upload.filename)}"

    async def upload_file(self, upload: UploadFile, user_id: str) -> FileUploadResult:
        """
        Upload one file.

        Raises:
            UploadValidationError: The file was rejected before upload
            UploadError: Storing the file or its metadata failed
        """
        self.validate_file(upload)
        path = self.build_path(upload, user_id)

        try:
            await self.object_store.upload(path, upload.data, upload.content_type)
        except StoreError as e:
            raise UploadError(f"Upload failed: {e.message}", details={"path": path}) from e

        public_url = self.object_store.public_url(path)

        try:
            record = await self.record_store.insert(
                self.collection,
                {
                    "user_id": user_id,
                    "filename": upload.filename,
                    "file_path": path,
                    "file_size": upload.size,
                    "file_type": upload.content_type,
                    "public_url": public_url,
                },
            )
        except Exception as e:
            await self._discard_object(path)
            reason = e.message if isinstance(e, StoreError) else f"{type(e).__name__}: {e}"
            raise UploadError(f"Database insert failed: {reason}", details={"path": path}) from e

        self.logger.info("File uploaded", path=path, size=upload.size, type=upload.content_type)
        self._trigger_analysis(public_url, upload.content_type)

        return FileUploadResult(
            upload_id=str(record.get("id", "")),
            url=public_url,
            filename=upload.filename,
            size=upload.size,
            type=upload.content_type,
            path=path,
        )

    async def upload_multiple(self, uploads: Sequence[UploadFile], user_id: str) -> List[FileUploadResult]:
        """
        Upload files one after another.

        Returns:
            The successful uploads; failed files are dropped

        Raises:
            UploadValidationError: More files than allowed per upload
            UploadError: Every file failed
        """
        if len(uploads) > constants.MAX_FILES_PER_UPLOAD:
            raise UploadValidationError(f"Maximum {constants.MAX_FILES_PER_UPLOAD} files allowed per upload")

        results: List[FileUploadResult] = []
        errors = []
        for upload in uploads:
            try:
                results.append(await self.upload_file(upload, user_id))
            except OutreachError as e:
                self.logger.warning("File upload failed", filename=upload.filename, error=e.message)
                errors.append({"file": upload.filename, "error": e.message})

        if errors and not results:
            raise UploadError(f"All uploads failed: {json.dumps(errors)}", details={"errors": errors})
        return results

    async def delete_file(self, path: str) -> None:
        """
        Remove a stored file and its metadata record.

        Raises:
            UploadError: The object store rejected the removal
        """
        try:
            await self.object_store.remove([path])
        except StoreError as e:
            raise UploadError(f"Storage delete failed: {e.message}", details={"path": path}) from e

        try:
            await self.record_store.delete(self.collection, {"file_path": path})
        except StoreError as e:
            self.logger.warning("Upload record not removed", path=path, error=e.message)

    def get_file_url(self, path: str) -> str:
        return self.object_store.public_url(path)

    async def _discard_object(self, path: str) -> None:
        try:
            await self.object_store.remove([path])
        except StoreError as e:
            self.logger.error("Failed to remove orphaned upload", path=path, error=e.message)
        except Exception as e:
            self.logger.error("Failed to remove orphaned upload", path=path, error=f"{type(e).__name__}: {e}")

    # ============================================================================
    # ANALYSIS TRIGGER
    # ============================================================================

    def _trigger_analysis(self, file_url: str, file_type: str) -> None:
        if self.dispatcher is None:
            return
        task = asyncio.get_running_loop().create_task(
            self.dispatcher.trigger(
                WorkflowName.DOCUMENT_ANALYSIS,
                {
                    "fileUrl": file_url,
                    "fileType": file_type,
                    "status": constants.ANALYSIS_STATUS_PENDING,
                },
            )
        )
        self._analysis_tasks.add(task)
        task.add_done_callback(self._on_analysis_done)

    def _on_analysis_done(self, task: asyncio.Task) -> None:
        self._analysis_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Failed to trigger analysis workflow", error=str(error))
            return
        outcome: WorkflowOutcome = task.result()
        if not outcome.success:
            self.logger.error("Failed to trigger analysis workflow", error=outcome.error)

    async def drain(self) -> None:
        """Wait for pending analysis triggers (shutdown and tests)."""
        if self._analysis_tasks:
            await asyncio.gather(*list(self._analysis_tasks), return_exceptions=True)
