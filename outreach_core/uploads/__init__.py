"""
Uploads Subsystem.

File validation, object storage and metadata recording for user uploads.
"""

from .spec import UploadFile, FileUploadResult
from .object_store import IObjectStore, S3ObjectStore, InMemoryObjectStore
from .service import FileUploadService, sanitize_filename

__all__ = [
    "UploadFile",
    "FileUploadResult",
    "IObjectStore",
    "S3ObjectStore",
    "InMemoryObjectStore",
    "FileUploadService",
    "sanitize_filename",
]
