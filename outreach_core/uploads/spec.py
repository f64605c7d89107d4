"""
Upload Spec Models.
"""

from dataclasses import dataclass


@dataclass
class UploadFile:
    """
    A file selected for upload.

    Attributes:
        filename: Original file name as provided by the user
        content_type: MIME type
        data: File contents
    """
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class FileUploadResult:
    """
    A stored upload.

    Attributes:
        upload_id: Id of the metadata record
        url: Public URL of the stored object
        filename: Original file name
        size: Size in bytes
        type: MIME type
        path: Object path inside the bucket
    """
    upload_id: str
    url: str
    filename: str
    size: int
    type: str
    path: str
