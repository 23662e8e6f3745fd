"""Pydantic schemas for uploaded objects."""

from pydantic import BaseModel, Field


class UploadedObject(BaseModel):
    """Descriptor of one stored object.

    The capability token is the only access control on the object:
    whoever holds the download URL can read it.
    """

    folder: str
    subject_id: str
    timestamp_ms: int
    mime_type: str
    capability_token: str

    @property
    def object_key(self) -> str:
        return f"{self.folder}/{self.subject_id}-{self.timestamp_ms}"


class DownloadLocation(BaseModel):
    bucket: str
    object_key: str
    token: str


class RevokeUploadRequest(BaseModel):
    path: str = Field(..., min_length=1, description="Object key or download URL")
