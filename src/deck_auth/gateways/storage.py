"""Object store gateway — uploads to the Firebase Storage bucket.

Learn: Firebase Storage download URLs carry a capability token. The
token is a random UUID stored in the object's custom metadata under
`firebaseStorageDownloadTokens`; the Firebase download endpoint serves
the object to anyone presenting a matching `token` query parameter.
No database lookup is involved, and replacing the metadata value
revokes every URL minted with the old token.

Object keys are `folder/uid-<epoch millis>`. Uploads are written with
if_generation_match=0, so an existing object is never overwritten.
"""

import asyncio
import time
import uuid
from typing import Callable, Optional
from urllib.parse import parse_qs, quote, unquote, urlparse

from deck_auth.schemas.storage import DownloadLocation, UploadedObject

TOKEN_METADATA_KEY = "firebaseStorageDownloadTokens"


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_download_url(url: str) -> Optional[DownloadLocation]:
    """Split a download URL into bucket, object key and token."""
    parsed = urlparse(url)
    parts = parsed.path.split("/")
    # /v0/b/<bucket>/o/<encoded key>
    try:
        b_index = parts.index("b")
    except ValueError:
        return None
    if len(parts) < b_index + 4 or parts[b_index + 2] != "o":
        return None
    token = parse_qs(parsed.query).get("token", [""])[0]
    return DownloadLocation(
        bucket=parts[b_index + 1],
        object_key=unquote(parts[b_index + 3]),
        token=token,
    )


class StorageGateway:
    def __init__(
        self,
        bucket,
        download_base: str = "https://firebasestorage.googleapis.com/v0/b",
        clock: Callable[[], int] = _now_ms,
    ):
        self.bucket = bucket
        self.download_base = download_base.rstrip("/")
        self.clock = clock

    @property
    def configured(self) -> bool:
        return self.bucket is not None

    def download_url(self, object_key: str, token: str) -> str:
        return (
            f"{self.download_base}/{self.bucket.name}/o/"
            f"{quote(object_key, safe='')}?alt=media&token={token}"
        )

    def describe(self, subject_id: str, mime_type: str, folder: str) -> UploadedObject:
        return UploadedObject(
            folder=folder,
            subject_id=subject_id,
            timestamp_ms=self.clock(),
            mime_type=mime_type,
            capability_token=str(uuid.uuid4()),
        )

    async def upload(
        self, data: bytes, subject_id: str, mime_type: str, folder: str
    ) -> str:
        """Write `data` and return its download URL.

        The URL is composed only after upload_from_string returns, i.e.
        after the object is finalized. Errors propagate.
        """
        obj = self.describe(subject_id, mime_type, folder)
        blob = self.bucket.blob(obj.object_key)
        blob.metadata = {TOKEN_METADATA_KEY: obj.capability_token}
        await asyncio.to_thread(
            blob.upload_from_string,
            data,
            content_type=mime_type,
            if_generation_match=0,
        )
        return self.download_url(obj.object_key, obj.capability_token)

    async def rotate_token(self, object_key: str) -> Optional[str]:
        """Replace the object's capability token. None if no such object."""
        blob = await asyncio.to_thread(self.bucket.get_blob, object_key)
        if blob is None:
            return None
        token = str(uuid.uuid4())
        metadata = dict(blob.metadata or {})
        metadata[TOKEN_METADATA_KEY] = token
        blob.metadata = metadata
        await asyncio.to_thread(blob.patch)
        return self.download_url(object_key, token)
