"""Storage service — validated uploads and capability-token revocation.

Learn: The whole file is held in memory while it is written, so the
size cap is enforced here before any bytes go to the bucket.
"""

import re
from typing import Optional

import structlog

from deck_auth.config import settings
from deck_auth.errors import ErrorKind, Result
from deck_auth.gateways.storage import StorageGateway, parse_download_url

logger = structlog.get_logger()

FOLDER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class StorageService:
    def __init__(self, storage: StorageGateway, max_upload_bytes: Optional[int] = None):
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

    async def upload(
        self,
        data: bytes,
        subject_id: str,
        mime_type: Optional[str],
        folder: Optional[str] = None,
    ) -> Result[str]:
        folder = folder or settings.default_upload_folder
        if not FOLDER_PATTERN.match(folder):
            return Result.fail(ErrorKind.VALIDATION, f"Invalid folder name: {folder!r}")
        if not subject_id:
            return Result.fail(ErrorKind.VALIDATION, "uid is required")
        if not data:
            return Result.fail(ErrorKind.VALIDATION, "File is empty")
        if len(data) > self.max_upload_bytes:
            return Result.fail(
                ErrorKind.PAYLOAD_TOO_LARGE,
                f"File exceeds the {self.max_upload_bytes} byte limit",
            )
        if not self.storage.configured:
            logger.error("deck.upload_failed", subject_id=subject_id, reason="no bucket configured")
            return Result.fail(ErrorKind.UPLOAD_FAILED, "Storage bucket is not configured")

        try:
            url = await self.storage.upload(
                data, subject_id, mime_type or "application/octet-stream", folder
            )
        except Exception as e:
            logger.error(
                "deck.upload_failed",
                subject_id=subject_id,
                folder=folder,
                error=str(e),
                error_type=type(e).__name__,
            )
            return Result.fail(ErrorKind.UPLOAD_FAILED, "Cannot retrieve download URL")

        logger.info("deck.uploaded", subject_id=subject_id, folder=folder, size=len(data))
        return Result.ok(url)

    async def revoke(self, path: str) -> Result[str]:
        """Rotate the token of an object given by key or download URL."""
        object_key = path
        if path.startswith(("http://", "https://")):
            location = parse_download_url(path)
            if location is None:
                return Result.fail(ErrorKind.VALIDATION, "Not a storage download URL")
            object_key = location.object_key
        if not self.storage.configured:
            return Result.fail(ErrorKind.UPSTREAM_FAILURE, "Storage bucket is not configured")

        try:
            url = await self.storage.rotate_token(object_key)
        except Exception as e:
            logger.error("deck.revoke_failed", object_key=object_key, error=str(e))
            return Result.fail(ErrorKind.UPSTREAM_FAILURE, f"revoke failed: {e}")
        if url is None:
            return Result.fail(ErrorKind.NOT_FOUND, "File not found.")

        logger.info("deck.upload_token_rotated", object_key=object_key)
        return Result.ok(url)
