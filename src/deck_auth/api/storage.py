"""Upload API.

Learn: Multipart upload with the file in `file`, the owner in `uid`
and an optional `folder` (default userPhotos). Only the owner or a
moderator may upload into a uid's namespace. At most
max_upload_bytes + 1 bytes are read, so an oversized file is detected
without buffering all of it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from deck_auth.api.responses import to_response
from deck_auth.auth.dependencies import CurrentIdentity, ensure_can_act_on, get_current_user
from deck_auth.services import get_storage_service
from deck_auth.services.storage_service import StorageService

router = APIRouter()


@router.post("/upload")
async def upload(
    file: UploadFile = File(...),
    uid: str = Form(..., min_length=1),
    folder: Optional[str] = Form(None),
    identity: CurrentIdentity = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    ensure_can_act_on(identity, uid)
    data = await file.read(storage.max_upload_bytes + 1)
    result = await storage.upload(data, uid, file.content_type, folder)
    return to_response(result)
