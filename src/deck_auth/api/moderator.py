"""Moderator API — user administration.

Learn: The role check is applied once, at the router level, in
api/__init__.py (dependencies=[Depends(require_role(Role.MODERATOR))]).
The dependency runs before any handler here, so a non-moderator call
returns 403 without touching Auth or Firestore.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from deck_auth.api.responses import to_raw_response, to_response
from deck_auth.errors import Result
from deck_auth.schemas.account import SetRoleRequest, UidRequest, UserIdRequest
from deck_auth.schemas.storage import RevokeUploadRequest
from deck_auth.services import get_account_service, get_storage_service
from deck_auth.services.account_service import AccountService
from deck_auth.services.storage_service import StorageService

router = APIRouter(prefix="/moderator")


# ─── Enable / disable ──────────────────────────────────


@router.post("/disable-user")
async def disable_user(
    body: UserIdRequest,
    svc: AccountService = Depends(get_account_service),
):
    result = await svc.set_enabled(body.user_id, False)
    if not result.success:
        return to_response(result)
    return to_response(Result.ok("Successfully disabled user."))


@router.post("/enable-user")
async def enable_user(
    body: UserIdRequest,
    svc: AccountService = Depends(get_account_service),
):
    result = await svc.set_enabled(body.user_id, True)
    if not result.success:
        return to_response(result)
    return to_response(Result.ok("Successfully enabled user."))


@router.post("/set-role")
async def set_role(
    body: SetRoleRequest,
    svc: AccountService = Depends(get_account_service),
):
    return to_response(await svc.set_role(body.user_id, body.role))


# ─── Listing ───────────────────────────────────────────


@router.api_route("/get-users", methods=["GET", "POST"])
async def get_users(svc: AccountService = Depends(get_account_service)):
    """All Profile Records. An empty collection is a 404."""
    return to_response(await svc.list_profiles())


@router.get("/get-users/auth")
async def get_auth_users(
    page_token: Optional[str] = Query(None),
    max_results: int = Query(1000, ge=1, le=1000),
    svc: AccountService = Depends(get_account_service),
):
    """One page of Firebase Auth users."""
    return to_response(await svc.list_identities(page_token, max_results))


# ─── Single user ───────────────────────────────────────


@router.get("/get-user/auth")
async def get_user_auth(
    uid: str = Query(..., min_length=1),
    svc: AccountService = Depends(get_account_service),
):
    """Raw Firebase Auth record (no envelope)."""
    return to_raw_response(await svc.get_identity(uid))


@router.post("/get-user/auth")
async def post_user_auth(
    body: UidRequest,
    svc: AccountService = Depends(get_account_service),
):
    return to_raw_response(await svc.get_identity(body.uid))


@router.get("/get-user/firestore")
async def get_user_profile(
    uid: str = Query(..., min_length=1),
    svc: AccountService = Depends(get_account_service),
):
    return to_response(await svc.get_profile(uid))


@router.post("/get-user/firestore")
async def post_user_profile(
    body: UidRequest,
    svc: AccountService = Depends(get_account_service),
):
    return to_response(await svc.get_profile(body.uid))


# ─── Uploads ───────────────────────────────────────────


@router.post("/revoke-upload")
async def revoke_upload(
    body: RevokeUploadRequest,
    storage: StorageService = Depends(get_storage_service),
):
    """Rotate an object's capability token; old URLs stop working."""
    return to_response(await storage.revoke(body.path))
