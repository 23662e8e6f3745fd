"""Account API — token verification, registration, profile updates.

Learn: Routes for the signed-in user's own account:
- POST /verify-token → Firebase ID token → uid + Auth record
- POST /create-account → Profile Record for an existing Auth user
- POST /signup → Auth user + Profile Record (server-side signup)
- GET /me → caller's Auth record and profile
- PUT /update-profile → Auth fields (name, photo, disabled)
- PUT /update-profile-record → Firestore fields (name, cover photo, push token, role)
- POST /change-pass → password reset link

Routes handle HTTP concerns only; AccountService returns Results and
api.responses turns them into envelopes.
"""

from fastapi import APIRouter, Depends

from deck_auth.api.responses import error_response, to_raw_response, to_response
from deck_auth.auth.dependencies import (
    CurrentIdentity,
    ensure_can_act_on,
    get_current_user,
)
from deck_auth.errors import ErrorKind, Result
from deck_auth.schemas.account import (
    ChangePasswordRequest,
    CreateAccountRequest,
    SignupRequest,
    UpdateProfileRecordRequest,
    UpdateProfileRequest,
    VerifyTokenRequest,
)
from deck_auth.services import get_account_service
from deck_auth.services.account_service import AccountService

router = APIRouter()


# ─── Tokens ─────────────────────────────────────────────


@router.post("/verify-token")
async def verify_token(
    body: VerifyTokenRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Verify a Firebase ID token and return the user's Auth record."""
    session = await svc.resolve_session(body.token)
    if not session.success:
        return to_response(session)

    return to_raw_response(Result.ok({
        "verifiedToken": {
            "success": True,
            "message": {
                "uid": session.value.subject_id,
                "claims": session.value.claims,
            },
        },
        "userDetails": session.value.identity,
    }))


# ─── Registration ───────────────────────────────────────


@router.post("/create-account")
async def create_account(
    body: CreateAccountRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Create the Firestore profile for a user already in Firebase Auth."""
    return to_response(await svc.register_account(body.uid, body.email, body.name))


@router.post("/signup")
async def signup(
    body: SignupRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Create both the Auth user and the profile."""
    return to_response(
        await svc.create_account(body.email, body.password, body.name),
        status_code=201,
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    user = await svc.get_identity(identity.subject_id)
    if not user.success:
        return to_response(user)
    profile = await svc.get_profile(identity.subject_id)
    return to_response(Result.ok({
        "identity": user.value,
        "profile": profile.value if profile.success else None,
    }))


# ─── Updates ────────────────────────────────────────────


@router.put("/update-profile")
async def update_profile(
    body: UpdateProfileRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Update the Firebase Auth record (display name, photo, disabled)."""
    ensure_can_act_on(identity, body.uid)
    if body.user_details.disabled is not None and not identity.is_moderator:
        return error_response(ErrorKind.FORBIDDEN, "Moderator role required to change disabled")

    result = await svc.update_identity(body.uid, body.user_details)
    if not result.success:
        return to_response(result)
    return to_response(Result.ok("Successfully updated user!"))


@router.put("/update-profile-record")
async def update_profile_record(
    body: UpdateProfileRecordRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Update the Firestore profile (name, cover photo, push token, role)."""
    ensure_can_act_on(identity, body.uid)
    if body.profile_details.role is not None and not identity.is_moderator:
        return error_response(ErrorKind.FORBIDDEN, "Moderator role required to change role")

    return to_response(await svc.update_profile(body.uid, body.profile_details))


# ─── Passwords ──────────────────────────────────────────


@router.post("/change-pass")
async def change_password(
    body: ChangePasswordRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Generate a password reset link. Returns the bare link string."""
    return to_raw_response(await svc.send_password_reset(body.email))
