"""Pydantic schemas for identities, profiles and account requests.

Learn: Two records describe one user. SubjectIdentity is owned by
Firebase Authentication; ProfileRecord is owned by Firestore and keyed
by the same uid. Request bodies keep the camelCase field names the
Deck frontend already sends (userDetails, userId, photoURL) via aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    STUDENT = "student"
    MODERATOR = "moderator"


# ─── Records ──────────────────────────────────────────────


class ProfileRecord(BaseModel):
    """A stored profile. Read leniently: older documents may lack fields
    or carry roles this service does not know, which are kept as strings."""
    user_id: str
    email: str = ""
    name: str = ""
    role: Union[Role, str] = Field(Role.STUDENT, union_mode="left_to_right")
    cover_photo: str = ""
    fcm_token: str = ""


class SubjectIdentity(BaseModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    disabled: bool = False
    email_verified: bool = False
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None


class IdentityPage(BaseModel):
    users: list[SubjectIdentity]
    next_page_token: Optional[str] = None


class VerifiedClaim(BaseModel):
    """Result of a successful token verification. Never persisted."""
    subject_id: str
    claims: dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    subject_id: str
    identity: SubjectIdentity
    claims: dict[str, Any] = Field(default_factory=dict)


class ReconciliationReport(BaseModel):
    identities: int = 0
    profiles: int = 0
    missing_profiles: list[str] = Field(default_factory=list)
    orphaned_profiles: list[str] = Field(default_factory=list)
    created_profiles: list[str] = Field(default_factory=list)
    deleted_profiles: list[str] = Field(default_factory=list)


# ─── Partial updates ──────────────────────────────────────


class IdentityUpdate(BaseModel):
    """Fields of the Firebase user that may be changed. None = untouched."""
    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(None, alias="displayName", min_length=1)
    photo_url: Optional[str] = Field(None, alias="photoURL")
    disabled: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class ProfileUpdate(BaseModel):
    """Mutable Profile Record fields. None = untouched."""
    name: Optional[str] = Field(None, min_length=1)
    role: Optional[Role] = None
    cover_photo: Optional[str] = None
    fcm_token: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True, mode="json")


# ─── Requests ─────────────────────────────────────────────


class VerifyTokenRequest(BaseModel):
    # Optional so a missing token reaches the service as a 400, not a 422
    token: Optional[str] = None


class CreateAccountRequest(BaseModel):
    uid: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    name: str = Field(..., min_length=1)


class SignupRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str = Field(..., min_length=1)
    user_details: IdentityUpdate = Field(..., alias="userDetails")


class UpdateProfileRecordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str = Field(..., min_length=1)
    profile_details: ProfileUpdate = Field(..., alias="profileDetails")


class ChangePasswordRequest(BaseModel):
    email: str = Field(..., min_length=3)


class UserIdRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)


class UidRequest(BaseModel):
    uid: str = Field(..., min_length=1)


class SetRoleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    role: Role
