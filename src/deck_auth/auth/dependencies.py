"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers and routers to
extract and validate the caller's identity from the request.

Failure kinds are distinct on purpose:
- unauthenticated (401): no token, not a bearer token, or token rejected
- forbidden (403): valid session, wrong role or someone else's record
"""

from typing import Any, Optional, Union

import structlog
from fastapi import Depends, Header, Request

from deck_auth.errors import ApiError, ErrorKind
from deck_auth.schemas.account import Role
from deck_auth.services import get_account_service
from deck_auth.services.account_service import AccountService

logger = structlog.get_logger()


class CurrentIdentity:
    """The authenticated caller, with the role read from their profile.

    role is None when the caller has no Profile Record yet; such a
    caller can act on their own records but holds no role. A role this
    service does not know stays a plain string and grants nothing.
    """

    def __init__(
        self,
        subject_id: str,
        email: Optional[str] = None,
        role: Optional[Union[Role, str]] = None,
        claims: Optional[dict[str, Any]] = None,
    ):
        self.subject_id = subject_id
        self.email = email
        self.role = role
        self.claims = claims or {}

    def has_role(self, role: Role) -> bool:
        return self.role == role

    @property
    def is_moderator(self) -> bool:
        return self.has_role(Role.MODERATOR)

    def can_act_on(self, subject_id: str) -> bool:
        """Callers may touch their own records; moderators anyone's."""
        return self.subject_id == subject_id or self.is_moderator


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise ApiError(ErrorKind.UNAUTHENTICATED, "Authentication required")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise ApiError(ErrorKind.UNAUTHENTICATED, "Authorization must be a Bearer token")
    return parts[1]


async def get_current_user(
    request: Request,
    token: str = Depends(bearer_token),
    svc: AccountService = Depends(get_account_service),
) -> CurrentIdentity:
    """Resolve the bearer token to a CurrentIdentity (401 on failure)."""
    session = await svc.resolve_session(token)
    if not session.success:
        raise ApiError(ErrorKind.UNAUTHENTICATED, str(session.message))

    subject_id = session.value.subject_id
    role = await svc.get_role(subject_id)
    if role.success:
        current_role = role.value
    elif role.error == ErrorKind.PROFILE_NOT_FOUND:
        logger.info("deck.session_without_profile", subject_id=subject_id)
        current_role = None
    else:
        raise ApiError.from_result(role)

    identity = CurrentIdentity(
        subject_id=subject_id,
        email=session.value.identity.email,
        role=current_role,
        claims=session.value.claims,
    )
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(subject_id=subject_id)
    return identity


def require_role(role: Role):
    """Dependency factory: the caller must hold `role` (403 otherwise)."""

    async def _require(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if not identity.has_role(role):
            logger.warning(
                "deck.forbidden",
                subject_id=identity.subject_id,
                required=role.value,
                actual=getattr(identity.role, "value", identity.role),
            )
            raise ApiError(ErrorKind.FORBIDDEN, f"{role.value.capitalize()} role required")
        return identity

    return _require


def ensure_can_act_on(identity: CurrentIdentity, subject_id: str) -> None:
    if not identity.can_act_on(subject_id):
        raise ApiError(ErrorKind.FORBIDDEN, "Cannot modify another user's account")
