"""Identity provider gateway — typed operations on Firebase Auth users.

Learn: Gateways are thin. They translate between the SDK's UserRecord
and our SubjectIdentity model and move blocking SDK calls off the event
loop with asyncio.to_thread. They do NOT catch provider errors; those
propagate to the service layer, which decides what they mean.
"""

import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from firebase_admin import auth

from deck_auth.schemas.account import IdentityPage, SubjectIdentity

MAX_PAGE_SIZE = 1000  # Firebase listUsers hard limit
CLEARABLE_FIELDS = ("display_name", "photo_url")


def _from_millis(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def to_identity(record) -> SubjectIdentity:
    """Map a firebase_admin UserRecord onto SubjectIdentity."""
    metadata = getattr(record, "user_metadata", None)
    return SubjectIdentity(
        uid=record.uid,
        email=record.email,
        display_name=record.display_name,
        photo_url=record.photo_url,
        disabled=bool(record.disabled),
        email_verified=bool(getattr(record, "email_verified", False)),
        created_at=_from_millis(getattr(metadata, "creation_timestamp", None)),
        last_sign_in_at=_from_millis(getattr(metadata, "last_sign_in_timestamp", None)),
    )


class IdentityGateway:
    """Firebase Authentication users."""

    def __init__(self, auth_client):
        self.auth = auth_client

    async def get_user(self, uid: str) -> SubjectIdentity:
        record = await asyncio.to_thread(self.auth.get_user, uid)
        return to_identity(record)

    async def get_user_by_email(self, email: str) -> SubjectIdentity:
        record = await asyncio.to_thread(self.auth.get_user_by_email, email)
        return to_identity(record)

    async def create_user(
        self, email: str, password: str, display_name: str
    ) -> SubjectIdentity:
        record = await asyncio.to_thread(
            self.auth.create_user,
            email=email,
            password=password,
            display_name=display_name,
        )
        return to_identity(record)

    async def update_user(self, uid: str, **changes) -> SubjectIdentity:
        """An empty display_name or photo_url clears the attribute."""
        for field in CLEARABLE_FIELDS:
            if changes.get(field) == "":
                changes[field] = auth.DELETE_ATTRIBUTE
        record = await asyncio.to_thread(self.auth.update_user, uid, **changes)
        return to_identity(record)

    async def set_disabled(self, uid: str, disabled: bool) -> SubjectIdentity:
        return await self.update_user(uid, disabled=disabled)

    async def list_users(
        self, page_token: Optional[str] = None, max_results: int = MAX_PAGE_SIZE
    ) -> IdentityPage:
        page = await asyncio.to_thread(
            self.auth.list_users,
            page_token=page_token,
            max_results=min(max_results, MAX_PAGE_SIZE),
        )
        return IdentityPage(
            users=[to_identity(u) for u in page.users],
            next_page_token=page.next_page_token or None,
        )

    async def iter_users(self) -> AsyncIterator[SubjectIdentity]:
        """Walk every page of users."""
        page_token = None
        while True:
            page = await self.list_users(page_token=page_token)
            for user in page.users:
                yield user
            if not page.next_page_token:
                break
            page_token = page.next_page_token

    async def password_reset_link(
        self, email: str, continue_url: Optional[str] = None
    ) -> str:
        action_settings = auth.ActionCodeSettings(url=continue_url) if continue_url else None
        return await asyncio.to_thread(
            self.auth.generate_password_reset_link, email, action_settings
        )
