"""Profile store gateway — Profile Records in Firestore.

Learn: The Firestore document id IS the subject id. create() (not set()
or add()) is used for new profiles, so a second write for the same uid
fails with AlreadyExists instead of silently producing a duplicate or
overwriting the first record.

Older deployments stored profiles under auto-generated ids, with the
uid only in the `user_id` field. Lookups therefore fall back to a
field query when the canonical document is missing.
"""

from typing import Optional

import structlog
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from deck_auth.schemas.account import ProfileRecord

logger = structlog.get_logger()


def _to_profile(snapshot) -> ProfileRecord:
    data = {k: v for k, v in (snapshot.to_dict() or {}).items() if v is not None}
    data.setdefault("user_id", snapshot.id)
    return ProfileRecord.model_validate(data)


class ProfileGateway:
    """Firestore-backed Profile Records."""

    def __init__(self, db, collection: str = "users"):
        self.db = db
        self.collection = collection

    def _col(self):
        return self.db.collection(self.collection)

    async def _snapshot(self, uid: str):
        """Canonical document first, legacy user_id query second."""
        snapshot = await self._col().document(uid).get()
        if snapshot.exists:
            return snapshot

        query = self._col().where(filter=FieldFilter("user_id", "==", uid)).limit(1)
        async for doc in query.stream():
            return doc
        return None

    async def get(self, uid: str) -> Optional[ProfileRecord]:
        snapshot = await self._snapshot(uid)
        return _to_profile(snapshot) if snapshot else None

    async def create(self, profile: ProfileRecord) -> ProfileRecord:
        """Raises google.api_core.exceptions.AlreadyExists on duplicates."""
        await self._col().document(profile.user_id).create(profile.model_dump(mode="json"))
        return profile

    async def update(self, uid: str, changes: dict) -> Optional[ProfileRecord]:
        """Merge `changes` into the profile. Returns None if there is none."""
        snapshot = await self._snapshot(uid)
        if snapshot is None:
            return None
        if changes:
            await snapshot.reference.update(changes)
        merged = {
            k: v for k, v in {**(snapshot.to_dict() or {}), **changes}.items() if v is not None
        }
        merged.setdefault("user_id", uid)
        return ProfileRecord.model_validate(merged)

    async def delete(self, uid: str) -> bool:
        snapshot = await self._snapshot(uid)
        if snapshot is None:
            return False
        await snapshot.reference.delete()
        return True

    async def _readable(self, query) -> list[ProfileRecord]:
        """Profiles from `query`; unreadable documents are logged and skipped."""
        profiles = []
        async for doc in query.stream():
            try:
                profiles.append(_to_profile(doc))
            except ValidationError as e:
                logger.warning(
                    "deck.profile_unreadable",
                    document_id=doc.id,
                    errors=e.error_count(),
                )
        return profiles

    async def list_all(self) -> list[ProfileRecord]:
        profiles = await self._readable(self._col())
        return sorted(profiles, key=lambda p: p.user_id)

    async def find_by(self, field: str, value) -> list[ProfileRecord]:
        return await self._readable(self._col().where(filter=FieldFilter(field, "==", value)))
