"""Account service — identity reconciliation between Auth and Firestore.

Learn: A Deck user lives in two stores that know nothing about each
other: Firebase Authentication (credentials, email, disabled flag) and
the Firestore `users` collection (role, cover photo, push token). This
service is the only place that touches both, and it is where provider
errors become Results:

- NotFound from the provider   → *_not_found
- AlreadyExists                → conflict
- ValueError from caller input → validation_error
- unreadable stored record     → upstream_failure (logged)
- anything else                → upstream_failure (logged)

Account creation is two writes with no transaction between them. If the
identity is created but the profile write keeps failing, the identity
is disabled (quarantined) and the caller gets partial_failure, so no
half-created account can sign in. `reconcile` finds and repairs these.
"""

from typing import Optional, Union

import structlog
from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as gcloud_exceptions
from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from deck_auth.config import settings
from deck_auth.errors import ErrorKind, Result
from deck_auth.gateways.credentials import CredentialVerifier
from deck_auth.gateways.identity import IdentityGateway
from deck_auth.gateways.profiles import ProfileGateway
from deck_auth.schemas.account import (
    IdentityPage,
    IdentityUpdate,
    ProfileRecord,
    ProfileUpdate,
    ReconciliationReport,
    Role,
    Session,
    SubjectIdentity,
)

logger = structlog.get_logger()

_NOT_FOUND = (firebase_exceptions.NotFoundError, gcloud_exceptions.NotFound)
_ALREADY_EXISTS = (firebase_exceptions.AlreadyExistsError, gcloud_exceptions.AlreadyExists)


class AccountService:
    """Business logic for Deck accounts. Every method returns a Result."""

    def __init__(
        self,
        verifier: CredentialVerifier,
        identities: IdentityGateway,
        profiles: ProfileGateway,
        *,
        profile_write_attempts: Optional[int] = None,
        profile_write_backoff: Optional[float] = None,
        reset_continue_url: Optional[str] = None,
    ):
        self.verifier = verifier
        self.identities = identities
        self.profiles = profiles
        self.profile_write_attempts = max(
            1, profile_write_attempts or settings.profile_write_attempts
        )
        self.profile_write_backoff = (
            settings.profile_write_backoff_seconds
            if profile_write_backoff is None
            else profile_write_backoff
        )
        self.reset_continue_url = reset_continue_url or settings.password_reset_continue_url

    def _failure(
        self,
        operation: str,
        error: Exception,
        not_found: ErrorKind = ErrorKind.NOT_FOUND,
        not_found_message: str = "User not found.",
        bad_input: bool = False,
    ) -> Result:
        """Map a provider error to a Result.

        bad_input marks operations that hand caller-supplied arguments to
        the provider; only there does a ValueError mean the request is bad.
        """
        if isinstance(error, _NOT_FOUND):
            return Result.fail(not_found, not_found_message)
        if isinstance(error, _ALREADY_EXISTS):
            return Result.fail(ErrorKind.CONFLICT, str(error) or "Already exists.")
        if isinstance(error, ValidationError):
            logger.error(
                "deck.malformed_record",
                operation=operation,
                errors=error.error_count(),
            )
            return Result.fail(
                ErrorKind.UPSTREAM_FAILURE, f"{operation} failed: stored record is malformed"
            )
        if bad_input and isinstance(error, ValueError):
            return Result.fail(ErrorKind.VALIDATION, str(error))
        logger.error(
            "deck.upstream_failure",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )
        return Result.fail(ErrorKind.UPSTREAM_FAILURE, f"{operation} failed: {error}")

    # ─── Sessions ──────────────────────────────────────────

    async def resolve_session(self, token: Optional[str]) -> Result[Session]:
        """Token → verified subject → Firebase user record."""
        claim = await self.verifier.verify(token)
        if not claim.success:
            if claim.error == ErrorKind.VALIDATION:
                return claim
            return Result.fail(ErrorKind.SESSION_INVALID, "Unable to verify token.")

        subject_id = claim.value.subject_id
        try:
            identity = await self.identities.get_user(subject_id)
        except Exception as e:
            if isinstance(e, _NOT_FOUND):
                # Verified token but no Auth record: the stores are out of sync
                logger.warning("deck.identity_missing", subject_id=subject_id)
            return self._failure(
                "get_identity", e, ErrorKind.IDENTITY_NOT_FOUND, "Unable to find user."
            )

        return Result.ok(
            Session(subject_id=subject_id, identity=identity, claims=claim.value.claims)
        )

    # ─── Account creation ──────────────────────────────────

    async def _create_or_get_profile(self, profile: ProfileRecord) -> ProfileRecord:
        existing = await self.profiles.get(profile.user_id)
        if existing:
            logger.info("deck.profile_exists", subject_id=profile.user_id)
            return existing
        try:
            return await self.profiles.create(profile)
        except gcloud_exceptions.AlreadyExists:
            # Lost a race with a concurrent registration for the same uid
            return await self.profiles.get(profile.user_id) or profile

    async def register_account(
        self, subject_id: str, email: str, name: str
    ) -> Result[ProfileRecord]:
        """Create the Profile Record for an existing Auth user.

        Idempotent on subject_id: a repeated call returns the stored
        record and never overwrites it.
        """
        profile = ProfileRecord(user_id=subject_id, email=email, name=name)
        try:
            stored = await self._create_or_get_profile(profile)
        except Exception as e:
            return self._failure("create_profile", e)
        logger.info("deck.profile_registered", subject_id=subject_id)
        return Result.ok(stored)

    async def create_account(
        self, email: str, password: str, name: str
    ) -> Result[ProfileRecord]:
        """Create the Auth user, then its profile (retried with backoff).

        If the profile never lands, the new user is disabled and the
        failure is reported as partial_failure.
        """
        try:
            identity = await self.identities.create_user(email, password, name)
        except Exception as e:
            return self._failure("create_identity", e, bad_input=True)

        profile = ProfileRecord(user_id=identity.uid, email=email, name=name)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.profile_write_attempts),
                wait=wait_exponential(multiplier=self.profile_write_backoff, max=10),
                reraise=True,
            ):
                with attempt:
                    stored = await self._create_or_get_profile(profile)
        except Exception as e:
            logger.error(
                "deck.profile_write_failed",
                subject_id=identity.uid,
                attempts=self.profile_write_attempts,
                error=str(e),
            )
            await self._quarantine(identity.uid)
            return Result.fail(
                ErrorKind.PARTIAL_FAILURE,
                f"Account {identity.uid} was created but its profile could not be "
                "saved. The account is disabled pending reconciliation.",
            )

        logger.info("deck.account_created", subject_id=identity.uid)
        return Result.ok(stored)

    async def _quarantine(self, uid: str) -> None:
        try:
            await self.identities.set_disabled(uid, True)
            logger.warning("deck.account_quarantined", subject_id=uid)
        except Exception as e:
            logger.error("deck.quarantine_failed", subject_id=uid, error=str(e))

    # ─── Lookups ───────────────────────────────────────────

    async def get_profile(self, subject_id: str) -> Result[ProfileRecord]:
        try:
            profile = await self.profiles.get(subject_id)
        except Exception as e:
            return self._failure("get_profile", e, ErrorKind.PROFILE_NOT_FOUND)
        if profile is None:
            return Result.fail(ErrorKind.PROFILE_NOT_FOUND, "User not found.")
        return Result.ok(profile)

    async def get_role(self, subject_id: str) -> Result[Union[Role, str]]:
        profile = await self.get_profile(subject_id)
        if not profile.success:
            return profile
        return Result.ok(profile.value.role)

    async def get_identity(self, subject_id: str) -> Result[SubjectIdentity]:
        try:
            return Result.ok(await self.identities.get_user(subject_id))
        except Exception as e:
            return self._failure("get_identity", e, ErrorKind.USER_NOT_FOUND)

    async def list_profiles(self) -> Result[list[ProfileRecord]]:
        """All profiles ordered by uid. An empty collection is a not_found."""
        try:
            profiles = await self.profiles.list_all()
        except Exception as e:
            return self._failure("list_profiles", e)
        if not profiles:
            return Result.fail(ErrorKind.NOT_FOUND, "No users found.")
        return Result.ok(profiles)

    async def list_identities(
        self, page_token: Optional[str] = None, max_results: int = 1000
    ) -> Result[IdentityPage]:
        try:
            return Result.ok(await self.identities.list_users(page_token, max_results))
        except Exception as e:
            return self._failure("list_identities", e, bad_input=True)

    # ─── Updates ───────────────────────────────────────────

    async def update_identity(
        self, subject_id: str, update: IdentityUpdate
    ) -> Result[SubjectIdentity]:
        """Partial update of the Auth user. The profile is not touched."""
        changes = update.changes()
        if not changes:
            return Result.fail(ErrorKind.VALIDATION, "No fields to update.")
        try:
            identity = await self.identities.update_user(subject_id, **changes)
        except Exception as e:
            return self._failure("update_identity", e, ErrorKind.USER_NOT_FOUND, bad_input=True)
        logger.info("deck.identity_updated", subject_id=subject_id, fields=sorted(changes))
        return Result.ok(identity)

    async def update_profile(
        self, subject_id: str, update: ProfileUpdate
    ) -> Result[ProfileRecord]:
        """Partial merge into the Profile Record. Auth is not touched."""
        changes = update.changes()
        if not changes:
            return Result.fail(ErrorKind.VALIDATION, "No fields to update.")
        try:
            profile = await self.profiles.update(subject_id, changes)
        except Exception as e:
            return self._failure("update_profile", e, ErrorKind.PROFILE_NOT_FOUND)
        if profile is None:
            return Result.fail(ErrorKind.PROFILE_NOT_FOUND, "User not found.")
        logger.info("deck.profile_updated", subject_id=subject_id, fields=sorted(changes))
        return Result.ok(profile)

    async def set_role(self, subject_id: str, role: Role) -> Result[ProfileRecord]:
        return await self.update_profile(subject_id, ProfileUpdate(role=role))

    async def set_enabled(self, subject_id: str, enabled: bool) -> Result[SubjectIdentity]:
        """Toggle the Auth disabled flag. Profiles stay listed either way."""
        try:
            identity = await self.identities.set_disabled(subject_id, not enabled)
        except Exception as e:
            return self._failure("set_enabled", e, ErrorKind.USER_NOT_FOUND)
        logger.info("deck.identity_enabled" if enabled else "deck.identity_disabled",
                    subject_id=subject_id)
        return Result.ok(identity)

    async def send_password_reset(self, email: str) -> Result[str]:
        try:
            link = await self.identities.password_reset_link(email, self.reset_continue_url)
        except Exception as e:
            return self._failure("password_reset", e, ErrorKind.USER_NOT_FOUND, bad_input=True)
        return Result.ok(link)

    async def delete_profile(self, subject_id: str) -> Result[str]:
        try:
            deleted = await self.profiles.delete(subject_id)
        except Exception as e:
            return self._failure("delete_profile", e, ErrorKind.PROFILE_NOT_FOUND)
        if not deleted:
            return Result.fail(ErrorKind.PROFILE_NOT_FOUND, "User not found.")
        logger.info("deck.profile_deleted", subject_id=subject_id)
        return Result.ok("Successfully deleted user.")

    # ─── Reconciliation ────────────────────────────────────

    async def reconcile(self, fix: bool = False) -> Result[ReconciliationReport]:
        """Compare every Auth user against every profile.

        With fix=True, missing profiles are created from the Auth record
        and profiles without an Auth user are deleted.
        """
        try:
            identities = {u.uid: u async for u in self.identities.iter_users()}
            profiles = {p.user_id for p in await self.profiles.list_all()}
        except Exception as e:
            return self._failure("reconcile", e)

        report = ReconciliationReport(
            identities=len(identities),
            profiles=len(profiles),
            missing_profiles=sorted(set(identities) - profiles),
            orphaned_profiles=sorted(profiles - set(identities)),
        )

        if fix:
            for uid in report.missing_profiles:
                identity = identities[uid]
                created = await self.register_account(
                    uid, identity.email or "", identity.display_name or ""
                )
                if created.success:
                    report.created_profiles.append(uid)
            for uid in report.orphaned_profiles:
                deleted = await self.delete_profile(uid)
                if deleted.success:
                    report.deleted_profiles.append(uid)

        logger.info(
            "deck.reconciled",
            fix=fix,
            missing=len(report.missing_profiles),
            orphaned=len(report.orphaned_profiles),
        )
        return Result.ok(report)
