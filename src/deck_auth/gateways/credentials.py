"""Credential verifier — Firebase ID token → subject id.

Learn: Signature, expiry, audience and revocation checks all happen
inside the Admin SDK. We never look inside the token ourselves; we
only decide how a rejection is reported. Every provider rejection
collapses into one uniform "Invalid token" failure so callers can't
probe *why* a token was refused. The reason goes to the log instead.
"""

import asyncio

import structlog
from firebase_admin import exceptions as firebase_exceptions

from deck_auth.errors import ErrorKind, Result
from deck_auth.schemas.account import VerifiedClaim

logger = structlog.get_logger()

INVALID_TOKEN = "Invalid token"


class CredentialVerifier:
    def __init__(self, auth_client, check_revoked: bool = True):
        self.auth = auth_client
        self.check_revoked = check_revoked

    async def verify(self, token: str | None) -> Result[VerifiedClaim]:
        if not token or not token.strip():
            return Result.fail(ErrorKind.VALIDATION, "Token is required")

        try:
            decoded = await asyncio.to_thread(
                self.auth.verify_id_token, token, check_revoked=self.check_revoked
            )
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.info(
                "deck.token_rejected",
                reason=type(e).__name__,
                detail=str(e),
            )
            return Result.fail(ErrorKind.INVALID_CREDENTIAL, INVALID_TOKEN)

        subject_id = decoded.get("uid") or decoded.get("sub")
        if not subject_id:
            logger.warning("deck.token_without_subject")
            return Result.fail(ErrorKind.INVALID_CREDENTIAL, INVALID_TOKEN)

        return Result.ok(VerifiedClaim(subject_id=subject_id, claims=dict(decoded)))
