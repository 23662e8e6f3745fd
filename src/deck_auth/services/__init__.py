"""Service layer and its FastAPI dependencies.

Learn: Services are assembled per request from the long-lived
FirebaseContext. Tests override get_firebase with in-memory fakes and
get the real services for free.
"""

from fastapi import Depends

from deck_auth.config import settings
from deck_auth.firebase import FirebaseContext, get_firebase
from deck_auth.gateways import (
    CredentialVerifier,
    IdentityGateway,
    ProfileGateway,
    StorageGateway,
)
from deck_auth.services.account_service import AccountService
from deck_auth.services.storage_service import StorageService


def build_account_service(firebase: FirebaseContext) -> AccountService:
    return AccountService(
        verifier=CredentialVerifier(firebase.auth, check_revoked=settings.check_revoked),
        identities=IdentityGateway(firebase.auth),
        profiles=ProfileGateway(firebase.firestore, settings.profile_collection),
    )


def build_storage_service(firebase: FirebaseContext) -> StorageService:
    return StorageService(StorageGateway(firebase.bucket, settings.storage_download_base))


def get_account_service(
    firebase: FirebaseContext = Depends(get_firebase),
) -> AccountService:
    return build_account_service(firebase)


def get_storage_service(
    firebase: FirebaseContext = Depends(get_firebase),
) -> StorageService:
    return build_storage_service(firebase)
