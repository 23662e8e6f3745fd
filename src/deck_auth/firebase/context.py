"""Firebase provider handles, built once per process.

Learn: The Admin SDK keeps a registry of initialized apps. Calling
initialize_app twice for the same name raises, so initialization is
construct-if-absent: look the app up first, create it only when
missing, all under a lock. The resulting FirebaseContext is created
in the FastAPI lifespan, stored on app.state and injected into every
gateway through Depends().

Handles:
- auth: firebase_admin.auth.Client (blocking, thread-safe)
- firestore: google.cloud.firestore AsyncClient (native asyncio)
- bucket: google.cloud.storage Bucket (blocking, thread-safe), or None
  when no bucket is configured; uploads then fail with upload_failed
"""

import threading
from dataclasses import dataclass
from typing import Any, Optional

import firebase_admin
import structlog
from firebase_admin import auth, credentials, firestore_async, storage

from deck_auth.config import Settings

logger = structlog.get_logger()

APP_NAME = "deck-auth"

_init_lock = threading.Lock()


@dataclass
class FirebaseContext:
    """Process-wide provider handles shared by all requests."""

    auth: Any
    firestore: Any
    bucket: Any
    app: Optional[firebase_admin.App] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseContext":
        app = _get_or_init_app(settings)
        bucket = None
        if settings.storage_bucket:
            bucket = storage.bucket(app=app)
        else:
            logger.warning("deck.storage_not_configured")
        return cls(
            auth=auth.Client(app),
            firestore=firestore_async.client(app),
            bucket=bucket,
            app=app,
        )


def _get_or_init_app(settings: Settings) -> firebase_admin.App:
    with _init_lock:
        try:
            return firebase_admin.get_app(APP_NAME)
        except ValueError:
            pass

        if settings.service_account_path:
            cred = credentials.Certificate(settings.service_account_path)
        else:
            cred = credentials.ApplicationDefault()

        options = {}
        if settings.storage_bucket:
            options["storageBucket"] = settings.storage_bucket
        if settings.project_id:
            options["projectId"] = settings.project_id

        app = firebase_admin.initialize_app(cred, options=options, name=APP_NAME)
        logger.info(
            "deck.firebase_initialized",
            project_id=settings.project_id,
            bucket=settings.storage_bucket,
            credential="service_account" if settings.service_account_path else "adc",
        )
        return app
