"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with DECK_ prefix.
The only file-based input is the Firebase service account JSON, which
is referenced by path (DECK_SERVICE_ACCOUNT_PATH) and read by the
Firebase Admin SDK itself.

Learn: when no service account path is set, the SDK falls back to
Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS or the
metadata server when running on GCP).
"""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via DECK_* env vars."""

    # Firebase
    service_account_path: Optional[str] = None
    project_id: Optional[str] = None
    storage_bucket: str = ""
    storage_download_base: str = "https://firebasestorage.googleapis.com/v0/b"
    profile_collection: str = "users"
    check_revoked: bool = True  # also rejects tokens of disabled users

    # Redis (rate limiting only)
    redis_url: str = "redis://localhost:6379/0"

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    api_prefix: str = "/v1/auth"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Rate limiting
    rate_limit_rpm: int = 100  # requests per minute per IP
    rate_limit_auth_rpm: int = 10  # stricter limit for token/signup endpoints

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024
    default_upload_folder: str = "userPhotos"

    # Account creation
    profile_write_attempts: int = 3
    profile_write_backoff_seconds: float = 0.5
    password_reset_continue_url: Optional[str] = None

    model_config = {"env_prefix": "DECK_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse to boot outside development without a configured bucket."""
        if self.environment != "development" and not self.storage_bucket:
            raise ValueError(
                "DECK_STORAGE_BUCKET must be set in non-development environments "
                "(e.g. my-project.appspot.com)."
            )
        return self


# Singleton — import this everywhere
settings = Settings()
