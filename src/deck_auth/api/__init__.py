"""API route aggregation.

All routers registered here get mounted in main.py under
settings.api_prefix.

Learn: Authorization is applied at the include_router level using
FastAPI's dependencies parameter. The moderator router requires the
moderator role for every route it contains; the account and upload
routes that need a session declare get_current_user per handler,
because some of their routes (verify-token, create-account,
change-pass) are open.
"""

from fastapi import APIRouter, Depends

from deck_auth.api.accounts import router as accounts_router
from deck_auth.api.health import router as health_router
from deck_auth.api.moderator import router as moderator_router
from deck_auth.api.storage import router as storage_router
from deck_auth.auth.dependencies import require_role
from deck_auth.config import settings
from deck_auth.schemas.account import Role

_moderator = [Depends(require_role(Role.MODERATOR))]

api_router = APIRouter(prefix=settings.api_prefix)

api_router.include_router(health_router, tags=["health"])
api_router.include_router(accounts_router, tags=["accounts"])
api_router.include_router(storage_router, tags=["storage"])
api_router.include_router(moderator_router, tags=["moderator"], dependencies=_moderator)
