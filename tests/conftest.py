"""Test fixtures — in-memory Firebase and an HTTP client wired to it.

Learn: The app reaches Firebase only through the get_firebase
dependency, so overriding that one dependency swaps every gateway onto
the fakes in tests/fakes.py. Services, the auth gate and the response
layer are the real ones.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from deck_auth.config import settings
from deck_auth.firebase import get_firebase
from deck_auth.main import app
from deck_auth.schemas.account import Role
from deck_auth.services import build_account_service
from fakes import fake_context, seed_user

API = settings.api_prefix


@pytest.fixture()
def firebase():
    return fake_context()


@pytest.fixture()
def account_service(firebase):
    svc = build_account_service(firebase)
    svc.profile_write_backoff = 0
    return svc


@pytest_asyncio.fixture()
async def client(firebase):
    """HTTP client with get_firebase overridden to the in-memory fakes."""
    app.dependency_overrides[get_firebase] = lambda: firebase

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def student(firebase):
    """Auth headers for a signed-in student."""
    token = seed_user(firebase, "student-1", Role.STUDENT)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def moderator(firebase):
    """Auth headers for a signed-in moderator."""
    token = seed_user(firebase, "mod-1", Role.MODERATOR, name="Moderator")
    return {"Authorization": f"Bearer {token}"}
