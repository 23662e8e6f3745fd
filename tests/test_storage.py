"""Upload path tests — object keys, capability tokens, revocation."""

import itertools
from urllib.parse import quote

import pytest

from deck_auth.errors import ErrorKind
from deck_auth.gateways.storage import StorageGateway, parse_download_url
from deck_auth.services.storage_service import StorageService
from fakes import FakeBucket

PNG = b"\x89PNG\r\n\x1a\nfake-image-bytes"


def _service(bucket, start=1_700_000_000_000, max_bytes=1024):
    ticks = itertools.count(start, 5)
    gateway = StorageGateway(bucket, clock=lambda: next(ticks))
    return StorageService(gateway, max_upload_bytes=max_bytes)


@pytest.mark.asyncio
async def test_upload_round_trip():
    bucket = FakeBucket()
    svc = _service(bucket)

    result = await svc.upload(PNG, "U", "image/png", "userPhotos")
    assert result.success
    url = result.value

    assert url.startswith(
        "https://firebasestorage.googleapis.com/v0/b/deck-test.appspot.com/o/"
    )
    assert quote("userPhotos/U-1700000000000", safe="") in url
    assert "alt=media&token=" in url
    assert bucket.fetch(url) == PNG
    assert bucket.objects["userPhotos/U-1700000000000"].content_type == "image/png"


@pytest.mark.asyncio
async def test_uploads_at_different_times_do_not_collide():
    bucket = FakeBucket()
    svc = _service(bucket)

    first = (await svc.upload(PNG, "U", "image/png", "userPhotos")).value
    second = (await svc.upload(b"other", "U", "image/png", "userPhotos")).value

    assert parse_download_url(first).object_key != parse_download_url(second).object_key
    assert bucket.fetch(first) == PNG
    assert bucket.fetch(second) == b"other"


@pytest.mark.asyncio
async def test_same_millisecond_upload_never_overwrites():
    bucket = FakeBucket()
    gateway = StorageGateway(bucket, clock=lambda: 42)
    svc = StorageService(gateway, max_upload_bytes=1024)

    first = await svc.upload(PNG, "U", "image/png", "userPhotos")
    second = await svc.upload(b"other", "U", "image/png", "userPhotos")

    assert first.success
    assert second.error == ErrorKind.UPLOAD_FAILED
    assert bucket.fetch(first.value) == PNG


@pytest.mark.asyncio
async def test_wrong_token_cannot_fetch():
    bucket = FakeBucket()
    url = (await _service(bucket).upload(PNG, "U", "image/png", "userPhotos")).value
    forged = url.rsplit("token=", 1)[0] + "token=00000000-0000-0000-0000-000000000000"
    assert bucket.fetch(forged) is None


@pytest.mark.asyncio
async def test_failed_write_yields_no_url():
    bucket = FakeBucket()
    bucket.fail_uploads = True
    result = await _service(bucket).upload(PNG, "U", "image/png", "userPhotos")
    assert result.error == ErrorKind.UPLOAD_FAILED
    assert result.message == "Cannot retrieve download URL"
    assert bucket.objects == {}


@pytest.mark.asyncio
async def test_upload_size_cap():
    result = await _service(FakeBucket(), max_bytes=4).upload(PNG, "U", "image/png", "userPhotos")
    assert result.error == ErrorKind.PAYLOAD_TOO_LARGE


@pytest.mark.asyncio
@pytest.mark.parametrize("folder", ["../etc", "a/b", "with space"])
async def test_upload_rejects_bad_folder(folder):
    result = await _service(FakeBucket()).upload(PNG, "U", "image/png", folder)
    assert result.error == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_upload_rejects_empty_file():
    result = await _service(FakeBucket()).upload(b"", "U", "image/png", "userPhotos")
    assert result.error == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_default_folder():
    bucket = FakeBucket()
    url = (await _service(bucket).upload(PNG, "U", "image/png", None)).value
    assert parse_download_url(url).object_key.startswith("userPhotos/U-")


@pytest.mark.asyncio
async def test_revoke_rotates_token():
    bucket = FakeBucket()
    svc = _service(bucket)
    old_url = (await svc.upload(PNG, "U", "image/png", "userPhotos")).value

    revoked = await svc.revoke(old_url)
    assert revoked.success
    assert bucket.fetch(old_url) is None
    assert bucket.fetch(revoked.value) == PNG


@pytest.mark.asyncio
async def test_revoke_by_key_and_missing_object():
    bucket = FakeBucket()
    svc = _service(bucket)
    await svc.upload(PNG, "U", "image/png", "userPhotos")

    assert (await svc.revoke("userPhotos/U-1700000000000")).success
    missing = await svc.revoke("userPhotos/U-1")
    assert missing.error == ErrorKind.NOT_FOUND


def test_parse_download_url():
    url = (
        "https://firebasestorage.googleapis.com/v0/b/deck.appspot.com/o/"
        "userPhotos%2Fabc-123?alt=media&token=tok-1"
    )
    location = parse_download_url(url)
    assert location.bucket == "deck.appspot.com"
    assert location.object_key == "userPhotos/abc-123"
    assert location.token == "tok-1"
    assert parse_download_url("https://example.com/nothing") is None


# ─── No bucket configured ──────────────────────────────


@pytest.mark.asyncio
async def test_upload_without_bucket_fails_cleanly():
    svc = StorageService(StorageGateway(None), max_upload_bytes=1024)
    result = await svc.upload(PNG, "U", "image/png", "userPhotos")
    assert result.error == ErrorKind.UPLOAD_FAILED
    assert result.message == "Storage bucket is not configured"

    revoked = await svc.revoke("userPhotos/U-1")
    assert revoked.error == ErrorKind.UPSTREAM_FAILURE


def test_context_builds_without_bucket(monkeypatch):
    from deck_auth.config import Settings
    from deck_auth.firebase import context as context_module

    def no_bucket(app=None):
        raise ValueError("Storage bucket name not specified.")

    monkeypatch.setattr(context_module, "_get_or_init_app", lambda settings: "app")
    monkeypatch.setattr(context_module.auth, "Client", lambda app: "auth-client")
    monkeypatch.setattr(context_module.firestore_async, "client", lambda app: "firestore")
    monkeypatch.setattr(context_module.storage, "bucket", no_bucket)

    ctx = context_module.FirebaseContext.from_settings(
        Settings(environment="development", storage_bucket="")
    )
    assert ctx.bucket is None
    assert ctx.auth == "auth-client"
