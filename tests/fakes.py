"""In-memory stand-ins for the Firebase clients held by FirebaseContext.

Learn: The fakes mirror the slice of each SDK the gateways call and
raise the SDK's own exception types, so gateway, service and API code
run unchanged in tests:

- FakeAuthClient   ~ firebase_admin.auth.Client
- FakeFirestore    ~ google.cloud.firestore AsyncClient
- FakeBucket       ~ google.cloud.storage Bucket

`fail` maps an operation name to an exception raised on its next calls.
"""

import itertools
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Optional

from firebase_admin import auth
from google.api_core import exceptions as gcloud_exceptions

from deck_auth.firebase.context import FirebaseContext
from deck_auth.gateways.storage import TOKEN_METADATA_KEY, parse_download_url
from deck_auth.schemas.account import Role


# ─── Firebase Auth ────────────────────────────────────────


@dataclass
class FakeUserRecord:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    disabled: bool = False
    email_verified: bool = False
    user_metadata: SimpleNamespace = field(
        default_factory=lambda: SimpleNamespace(
            creation_timestamp=1_700_000_000_000, last_sign_in_timestamp=None
        )
    )


class FakeAuthClient:
    def __init__(self):
        self.users: dict[str, FakeUserRecord] = {}
        self.tokens: dict[str, str] = {}
        self.fail: dict[str, Exception] = {}
        self.calls: list[str] = []
        self._ids = itertools.count(1)

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail:
            raise self.fail[op]

    def add_user(self, uid: str, email: str, name: str = "", **kwargs) -> FakeUserRecord:
        self.users[uid] = FakeUserRecord(uid=uid, email=email, display_name=name, **kwargs)
        return self.users[uid]

    def issue_token(self, uid: str) -> str:
        token = f"token-{uid}"
        self.tokens[token] = uid
        return token

    def verify_id_token(self, id_token, check_revoked=False, clock_skew_seconds=0):
        self._check("verify_id_token")
        uid = self.tokens.get(id_token)
        if uid is None:
            raise auth.InvalidIdTokenError("Could not verify token signature.")
        if check_revoked:
            user = self.users.get(uid)
            if user is None:
                raise auth.UserNotFoundError(f"No user record found for the given identifier ({uid}).")
            if user.disabled:
                raise auth.UserDisabledError("The user record is disabled.")
        return {"uid": uid, "sub": uid, "aud": "deck-test", "iss": "https://securetoken.google.com/deck-test"}

    def get_user(self, uid):
        self._check("get_user")
        if uid not in self.users:
            raise auth.UserNotFoundError(f"No user record found for the provided user ID: {uid}.")
        return self.users[uid]

    def get_user_by_email(self, email):
        self._check("get_user_by_email")
        for user in self.users.values():
            if user.email == email:
                return user
        raise auth.UserNotFoundError(f"No user record found for the provided email: {email}.")

    def create_user(self, **kwargs):
        self._check("create_user")
        email = kwargs.get("email")
        if any(u.email == email for u in self.users.values()):
            raise auth.EmailAlreadyExistsError(
                "The user with the provided email already exists", None, None
            )
        uid = f"uid-{next(self._ids)}"
        return self.add_user(uid, email, kwargs.get("display_name") or "")

    def update_user(self, uid, **kwargs):
        self._check("update_user")
        user = self.get_user(uid)
        if kwargs.get("photo_url") == "":
            raise ValueError("Invalid photo URL: \"\". Photo URL must be a non-empty string.")
        for key, value in kwargs.items():
            setattr(user, key, None if value is auth.DELETE_ATTRIBUTE else value)
        return user

    def list_users(self, page_token=None, max_results=1000):
        self._check("list_users")
        uids = sorted(self.users)
        start = int(page_token) if page_token else 0
        chunk = uids[start:start + max_results]
        next_token = str(start + max_results) if start + max_results < len(uids) else ""
        return SimpleNamespace(users=[self.users[u] for u in chunk], next_page_token=next_token)

    def generate_password_reset_link(self, email, action_code_settings=None):
        self._check("generate_password_reset_link")
        if "@" not in email:
            raise ValueError(f'Malformed email address string: "{email}".')
        self.get_user_by_email(email)
        return f"https://deck-test.firebaseapp.com/__/auth/action?mode=resetPassword&oobCode=code-{email}"


# ─── Firestore (async) ────────────────────────────────────


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, store: "FakeFirestore", collection: str, doc_id: str):
        self.store = store
        self.collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> dict:
        return self.store.data.setdefault(self.collection, {})

    async def get(self):
        self.store._check("get")
        return FakeSnapshot(self, self._docs.get(self.id))

    async def create(self, data):
        self.store._check("create")
        if self.id in self._docs:
            raise gcloud_exceptions.AlreadyExists(f"Document already exists: {self.id}")
        self._docs[self.id] = dict(data)

    async def set(self, data, merge=False):
        self.store._check("set")
        base = self._docs.get(self.id, {}) if merge else {}
        self._docs[self.id] = {**base, **data}

    async def update(self, data):
        self.store._check("update")
        if self.id not in self._docs:
            raise gcloud_exceptions.NotFound(f"No document to update: {self.id}")
        self._docs[self.id].update(data)

    async def delete(self):
        self.store._check("delete")
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, store, collection, filters=None, limit=None):
        self.store = store
        self.collection = collection
        self.filters = list(filters or [])
        self._limit = limit

    def where(self, filter=None):
        return FakeQuery(self.store, self.collection, self.filters + [filter], self._limit)

    def limit(self, count):
        return FakeQuery(self.store, self.collection, self.filters, count)

    def _matches(self, data) -> bool:
        return all(
            f.op_string == "==" and data.get(f.field_path) == f.value for f in self.filters
        )

    async def stream(self):
        self.store._check("stream")
        docs = self.store.data.get(self.collection, {})
        returned = 0
        for doc_id in sorted(docs):
            if self._limit is not None and returned >= self._limit:
                return
            if self._matches(docs[doc_id]):
                returned += 1
                yield FakeSnapshot(FakeDocRef(self.store, self.collection, doc_id), docs[doc_id])


class FakeCollection(FakeQuery):
    def document(self, doc_id):
        return FakeDocRef(self.store, self.collection, doc_id)


class FakeFirestore:
    def __init__(self):
        self.data: dict[str, dict[str, dict]] = {}
        self.fail: dict[str, Exception] = {}
        self.fail_times: dict[str, int] = {}
        self._ids = itertools.count(1)

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise self.fail[op]
        if self.fail_times.get(op, 0) > 0:
            self.fail_times[op] -= 1
            raise gcloud_exceptions.ServiceUnavailable(f"{op} temporarily unavailable")

    def collection(self, name):
        return FakeCollection(self, name)

    def add_legacy(self, collection: str, data: dict) -> str:
        """Store a document under an auto id, the way older clients did."""
        doc_id = f"auto-{next(self._ids)}"
        self.data.setdefault(collection, {})[doc_id] = dict(data)
        return doc_id


# ─── Cloud Storage ────────────────────────────────────────


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str):
        self.bucket = bucket
        self.name = name
        self.metadata = None
        self.content_type = None
        self.data = b""

    def upload_from_string(self, data, content_type=None, if_generation_match=None):
        if self.bucket.fail_uploads:
            raise gcloud_exceptions.ServiceUnavailable("upload interrupted")
        if if_generation_match == 0 and self.name in self.bucket.objects:
            raise gcloud_exceptions.PreconditionFailed(f"{self.name} already exists")
        self.data = bytes(data)
        self.content_type = content_type
        self.bucket.objects[self.name] = self

    def patch(self):
        self.bucket.objects[self.name] = self


class FakeBucket:
    def __init__(self, name: str = "deck-test.appspot.com"):
        self.name = name
        self.objects: dict[str, FakeBlob] = {}
        self.fail_uploads = False

    def blob(self, name):
        return FakeBlob(self, name)

    def get_blob(self, name):
        return self.objects.get(name)

    def fetch(self, url: str) -> Optional[bytes]:
        """What the Firebase download endpoint would serve for `url`."""
        location = parse_download_url(url)
        if location is None or location.bucket != self.name:
            return None
        blob = self.objects.get(location.object_key)
        if blob is None:
            return None
        tokens = (blob.metadata or {}).get(TOKEN_METADATA_KEY, "").split(",")
        return blob.data if location.token in tokens else None


# ─── Context ──────────────────────────────────────────────


def fake_context() -> FirebaseContext:
    return FirebaseContext(auth=FakeAuthClient(), firestore=FakeFirestore(), bucket=FakeBucket())


def seed_user(
    firebase: FirebaseContext,
    uid: str,
    role: Optional[Role] = Role.STUDENT,
    email: Optional[str] = None,
    name: str = "Test User",
) -> str:
    """Create an Auth user (+ profile unless role is None). Returns a token."""
    email = email or f"{uid}@example.com"
    firebase.auth.add_user(uid, email, name)
    if role is not None:
        firebase.firestore.data.setdefault("users", {})[uid] = {
            "user_id": uid,
            "email": email,
            "name": name,
            "role": role.value,
            "cover_photo": "",
            "fcm_token": "",
        }
    return firebase.auth.issue_token(uid)
