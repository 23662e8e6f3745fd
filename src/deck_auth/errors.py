"""Result envelope and error taxonomy.

Learn: Services never raise past their own boundary. Every public
service method returns a Result: success with a value, or failure
with an ErrorKind and a human-readable message. The API layer turns
a Result into an HTTP response using ONE table (STATUS_CODES), so the
same failure always maps to the same status code on every endpoint.

Dependencies (auth gate, request parsing) can't return a Result, so
they raise ApiError instead; main.py registers a handler that renders
it through the same envelope.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_CREDENTIAL = "invalid_credential"
    SESSION_INVALID = "session_invalid"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    IDENTITY_NOT_FOUND = "identity_not_found"
    PROFILE_NOT_FOUND = "profile_not_found"
    USER_NOT_FOUND = "user_not_found"
    CONFLICT = "conflict"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    RATE_LIMITED = "rate_limited"
    PARTIAL_FAILURE = "partial_failure"
    INTERNAL = "internal_error"
    UPSTREAM_FAILURE = "upstream_failure"
    UPLOAD_FAILED = "upload_failed"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_CREDENTIAL: 401,
    ErrorKind.SESSION_INVALID: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.IDENTITY_NOT_FOUND: 404,
    ErrorKind.PROFILE_NOT_FOUND: 404,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.PARTIAL_FAILURE: 500,
    ErrorKind.INTERNAL: 500,
    ErrorKind.UPSTREAM_FAILURE: 502,
    ErrorKind.UPLOAD_FAILED: 502,
}


def status_for(kind: ErrorKind) -> int:
    return STATUS_CODES.get(kind, 500)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged {success, message} envelope returned by every service call.

    On success `message` carries the value; on failure it carries a
    description and `error` names the failure kind.
    """

    success: bool
    message: Any
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(success=True, message=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(success=False, message=message, error=kind)

    @property
    def value(self) -> T:
        if not self.success:
            raise ValueError(f"Result is a failure ({self.error}): {self.message}")
        return self.message

    def envelope(self) -> dict:
        return {"success": self.success, "message": self.message}


class ApiError(Exception):
    """Raised from dependencies to short-circuit a request with an envelope."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return status_for(self.kind)

    @classmethod
    def from_result(cls, result: Result) -> "ApiError":
        return cls(result.error or ErrorKind.INTERNAL, str(result.message))
