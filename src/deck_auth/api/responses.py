"""Result → HTTP translation.

Learn: This is the only place that decides status codes. Routes hand
over a Result (or raise ApiError from a dependency) and get the same
{success, message} envelope and the same status for the same kind of
failure everywhere.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from deck_auth.errors import ErrorKind, Result, status_for

_UNAUTHORIZED_KINDS = {
    ErrorKind.UNAUTHENTICATED,
    ErrorKind.INVALID_CREDENTIAL,
    ErrorKind.SESSION_INVALID,
}


def error_response(kind: ErrorKind, message: Any) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if kind in _UNAUTHORIZED_KINDS else None
    return JSONResponse(
        status_code=status_for(kind),
        content=jsonable_encoder({"success": False, "message": message}),
        headers=headers,
    )


def to_response(result: Result, status_code: int = 200) -> JSONResponse:
    """Envelope a Result: success → status_code, failure → its kind's status."""
    if not result.success:
        return error_response(result.error or ErrorKind.INTERNAL, result.message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.envelope()))


def to_raw_response(result: Result, status_code: int = 200) -> JSONResponse:
    """Like to_response, but a success returns the bare value (no envelope)."""
    if not result.success:
        return error_response(result.error or ErrorKind.INTERNAL, result.message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.value))
