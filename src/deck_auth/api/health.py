"""Health check endpoint.

Learn: Reports whether the Firebase context was built at startup and
whether Redis (rate limiting) is reachable. Firebase itself is not
pinged; a round trip to Auth or Firestore per health probe would cost
quota for no benefit.
"""

from fastapi import APIRouter, Request

from deck_auth import __version__
from deck_auth.cache import get_redis

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency availability."""
    checks = {"server": "ok", "version": __version__}

    checks["firebase"] = (
        "ok" if getattr(request.app.state, "firebase", None) is not None
        else "not initialized"
    )

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"unavailable: {e}"

    # Redis is optional, Firebase is not
    status = "healthy" if checks["firebase"] == "ok" else "degraded"
    return {"status": status, **checks}
