"""Firebase provider wiring.

The context is built once in the app lifespan and handed to gateways
via FastAPI dependencies (see get_firebase).
"""

from fastapi import Request

from deck_auth.firebase.context import FirebaseContext


def get_firebase(request: Request) -> FirebaseContext:
    """FastAPI dependency — the context created at startup."""
    context = getattr(request.app.state, "firebase", None)
    if context is None:
        raise RuntimeError("Firebase not initialized. Is the lifespan running?")
    return context


__all__ = ["FirebaseContext", "get_firebase"]
