"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan builds the FirebaseContext exactly once and parks it
on app.state, where get_firebase() hands it to every request. Tests
override get_firebase instead of running the lifespan.

Every request ends in exactly one response: service failures come back
as Results, dependency failures as ApiError, bad bodies as
RequestValidationError, and anything unexpected hits the catch-all
handler. All of them render as {success, message} envelopes.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from deck_auth import __version__
from deck_auth.api import api_router
from deck_auth.api.responses import error_response
from deck_auth.config import settings
from deck_auth.errors import ApiError, ErrorKind

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "deck.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    if getattr(app.state, "firebase", None) is None:
        from deck_auth.firebase.context import FirebaseContext
        app.state.firebase = FirebaseContext.from_settings(settings)

    from deck_auth.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("deck.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("deck.redis_unavailable", error=str(e))
        # Redis is optional; only rate limiting depends on it

    yield

    logger.info("deck.shutdown")
    await close_redis()


def _validation_message(exc: RequestValidationError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else err.get("msg", ""))
    return "; ".join(problems) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return error_response(exc.kind, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(ErrorKind.VALIDATION, _validation_message(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(
            "deck.unhandled_error",
            method=request.method,
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        message = str(exc) if settings.debug else "Internal server error"
        return error_response(ErrorKind.INTERNAL, message)


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Deck Auth",
        description="Deck authentication and account management API",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → RateLimit → CORS → handler

    from deck_auth.middleware.rate_limit import RateLimitMiddleware
    from deck_auth.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/v1")
    async def root():
        return {"message": "Deck Authentication and Account Management API is running"}

    return app


# Default app instance (used by uvicorn: deck_auth.main:app)
app = create_app()
