from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv
from pathlib import Path
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

env_path = Path(__file__).resolve().parent.parent / ".env"
_ = load_dotenv(dotenv_path=env_path)

from huddle.config import settings
from huddle.core.auth import verify_token
from huddle.core.exceptions import HuddleError
from huddle.core.middleware import setup_middleware
from huddle.core.telegram import notify_telegram, TelegramNotifier
from huddle.services.scheduler_service import scheduler_service
from huddle.api import (
    activities,
    admin,
    leaderboard,
    notifications,
    polls,
    profiles,
    webhooks,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("🚀 Huddle API starting up")

    if settings.DEBUG:
        logger.info("Running in debug mode - enhanced logging enabled")

    if settings.SCHEDULER_ENABLED:
        scheduler_service.start()
    else:
        logger.info("⏸️ Scheduler disabled - expired polls only processed on demand")

    yield

    logger.info("🛑 Huddle API shutting down")
    scheduler_service.stop()


if settings.SENTRY_DSN:
    _ = sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=1.0 if settings.DEBUG else 0.1,
        profiles_sample_rate=1.0 if settings.DEBUG else 0.1,
        environment=settings.ENVIRONMENT,
        release=f"huddle@{settings.VERSION}",
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        ignore_errors=[
            KeyboardInterrupt,
        ],
        send_default_pii=False,
        attach_stacktrace=True,
    )

    logger.info(f"✅ Sentry initialized for environment: {settings.ENVIRONMENT}")
else:
    logger.info("⚠️  Sentry DSN not configured - error tracking disabled")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

setup_middleware(app)

app.include_router(polls.router, prefix="/api/polls", tags=["polls"])
app.include_router(activities.router, prefix="/api/activities", tags=["activities"])
app.include_router(leaderboard.router, prefix="/api/leaderboard", tags=["leaderboard"])
app.include_router(
    notifications.router, prefix="/api/notifications", tags=["notifications"]
)
app.include_router(profiles.router, prefix="/api/profiles", tags=["profiles"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["webhooks"])


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "features": {
            "polls": True,
            "activities": True,
            "leaderboard": True,
            "notifications": True,
            "scheduler": settings.SCHEDULER_ENABLED,
            "rate_limiting": settings.RATE_LIMIT_ENABLED,
            "telegram_alerts": settings.telegram_enabled,
        },
    }


@app.exception_handler(HuddleError)
async def huddle_exception_handler(_request: Request, exc: HuddleError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"❌ Database error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "DataStoreError",
            "detail": "The data store is temporarily unavailable",
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    user_id = None
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        payload = verify_token(authorization[7:])
        if payload:
            user_id = payload.get("sub")

    error_traceback = "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__)
    )

    notify_telegram(
        TelegramNotifier.notify_error(
            error_type=type(exc).__name__,
            error_message=str(exc)[:200],
            user_id=str(user_id) if user_id else None,
            endpoint=str(request.url.path),
            traceback=error_traceback[:500],
        )
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred",
        },
    )
