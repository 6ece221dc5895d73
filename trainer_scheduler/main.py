"""ASGI entrypoint: ``uvicorn trainer_scheduler.main:app``."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text

from trainer_scheduler.core.config import Settings, get_settings
from trainer_scheduler.core.database import SessionLocal, close_engine
from trainer_scheduler.core.metrics import build_metrics_response, instrument_http_request
from trainer_scheduler.modules.availability.router import router as availability_router
from trainer_scheduler.modules.sessions.router import router as sessions_router
from trainer_scheduler.shared.exceptions import register_exception_handlers
from trainer_scheduler.shared.utils import utc_now

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        "%s up (env=%s, availability enforced=%s)",
        settings.app_name,
        settings.app_env,
        settings.enforce_trainer_availability,
    )
    yield
    await close_engine()
    logger.info("%s stopped", settings.app_name)


async def probe_database() -> bool:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database probe failed")
        return False
    return True


async def liveness() -> dict[str, str]:
    return {"status": "ok"}


async def readiness() -> dict[str, str]:
    """503 until the database answers."""
    if not await probe_database():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        )
    return {"status": "ready", "database": "ok", "checked_at": utc_now().isoformat()}


async def metrics(_: Request) -> Response:
    return build_metrics_response()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    application.middleware("http")(instrument_http_request)
    register_exception_handlers(application)

    application.include_router(sessions_router, prefix=settings.api_prefix)
    application.include_router(availability_router, prefix=settings.api_prefix)

    application.add_api_route("/health", liveness, methods=["GET"], tags=["probes"])
    application.add_api_route("/ready", readiness, methods=["GET"], tags=["probes"])
    application.add_api_route("/metrics", metrics, methods=["GET"], include_in_schema=False)
    return application


app = create_app()
