"""MaqsadM - social goal tracking with groups, coins and an AI coach."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi, instrument_pydantic_ai
from src.interface.api_router import register_exception_handlers, router as api_router


logger = logging.getLogger(__name__)

OPENROUTER_MODELS_URL = "https://openrouter.ai/api/v1/models"


async def check_openrouter_connectivity() -> bool:
    """Check that OpenRouter is reachable with the configured key.

    AI features are optional, so failures are logged and reported, never raised.
    """
    if not settings.openrouter_api_key:
        logger.warning("startup_validation", extra={"service": "openrouter", "status": "disabled"})
        return False

    try:
        headers = {"Authorization": f"Bearer {settings.openrouter_api_key}"}
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
            response = await client.get(OPENROUTER_MODELS_URL, headers=headers)
        if response.is_success:
            logger.info("startup_validation", extra={"service": "openrouter", "status": "ok"})
            return True
        logger.warning(
            "startup_validation",
            extra={"service": "openrouter", "status": "unavailable", "status_code": response.status_code},
        )
    except httpx.HTTPError as e:
        logger.warning("startup_validation", extra={"service": "openrouter", "status": "unavailable", "error": str(e)})
    return False


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so startup logs are captured
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    instrument_pydantic_ai()
    if settings.is_production:
        await check_openrouter_connectivity()
    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="maqsadm",
    description="Social goal tracking with groups, coins and an AI coach",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(api_router)
register_exception_handlers(app)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
