# backend/drivebook/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .core.constants import API_TITLE, API_VERSION, BRAND_NAME
from .database import init_db
from .routes.v1 import (
    availability as availability_v1,
    bookings as bookings_v1,
    calendar_settings as calendar_settings_v1,
    health as health_v1,
    quota as quota_v1,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    init_db()
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(availability_v1.router, prefix="/availability")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(quota_v1.router, prefix="/quota")
api_v1.include_router(calendar_settings_v1.router, prefix="/calendar-settings")

app.include_router(api_v1)
app.include_router(health_v1.router)
