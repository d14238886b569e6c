"""
MoMo Wallet FastAPI application.
Main entry point for the backend API.
"""
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.config import get_settings, set_test_mode, is_test_mode
from backend.app.logging_config import configure_logging, get_logger

# Check for --test flag in command line arguments
# This must be done before any imports that might use settings
if "--test" in sys.argv:
    set_test_mode(True)
    print("[MoMo Wallet] Test mode enabled (--test flag detected)")
    sys.argv.remove("--test")  # Remove flag so uvicorn doesn't complain

# Get settings after test mode is set
settings = get_settings()

# Configure logging with settings
configure_logging(settings.LOG_LEVEL, enable_file_logging=settings.LOG_TO_FILE)
logger = get_logger(__name__)

from backend.app.api.v1.router import router as api_v1_router  # noqa: E402
from backend.app.db.session import async_engine, create_schema  # noqa: E402
from backend.app.services.auth_service import AuthIdentity, SessionManager  # noqa: E402
from backend.app.services.settlement import SettlementManager  # noqa: E402


def ensure_database_exists() -> None:
    """
    Ensure the database file and every table exist.

    Used by:
    - Backend server on startup (via lifespan)
    - Test database setup
    """
    try:
        create_schema()
    except Exception as e:
        logger.error("Error creating database", error=str(e))
        sys.exit(1)


def _log_auth_state(identity: Optional[AuthIdentity]) -> None:
    if identity is None:
        logger.debug("Auth state changed", signed_in=False)
    else:
        logger.debug("Auth state changed", signed_in=True, user_id=identity.user_id)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan context manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting MoMo Wallet",
        version=settings.VERSION,
        database_url=settings.DATABASE_URL.split("///")[-1],
        test_mode=is_test_mode(),
        settlement_delay_seconds=settings.SETTLEMENT_DELAY_SECONDS,
        )

    ensure_database_exists()

    # clear() at shutdown drops listeners, so subscribe on every startup
    app.state.session_manager.subscribe(_log_auth_state)

    yield

    # Settlements already started always complete
    drained = await app.state.settlement_manager.drain()
    app.state.session_manager.clear()
    logger.info("Shutting down MoMo Wallet", settlements_drained=drained)


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
    )

# Process-wide state, handed to request handlers through dependencies
app.state.session_manager = SessionManager(expire_hours=settings.SESSION_EXPIRE_HOURS)
app.state.settlement_manager = SettlementManager(async_engine, delay_seconds=settings.SETTLEMENT_DELAY_SECONDS)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    )

# Mount API v1 router
app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """
    Root endpoint.
    Provides basic API information.
    """
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
        }
