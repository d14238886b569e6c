"""
API v1 router.
Aggregates all v1 endpoints.
"""
from fastapi import APIRouter

from backend.app.api.v1.auth import router as auth_router
from backend.app.api.v1.transactions import tx_router
from backend.app.api.v1.wallet import providers_router, wallet_router
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Include sub-routers
router.include_router(auth_router)
router.include_router(wallet_router)
router.include_router(providers_router)
router.include_router(tx_router)


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns service status.

    Returns:
        dict: Status message
    """
    logger.debug("Health check requested")
    return {"status": "ok"}
