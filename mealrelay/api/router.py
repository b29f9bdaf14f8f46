"""Main API router"""

from fastapi import APIRouter

from .routes import dispatch, orders
from ..core.config import settings

# Main API router
api_router = APIRouter()

api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(dispatch.router, prefix="/dispatch", tags=["dispatch"])


@api_router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": settings.VERSION}


@api_router.get("/pricing")
async def get_pricing():
    """Current commission policy (public endpoint)"""
    return {
        "platform_fee_rate": settings.PLATFORM_FEE_RATE,
        "tax_rate": settings.TAX_RATE,
        "delivery_fee_cents": settings.DEFAULT_DELIVERY_FEE_CENTS,
        "currency": "USD",
        "prices_in_cents": True,
    }
