"""
Portfolio Pricing - API v1 Router
"""
from fastapi import APIRouter

from portfolio_pricing.api.v1.endpoints import prices, health

api_router = APIRouter()


# API v1 root endpoint
@api_router.get("/", tags=["API Info"])
async def api_root():
    """API v1 root - returns version info."""
    return {
        "api": "Portfolio Pricing",
        "version": "v1",
        "status": "operational"
    }


api_router.include_router(prices.router, prefix="/prices", tags=["Prices"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
