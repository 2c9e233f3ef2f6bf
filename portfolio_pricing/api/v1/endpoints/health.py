"""
Portfolio Pricing - Health Endpoints
"""
from fastapi import APIRouter, Depends

from portfolio_pricing.dependencies import get_price_service
from portfolio_pricing.services.price_service import PriceResolutionService

router = APIRouter()


@router.get("", summary="Service health")
async def health(
    service: PriceResolutionService = Depends(get_price_service),
):
    """Cache tier and provider status. Always 200; problems show in the body."""
    return await service.health_check()


@router.get("/cache", summary="Cache health")
async def cache_health(
    service: PriceResolutionService = Depends(get_price_service),
):
    """Write/read/delete probe plus hit statistics."""
    return {
        "health": await service.cache.health_check(),
        "stats": service.get_cache_stats(),
    }
