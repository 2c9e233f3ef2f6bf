"""
Portfolio Pricing - Dependencies
Dependency injection for FastAPI endpoints
"""
from fastapi import Request

from portfolio_pricing.services.price_service import PriceResolutionService


def get_price_service(request: Request) -> PriceResolutionService:
    """
    Price service dependency.

    Returns:
        PriceResolutionService: the instance created at application startup
    """
    return request.app.state.price_service
