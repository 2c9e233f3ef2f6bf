"""
Portfolio Pricing - Services Package
"""
from portfolio_pricing.services.price_service import PriceResolutionService

__all__ = [
    "PriceResolutionService",
]
