"""
Portfolio Pricing - Pydantic Schemas
"""
from portfolio_pricing.schemas.prices import BatchPriceRequest, RefreshRequest

__all__ = [
    "BatchPriceRequest",
    "RefreshRequest",
]
