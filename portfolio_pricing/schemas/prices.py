"""
Portfolio Pricing - Price Request Schemas
"""
from typing import Optional
from pydantic import BaseModel, Field


class BatchPriceRequest(BaseModel):
    """Schema for a batch price lookup."""
    symbols: list[str] = Field(..., min_length=1, max_length=200, description="Ticker symbols")
    currency: str = Field(default="USD", min_length=3, max_length=3)
    force_refresh: bool = Field(default=False, description="Bypass the cache")


class RefreshRequest(BaseModel):
    """Schema for a forced refresh. Omitted symbols means recently requested ones."""
    symbols: Optional[list[str]] = Field(None, max_length=500)
    currency: str = Field(default="USD", min_length=3, max_length=3)
