"""
Portfolio Pricing - Price Endpoints
Current, batch and historical prices, search, and provider/cache operations
"""
from datetime import date, datetime, timezone
from typing import Optional, Any
from fastapi import APIRouter, Body, Depends, Query
from loguru import logger

from portfolio_pricing.dependencies import get_price_service
from portfolio_pricing.schemas.prices import BatchPriceRequest, RefreshRequest
from portfolio_pricing.services.price_service import (
    PriceResolutionService,
    DEFAULT_HISTORY_RANGE,
    DEFAULT_HISTORY_INTERVAL,
    HISTORY_INTERVALS,
)
from portfolio_pricing.utils.exceptions import raise_not_found, raise_bad_request

router = APIRouter()


def _prices_payload(prices: dict, requested: list[str]) -> dict[str, Any]:
    found = {symbol: price.to_dict() for symbol, price in prices.items()}
    missing = [s.strip().upper() for s in requested if s.strip().upper() not in found]
    return {
        "prices": found,
        "missing": list(dict.fromkeys(missing)),
        "count": len(found),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Static paths first so they are not captured by /{symbol}

@router.get(
    "/status/providers",
    summary="Provider status",
    description="Enabled flag, priority, pacing and last call of every provider."
)
async def get_provider_status(
    service: PriceResolutionService = Depends(get_price_service),
):
    return {
        "providers": service.get_provider_status(),
        "demo_mode": service.demo_mode,
    }


@router.get(
    "/status/errors",
    summary="Recent provider errors",
)
async def get_recent_errors(
    limit: int = Query(20, ge=1, le=100),
    service: PriceResolutionService = Depends(get_price_service),
):
    errors = service.get_recent_errors(limit)
    return {"errors": [e.to_dict() for e in errors], "count": len(errors)}


@router.get(
    "/search/{query}",
    summary="Search assets",
    description="Merged search across providers, at most 10 results."
)
async def search_assets(
    query: str,
    force_refresh: bool = Query(False),
    service: PriceResolutionService = Depends(get_price_service),
):
    results = await service.search_assets(query, force_refresh=force_refresh)
    return {"query": query, "results": [r.to_dict() for r in results], "count": len(results)}


@router.post(
    "/batch",
    summary="Get prices for several symbols",
)
async def get_batch_prices(
    request: BatchPriceRequest,
    service: PriceResolutionService = Depends(get_price_service),
):
    prices = await service.get_batch_prices(
        request.symbols,
        currency=request.currency,
        force_refresh=request.force_refresh,
    )
    return _prices_payload(prices, request.symbols)


@router.post(
    "/refresh",
    summary="Force-refresh prices",
    description="Refresh the given symbols, or every recently requested symbol."
)
async def refresh_prices(
    request: Optional[RefreshRequest] = None,
    service: PriceResolutionService = Depends(get_price_service),
):
    request = request or RefreshRequest()
    symbols = request.symbols if request.symbols is not None else service.tracked_symbols
    prices = await service.refresh_prices(symbols, currency=request.currency)
    return _prices_payload(prices, symbols)


@router.post(
    "/cache/clear",
    summary="Clear cached prices",
    description="Best effort: on an edge KV cache entries expire by TTL instead."
)
async def clear_cache(
    service: PriceResolutionService = Depends(get_price_service),
):
    cleared = await service.clear_cache()
    logger.info(f"Cache clear requested via API (success={cleared})")
    return {
        "success": cleared,
        "guaranteed": service.cache.supports_enumeration,
    }


@router.post(
    "/config",
    summary="Update market data configuration",
    description="Partial update: provider enabled/api_key/priority, cache TTLs, demo mode."
)
async def update_config(
    partial: dict[str, Any] = Body(...),
    service: PriceResolutionService = Depends(get_price_service),
):
    config = service.update_config(partial)
    return {"success": True, "config": config.redacted()}


@router.get(
    "/{symbol}/historical",
    summary="Historical daily prices",
    description="Either an explicit start/end date or a named range (7days, 30days, 90days, 1year)."
)
async def get_historical_prices(
    symbol: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    interval: str = Query(DEFAULT_HISTORY_INTERVAL),
    range_: str = Query(DEFAULT_HISTORY_RANGE, alias="range"),
    currency: str = Query("USD", min_length=3, max_length=3),
    force_refresh: bool = Query(False),
    service: PriceResolutionService = Depends(get_price_service),
):
    if interval not in HISTORY_INTERVALS:
        raise_bad_request(f"Unsupported interval '{interval}', expected one of: {', '.join(HISTORY_INTERVALS)}")
    if start_date or end_date:
        if not (start_date and end_date):
            raise_bad_request("start_date and end_date must be given together")
        if end_date < start_date:
            raise_bad_request("end_date must not be before start_date")
        points = await service.get_historical_prices(
            symbol, start_date, end_date, currency=currency, force_refresh=force_refresh
        )
    else:
        points = await service.get_price_history(
            symbol, interval=interval, range_=range_, currency=currency, force_refresh=force_refresh
        )

    return {
        "symbol": symbol.upper(),
        "prices": [p.to_dict() for p in points],
        "count": len(points),
    }


@router.get(
    "/{symbol}",
    summary="Current price",
)
async def get_current_price(
    symbol: str,
    currency: str = Query("USD", min_length=3, max_length=3),
    force_refresh: bool = Query(False),
    service: PriceResolutionService = Depends(get_price_service),
):
    price = await service.get_current_price(symbol, currency=currency, force_refresh=force_refresh)
    if price is None:
        raise_not_found(f"No price available for {symbol.upper()}")
    return price.to_dict()
