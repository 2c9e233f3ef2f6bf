"""
Portfolio Pricing - Main Application Entry Point
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from loguru import logger

from portfolio_pricing.config import settings
from portfolio_pricing.api.v1.router import api_router
from portfolio_pricing.cache.factory import create_cache
from portfolio_pricing.data_providers.market_config import MarketDataConfig
from portfolio_pricing.data_providers.provider_init import create_registry
from portfolio_pricing.scheduler.price_refresh import PriceRefreshScheduler
from portfolio_pricing.services.price_service import PriceResolutionService
from portfolio_pricing.utils.exceptions import PortfolioPricingException, pricing_exception_handler
from portfolio_pricing.utils.logger import setup_logging


def build_price_service() -> PriceResolutionService:
    """Wire registry, cache and configuration from settings."""
    config = MarketDataConfig.from_settings(settings)
    return PriceResolutionService(
        registry=create_registry(config),
        cache=create_cache(settings),
        config=config,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events handler."""
    # Startup
    setup_logging(settings)
    logger.info(f"Starting {settings.APP_NAME} ({settings.APP_ENV})...")

    service = build_price_service()
    await service.initialize()
    app.state.price_service = service

    refresher = None
    if settings.PRICE_REFRESH_ENABLED:
        refresher = PriceRefreshScheduler(
            service,
            minute=settings.PRICE_REFRESH_MINUTE,
            currency=settings.PRICE_REFRESH_CURRENCY,
            timezone_name=settings.TIMEZONE,
        )
        refresher.start()
    app.state.price_refresher = refresher

    logger.info(f"{settings.APP_NAME} started")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    if refresher:
        refresher.stop()
    await service.close()
    logger.info("Goodbye!")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Market price resolution across prioritized providers with layered caching",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_exception_handler(PortfolioPricingException, pricing_exception_handler)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "portfolio_pricing.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
