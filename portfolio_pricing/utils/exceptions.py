"""
Portfolio Pricing - Custom Exceptions
Application-specific exceptions with HTTP error handling
"""
from typing import Optional, Any, Dict
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class PortfolioPricingException(Exception):
    """Base exception for the pricing service."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str = "An error occurred",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


# =========================
# Configuration Exceptions
# =========================

class ConfigurationError(PortfolioPricingException):
    """Malformed or invalid market data configuration."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(
        self,
        message: str = "Invalid configuration",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, code="INVALID_CONFIGURATION", details=details)


# =========================
# HTTP Exception Helpers
# =========================

def raise_not_found(message: str = "Resource not found"):
    """Raise 404 Not Found exception."""
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=message
    )


def raise_bad_request(message: str = "Bad request"):
    """Raise 400 Bad Request exception."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=message
    )


async def pricing_exception_handler(
    request: Request,
    exc: PortfolioPricingException,
) -> JSONResponse:
    """Render application exceptions as JSON error bodies."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code or "ERROR",
            "message": exc.message,
            "details": exc.details,
        },
    )
