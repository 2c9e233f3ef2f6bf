"""
Portfolio Pricing - Logger Configuration
Centralized logging with loguru
"""
import sys
from pathlib import Path
from typing import Optional
from loguru import logger

from portfolio_pricing.config import Settings, settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Configure loguru sinks from settings.

    Console output always; rotating file sinks only when LOG_DIR is set.
    """
    config = config or settings

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        colorize=True,
        format=CONSOLE_FORMAT,
        level="DEBUG" if config.DEBUG else config.LOG_LEVEL,
    )

    if not config.LOG_DIR:
        return

    log_path = Path(config.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)

    # File handler for all logs
    logger.add(
        log_path / "pricing.log",
        rotation="10 MB",
        retention="30 days",
        compression="gz",
        format=FILE_FORMAT,
        level="DEBUG",
    )

    # File handler for errors only
    logger.add(
        log_path / "error.log",
        rotation="10 MB",
        retention="30 days",
        compression="gz",
        format=FILE_FORMAT,
        level="ERROR",
    )


# Export configured logger
__all__ = ["logger", "setup_logging"]
