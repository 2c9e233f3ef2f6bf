"""
Rate Limiter

Minimum-interval pacing per provider.
Each provider key keeps its own last-call time; a caller waits until the
configured interval has elapsed since the previous call with the same key.
"""
import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Callable
from loguru import logger


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    min_interval: float = 1.0  # seconds between consecutive calls


@dataclass
class PacingState:
    """Last-call bookkeeping for one provider key."""
    min_interval: float
    last_call: Optional[float] = None       # monotonic clock
    last_call_at: Optional[datetime] = None  # wall clock, for status output
    calls: int = 0
    waits: int = 0
    total_wait: float = 0.0

    def time_until_available(self, now: float) -> float:
        """Seconds left before the next call may start."""
        if self.last_call is None:
            return 0.0
        elapsed = now - self.last_call
        return max(0.0, self.min_interval - elapsed)

    def record_call(self, now: float) -> None:
        self.last_call = now
        self.last_call_at = datetime.now(timezone.utc)
        self.calls += 1


class RateLimiter:
    """
    Per-provider minimum-interval rate limiter.

    Callers with the same key are admitted in arrival order: each one waits
    for the interval measured from the previous admitted call, then records
    itself as the new last call. Keys are independent of each other.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._states: dict[str, PacingState] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def configure(self, provider: str, config: RateLimitConfig) -> None:
        """Configure pacing for a provider, keeping its last-call time."""
        state = self._states.get(provider)
        if state:
            state.min_interval = config.min_interval
        else:
            self._states[provider] = PacingState(min_interval=config.min_interval)

        logger.debug(f"Rate limiter configured for {provider}: {config}")

    def is_configured(self, provider: str) -> bool:
        return provider in self._states

    async def acquire(self, provider: str) -> float:
        """
        Wait for this provider's turn, then record the call.

        Args:
            provider: Provider key

        Returns:
            Seconds spent waiting
        """
        state = self._states.get(provider)
        if state is None:
            # No pacing configured, allow all
            return 0.0

        async with self._locks[provider]:
            wait_time = state.time_until_available(self._clock())

            if wait_time > 0:
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s for {provider}")
                state.waits += 1
                state.total_wait += wait_time
                await asyncio.sleep(wait_time)

            state.record_call(self._clock())
            return wait_time

    def can_proceed(self, provider: str) -> bool:
        """Check if a call could start without waiting."""
        return self.time_until_available(provider) == 0.0

    def time_until_available(self, provider: str) -> float:
        state = self._states.get(provider)
        if state is None:
            return 0.0
        return state.time_until_available(self._clock())

    def last_call_at(self, provider: str) -> Optional[datetime]:
        state = self._states.get(provider)
        return state.last_call_at if state else None

    def get_stats(self, provider: str) -> dict:
        """Get rate limiter statistics for a provider."""
        state = self._states.get(provider)
        if not state:
            return {"configured": False}

        return {
            "configured": True,
            "min_interval": state.min_interval,
            "calls": state.calls,
            "waits": state.waits,
            "total_wait": round(state.total_wait, 3),
            "last_call": state.last_call_at.isoformat() if state.last_call_at else None,
            "can_proceed": self.can_proceed(provider),
            "wait_time": self.time_until_available(provider),
        }

    def reset(self, provider: str) -> None:
        """Forget the last call for a provider."""
        state = self._states.get(provider)
        if state:
            state.last_call = None
            state.last_call_at = None
            logger.info(f"Rate limiter reset for {provider}")
