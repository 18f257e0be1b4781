"""Sliding-window rate limiting with retry for quota-constrained APIs."""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from relay_agent.config import RateLimitConfig
from relay_agent.exceptions import RateLimitError, RateLimitExceededError
from relay_agent.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[object]]


def is_rate_limit_error(error: BaseException) -> bool:
    """Whether an error is an upstream "too many requests" rejection."""
    if isinstance(error, RateLimitExceededError):
        return False
    if isinstance(error, RateLimitError):
        return True
    status = getattr(error, "status_code", None)
    if status is None:
        # httpx.HTTPStatusError and similar carry the response.
        status = getattr(getattr(error, "response", None), "status_code", None)
    return status == 429


@dataclass
class RateLimiterState:
    """Mutable bookkeeping shared by every caller of one executor."""

    admissions: deque[float] = field(default_factory=deque)
    waiters: deque[asyncio.Future[None]] = field(default_factory=deque)
    busy: bool = False


class RateLimitedExecutor:
    """Run async operations under a shared request budget.

    At most ``limit`` operations start within any ``interval`` seconds. Callers
    are admitted one at a time in arrival order, and each admitted operation is
    followed by ``spacing`` seconds of quiet before the next caller goes.
    Operations rejected with a rate-limit signal are retried after
    ``cooldown`` seconds, at most ``max_retries`` times.

    One instance fronts one upstream quota; share it between every tool that
    draws on that quota.
    """

    def __init__(
        self,
        limit: int = 20,
        interval: float = 90.0,
        max_retries: int = 3,
        cooldown: float = 30.0,
        spacing: float = 3.5,
        *,
        name: str = "default",
        is_rate_limited: Callable[[BaseException], bool] = is_rate_limit_error,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.name = name
        self.limit = int(limit)
        self.interval = float(interval)
        self.max_retries = int(max_retries)
        self.cooldown = max(0.0, float(cooldown))
        self.spacing = max(0.0, float(spacing))
        self._is_rate_limited = is_rate_limited
        self._clock = clock
        self._sleep = sleep
        self._state = RateLimiterState()

    @classmethod
    def from_config(cls, config: RateLimitConfig, *, name: str = "default") -> "RateLimitedExecutor":
        """Build an executor from a ``rate_limits.*`` config section."""
        return cls(
            limit=config.limit,
            interval=config.interval,
            max_retries=config.max_retries,
            cooldown=config.cooldown,
            spacing=config.spacing,
            name=name,
        )

    async def _acquire(self) -> None:
        state = self._state
        if not state.busy and not state.waiters:
            state.busy = True
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        state.waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The gate was handed over just as we were cancelled; pass it on.
                self._release()
            else:
                try:
                    state.waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def _release(self) -> None:
        state = self._state
        while state.waiters:
            waiter = state.waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        state.busy = False

    async def _wait_for_slot(self) -> None:
        state = self._state
        while True:
            now = self._clock()
            while state.admissions and state.admissions[0] + self.interval <= now:
                state.admissions.popleft()
            if len(state.admissions) < self.limit:
                state.admissions.append(now)
                return
            wait = state.admissions[0] + self.interval - now
            log.debug("Rate limit window full", limiter=self.name, wait_seconds=round(wait, 3))
            await self._sleep(wait)

    async def _run_once(self, operation: Callable[[], Awaitable[T]]) -> T:
        await self._acquire()
        try:
            await self._wait_for_slot()
            try:
                result = await operation()
            except Exception:
                if self.spacing:
                    await self._sleep(self.spacing)
                raise
            if self.spacing:
                await self._sleep(self.spacing)
            return result
        finally:
            self._release()

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under the budget, retrying rate-limit rejections.

        Raises:
            RateLimitExceededError: every attempt was rejected with a rate-limit signal
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                return await self._run_once(operation)
            except Exception as e:
                if not self._is_rate_limited(e):
                    raise
                if attempts > self.max_retries:
                    log.error("Rate limit retries exhausted", limiter=self.name, attempts=attempts)
                    raise RateLimitExceededError(attempts) from e
                log.warning(
                    "Rate limit hit, cooling down before retry",
                    limiter=self.name,
                    attempt=attempts,
                    cooldown_seconds=self.cooldown,
                )
                await self._sleep(self.cooldown)
