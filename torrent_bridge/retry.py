import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded polling: up to max_attempts checks, interval seconds apart."""
    max_attempts: int = 6
    interval: float = 0.3

    @property
    def budget(self) -> float:
        return self.max_attempts * self.interval


async def poll_until(policy: RetryPolicy, check: Callable[[], Optional[T]]) -> Optional[T]:
    """
    Call check() until it returns a non-None value or attempts run out.

    Sleeps policy.interval before every attempt, so the full budget is
    spent when nothing turns up.
    """
    for _ in range(policy.max_attempts):
        await asyncio.sleep(policy.interval)
        result = check()
        if result is not None:
            return result
    return None
