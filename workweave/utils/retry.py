from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..context import RunContext


def compute_backoff(attempt: int, base: float = 1.0) -> float:
    """Linear backoff: the n-th retry waits ``n * base`` seconds."""
    return max(0, attempt) * base


async def schedule_retry(context: "RunContext", attempt: int, base: float = 1.0) -> None:
    """Sleep for the backoff delay, returning early if the context is cancelled."""
    delay = compute_backoff(attempt, base)
    remaining = context.remaining()
    if remaining is not None:
        delay = min(delay, remaining)
    await context.sleep(delay)
