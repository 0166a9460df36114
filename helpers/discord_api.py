"""
Centralized wrapper for Discord API calls.

Every call runs under a shared rate limiter and transient Discord server
errors (5xx) are retried with jittered exponential backoff. Unlike a
fire-and-forget queue the caller awaits the result, and the final error is
re-raised so callers can decide whether it is fatal.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import discord
from aiolimiter import AsyncLimiter

from utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
BASE_DELAY = 0.5

api_limiter = AsyncLimiter(max_rate=45, time_period=1)


def is_transient(exc: BaseException) -> bool:
    """Return True for Discord server errors worth retrying."""
    if isinstance(exc, discord.DiscordServerError):
        return True
    if isinstance(exc, discord.HTTPException):
        status = getattr(exc, "status", None)
        return isinstance(status, int) and 500 <= status < 600
    return False


async def call_discord(
    task: Callable[[], Awaitable[T]],
    *,
    description: str = "discord call",
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
) -> T:
    """
    Run a Discord API call under the shared limiter, retrying 5xx errors.

    Args:
        task: Zero-argument callable returning the awaitable to run.
        description: Label used in retry log messages.
        max_retries: Total number of attempts for transient errors.
        base_delay: First backoff delay in seconds.

    Returns:
        Whatever the call returns.

    Raises:
        The last exception raised by the call.
    """
    attempt = 0
    while True:
        try:
            async with api_limiter:
                return await task()
        except Exception as e:
            attempt += 1
            if is_transient(e) and attempt < max_retries:
                delay = base_delay * (2 ** (attempt - 1))
                delay = delay + random.uniform(0, 0.1 * delay)  # noqa: S311
                logger.warning(
                    f"Transient error in {description} (attempt {attempt}/{max_retries}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
                continue
            raise
