"""Request throttling backed by fastapi-limiter."""

from fastapi import Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from .core import get_settings


def rate_limit(times: int, seconds: int):
    """
    Build a route dependency allowing ``times`` calls per ``seconds``.

    Throttling is skipped when ``RATE_LIMIT_ENABLED`` is off or the
    limiter has not been initialized at startup.
    """
    limiter = RateLimiter(times=times, seconds=seconds)

    async def dependency(request: Request, response: Response):
        if not get_settings().RATE_LIMIT_ENABLED or FastAPILimiter.redis is None:
            return
        await limiter(request, response)

    return dependency
