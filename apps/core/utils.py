import asyncio
import functools
import logging
from datetime import datetime, timezone

from apps.core.errors import BackendTimeout

logger = logging.getLogger(__name__)


async def call_with_timeout(seconds: float, func, *args, label: str = "operation", **kwargs):
    """Run a blocking backend call in a worker thread with a fixed deadline.

    There is no retry. On expiry the worker thread is left to finish on its own
    and the caller gets a BackendTimeout to report to the user.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
    try:
        return await asyncio.wait_for(future, timeout=seconds)
    except asyncio.TimeoutError:
        logger.error("%s timed out after %s seconds", label, seconds)
        raise BackendTimeout(f"{label.capitalize()} timeout after {seconds:g} seconds")


def utcnow() -> datetime:
    """Timezone-aware current time, used for every created/updated stamp."""
    return datetime.now(timezone.utc)
