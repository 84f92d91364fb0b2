# listing_pipeline/utils.py
"""Shared utilities: logging setup, UTC clock and an async retry decorator."""
import asyncio
import logging
from datetime import datetime, timezone
from functools import wraps

from .config import LOG_LEVEL


def get_logger(name=__name__):
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, LOG_LEVEL, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("listing-pipeline")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def async_retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    """Retry a coroutine function with exponential backoff; the last attempt re-raises."""
    def deco_retry(f):
        @wraps(f)
        async def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return await f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                    await asyncio.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return await f(*args, **kwargs)
        return f_retry
    return deco_retry
