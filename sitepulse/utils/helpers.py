"""
General helper utilities
"""
import asyncio
import logging
from typing import Any, Awaitable, Optional, Tuple

logger = logging.getLogger(__name__)


def format_currency(amount: float) -> str:
    """Format amount as Philippine Peso"""
    return f"₱{amount:,.2f}"


async def with_fallback(
    awaitable: Awaitable[Any],
    fallback: Any,
    name: str,
    timeout: Optional[float] = None,
) -> Any:
    """Await a fetch with a timeout; on any failure log it and return the fallback"""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        logger.error(f"Timed out loading {name} after {timeout}s")
    except Exception as e:
        logger.error(f"Error loading {name}: {e}")
    return fallback


async def gather_with_fallback(
    *loaders: Tuple[Awaitable[Any], Any, str],
    timeout: Optional[float] = None,
) -> list:
    """
    Run ``(awaitable, fallback, name)`` loaders in parallel.

    Each one times out and falls back on its own; a failure never cancels the others.
    """
    return list(await asyncio.gather(*(
        with_fallback(awaitable, fallback, name, timeout)
        for awaitable, fallback, name in loaders
    )))
