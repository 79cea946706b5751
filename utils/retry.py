"""
Exponential-backoff retry shell for collectors
"""
import logging
import time
from typing import Callable, Optional, TypeVar

from utils.config_utils import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(fn: Callable[[], T], name: str,
               max_retries: int = RetryConfig.MAX_RETRIES,
               base_delay: float = RetryConfig.BASE_DELAY_SECONDS,
               sleep: Callable[[float], None] = time.sleep) -> Optional[T]:
    """
    Call fn() up to max_retries times, waiting base_delay * 2**attempt
    seconds between attempts. Returns fn's result, or None once every attempt
    has failed. Never raises.
    """
    for attempt in range(max_retries):
        try:
            return fn()
        except Exception as e:
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    f"[Collector:{name}] Attempt {attempt + 1}/{max_retries} failed: {e}. "
                    f"Retrying in {delay:g}s..."
                )
                sleep(delay)
            else:
                logger.error(f"[Collector:{name}] All {max_retries} attempts failed: {e}")
    return None
