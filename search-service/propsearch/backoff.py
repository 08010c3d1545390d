import logging
import time
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_backoff(
    fn: Callable[[], T],
    *,
    max_retries: int,
    base_delay: float,
    retry_on: Tuple[Type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
) -> T:
    """
    Run `fn` up to `max_retries` times, sleeping `attempt * base_delay` after failed attempt `attempt`.

    Only exceptions in `retry_on` are retried; the last one is re-raised once attempts run out.
    """
    attempt = 1
    while True:
        try:
            return fn()
        except retry_on as e:
            if attempt >= max_retries:
                logger.error("%s failed after %d attempts: %s", label, attempt, e)
                raise
            delay = base_delay * attempt
            logger.warning("%s failed (attempt %d/%d), retrying in %.2fs: %s", label, attempt, max_retries, delay, e)
            sleep(delay)
            attempt += 1
