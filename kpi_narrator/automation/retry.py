import random
import time
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Tuple, Type

from kpi_narrator.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for transient text-generation failures.

    The delay after failed attempt n (1-based) is
    base_delay * multiplier ** (n - 1), capped at max_delay,
    plus up to `jitter` * delay of random spread.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("retry delays must be >= 0")
        if self.multiplier < 1:
            raise ConfigurationError("multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ConfigurationError("jitter must be between 0 and 1")

    def delay_for(self, attempt: int) -> float:
        delay = min(
            self.base_delay * (self.multiplier ** (attempt - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay += random.uniform(0, self.jitter * delay)
        return delay


def retry(
    times: int = 3,
    delay: float = 3,
    backoff: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    Retry decorator for automation tasks.

    Args:
        times (int): Number of retry attempts
        delay (float): Delay in seconds before the second attempt
        backoff (float): Multiplier applied to the delay after each failure
        exceptions (tuple): Exception types worth retrying; others propagate
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            wait = delay
            for attempt in range(1, times + 1):
                try:
                    logger.info(
                        "Attempt %s/%s for %s",
                        attempt,
                        times,
                        func.__name__,
                    )
                    return func(*args, **kwargs)
                except exceptions as exc:
                    last_exception = exc
                    logger.error(
                        "Error on attempt %s for %s: %s",
                        attempt,
                        func.__name__,
                        exc,
                    )
                    if attempt < times:
                        time.sleep(wait)
                        wait *= backoff

            logger.critical(
                "All %s attempts failed for %s",
                times,
                func.__name__,
            )
            raise last_exception

        return wrapper

    return decorator
