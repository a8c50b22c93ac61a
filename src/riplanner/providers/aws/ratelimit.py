import logging
import random
import threading
import time
from typing import Callable, Optional, TypeVar

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

THROTTLING_CODES = {
    "Throttling", "ThrottlingException", "ThrottledException", "RequestLimitExceeded",
    "TooManyRequestsException", "LimitExceededException", "RequestThrottled",
}


def is_throttling_error(error: Exception) -> bool:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code") in THROTTLING_CODES
    return False


class RateLimiter:
    """Exponential backoff with jitter for throttled AWS calls"""

    def __init__(self, base_delay: float = 1.0, max_delay: float = 30.0, max_retries: int = 5,
                 sleep: Callable[[float], None] = time.sleep,
                 cancel_event: Optional[threading.Event] = None):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries
        self.sleep = sleep
        self.cancel_event = cancel_event

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based), capped, plus up to 20% jitter"""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay + delay * 0.2 * random.random()

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Call ``func``, retrying throttling errors. Other errors propagate immediately"""
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                if not is_throttling_error(e) or attempt >= self.max_retries:
                    raise
                if self.cancel_event is not None and self.cancel_event.is_set():
                    raise
                attempt += 1
                delay = self.delay_for(attempt)
                logger.debug(f"Throttled, retry {attempt}/{self.max_retries} in {delay:.1f}s")
                self.sleep(delay)
