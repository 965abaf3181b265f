import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

from config import get_settings
from modules.common.errors import TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (TransientIOError, OperationalError)


def call_with_retry(
    fn: Callable[..., T],
    *args,
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
) -> T:
    """
    Calls fn, retrying transient failures with exponential backoff.

    After the last attempt the original exception propagates to the caller.
    """
    settings = get_settings()
    attempts = max(1, attempts if attempts is not None else settings.retry_attempts)
    delay = backoff if backoff is not None else settings.retry_backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except retry_on as exc:
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", getattr(fn, "__name__", fn), attempts, exc)
                raise
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                getattr(fn, "__name__", fn), attempt, attempts, delay, exc,
            )
            sleep(delay)
            delay *= 2
    raise AssertionError("unreachable")
