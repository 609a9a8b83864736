"""
Storage retry policy

Only StorageUnavailableError is retried. Business-rule errors
(OverbookError, InvalidTransitionError, ...) surface on the first attempt.
"""
import logging

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import settings
from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)


def retry_storage(func=None, *, attempts: int = None, wait_seconds: float = None):
    """
    Decorator: re-run the wrapped call on StorageUnavailableError.

    `attempts` is the number of retries after the first try
    (STORAGE_RETRY_ATTEMPTS by default).
    """
    retries = settings.STORAGE_RETRY_ATTEMPTS if attempts is None else attempts
    wait = settings.STORAGE_RETRY_WAIT_SECONDS if wait_seconds is None else wait_seconds

    decorator = retry(
        retry=retry_if_exception_type(StorageUnavailableError),
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=wait, max=wait * 10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    if func is None:
        return decorator
    return decorator(func)
