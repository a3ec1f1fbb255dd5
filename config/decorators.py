import time
import functools
from httpx import ReadError, RemoteProtocolError
import logging

from config.billing_config import SUPABASE_RETRY_ATTEMPTS

logger = logging.getLogger(__name__)

TRANSIENT_MARKERS = ("DECRYPTION_FAILED_OR_BAD_RECORD_MAC", "Server disconnected")


def _is_transient(error: Exception) -> bool:
    if isinstance(error, (ReadError, RemoteProtocolError)):
        return True
    return any(marker in str(error) for marker in TRANSIENT_MARKERS)


def retry_on_transient_error(func=None, *, attempts: int = None, delay: float = 0.5):
    """
    Retry a Supabase call when it fails with an intermittent transport error
    (dropped connection, SSL DECRYPTION_FAILED_OR_BAD_RECORD_MAC).
    Any other error is raised immediately.
    """
    max_retries = attempts or SUPABASE_RETRY_ATTEMPTS

    def decorator(inner):
        @functools.wraps(inner)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return inner(*args, **kwargs)
                except Exception as e:
                    if _is_transient(e) and attempt < max_retries - 1:
                        logger.warning(f"Transient error on {inner.__name__}. Retrying in {delay} seconds... (Attempt {attempt + 1}/{max_retries})")
                        time.sleep(delay)
                    else:
                        logger.error(f"{inner.__name__} failed on attempt {attempt + 1}: {e}")
                        raise
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


@retry_on_transient_error
def execute_query(query):
    """Run a Supabase query builder."""
    return query.execute()
