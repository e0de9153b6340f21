"""
Thread-safe rate-limited logging utilities.

Poll loops hit the same transient failure many times in a row; this keeps
one line per distinct message per TTL window.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

# Configure logger
logger = logging.getLogger(__name__)

_LOG_CACHE_TTL = 60

# Global rate limiting cache with thread safety
_error_log_cache = TTLCache(maxsize=100, ttl=_LOG_CACHE_TTL)
_error_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message with rate limiting, in a thread-safe manner.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)

    key = f"{level}:{message}"
    with _error_log_cache_lock:
        if key in _error_log_cache:
            return False
        log_method(message)
        _error_log_cache[key] = True  # Value doesn't matter, TTL handles expiry
    return True


def clear_rate_limit_cache() -> None:
    """Forget every suppressed message."""
    with _error_log_cache_lock:
        _error_log_cache.clear()
