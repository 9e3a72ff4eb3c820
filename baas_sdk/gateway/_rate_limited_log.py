"""
Thread-safe rate-limited logging utilities.

Endpoint resolution can fail on every refresh while DNS is down; this keeps
one line per distinct message per interval instead of one per attempt.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# Entries expire after the longest interval any caller is expected to ask for
_MAX_INTERVAL = 3600

_log_cache: TTLCache = TTLCache(maxsize=256, ttl=_MAX_INTERVAL)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = 60,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message at most once per ``interval`` seconds.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical messages, in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _log_cache_lock:
        now = _log_cache.timer()
        last_time = _log_cache.get(key)
        if last_time is not None and now - last_time < interval:
            return False
        _log_cache[key] = now

    log_method(message)
    return True


def reset_rate_limited_log() -> None:
    """Forget every message seen so far."""
    with _log_cache_lock:
        _log_cache.clear()
