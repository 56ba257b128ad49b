"""
Trade Rate Limiting

Limits how many buy/sell requests a single sender may submit per minute.
Counts are kept per sender in a fixed 60-second window; the first request
after the window expires starts a new one.

Storage:
- OrderedDict {sender: (count, window_start)} kept in LRU order
- Expired entries are dropped once more than MAX_TRACKED_SENDERS are tracked
"""
import threading
import time
from collections import OrderedDict
from typing import Tuple

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve import config

logger = get_logger(__name__)

WINDOW_SECONDS = 60
MAX_TRACKED_SENDERS = 1000

# {sender: (count, first_request_timestamp_in_window)}
rate_limit_cache: "OrderedDict[str, Tuple[int, int]]" = OrderedDict()
_lock = threading.Lock()


def check_rate_limit(sender: str) -> bool:
    """
    Records a request from ``sender`` and reports whether it is allowed.

    Returns:
        True if the request is within the limit, False if it must be rejected.
    """
    now = int(time.time())
    limit = config.RATE_LIMIT_PER_MINUTE

    with _lock:
        if len(rate_limit_cache) > MAX_TRACKED_SENDERS:
            cleanup_old_entries(now - WINDOW_SECONDS)

        entry = rate_limit_cache.get(sender)
        if entry is None or now - entry[1] >= WINDOW_SECONDS:
            rate_limit_cache[sender] = (1, now)
            rate_limit_cache.move_to_end(sender)
            return True

        count, window_start = entry
        if count >= limit:
            logger.warning(f"Rate limit exceeded for sender {sender}: {count} requests, limit {limit}")
            return False

        rate_limit_cache[sender] = (count + 1, window_start)
        rate_limit_cache.move_to_end(sender)
        logger.debug(f"Rate limit check passed for {sender}: {count + 1}/{limit}")
        return True


def cleanup_old_entries(cutoff_time: int) -> None:
    """Removes entries whose window started before ``cutoff_time``."""
    expired = [sender for sender, (_, started) in rate_limit_cache.items() if started < cutoff_time]
    for sender in expired:
        del rate_limit_cache[sender]
    if expired:
        logger.debug(f"Cleaned up {len(expired)} old rate limit entries")


def reset() -> None:
    with _lock:
        rate_limit_cache.clear()
