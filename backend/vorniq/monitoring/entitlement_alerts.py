"""
Alerts for entitlement lookup failures and repeated paywall denials.
"""

import logging
import time
from collections import defaultdict
from typing import Optional

logger = logging.getLogger(__name__)

# Sliding one-minute window of deny timestamps per principal
_deny_counts: defaultdict[str, list] = defaultdict(list)
DENY_THRESHOLD_PER_MIN = 10


def emit_lookup_failure(owner_key: Optional[str], error_message: str) -> None:
    """Report a failed subscription lookup. The caller has already failed locked."""
    logger.error(
        "Entitlement lookup failure",
        extra={"owner_key": owner_key, "error": error_message},
    )


def _record_deny(principal_id: str, now: Optional[float] = None) -> int:
    now = time.time() if now is None else now
    cutoff = now - 60
    window = [t for t in _deny_counts[principal_id] if t > cutoff]
    window.append(now)
    _deny_counts[principal_id] = window
    return len(window)


def record_deny_and_alert(principal_id: str, service_key: str, now: Optional[float] = None) -> int:
    """Record a paywall denial; alert when a principal crosses the per-minute threshold."""
    count = _record_deny(principal_id, now)
    if count >= DENY_THRESHOLD_PER_MIN:
        emit_deny_alert(principal_id, service_key, count)
    return count


def emit_deny_alert(principal_id: str, service_key: str, count: int) -> None:
    logger.warning(
        "Repeated paywall denials",
        extra={"principal_id": principal_id, "service_key": service_key, "count_per_min": count},
    )


def reset_deny_counts() -> None:
    _deny_counts.clear()
