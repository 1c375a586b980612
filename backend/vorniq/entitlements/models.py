from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import FrozenSet, Iterable, Optional, Union

from .errors import MalformedServiceIdListError

logger = logging.getLogger(__name__)

RawServiceIds = Union[str, bytes, Iterable[Union[int, str]], None]
RawExpiry = Union[datetime, str, None]


class SubscriptionStatus(str, enum.Enum):
    """Subscription lifecycle status as stored."""
    ACTIVE = "active"
    CREATED = "created"        # Order placed, payment not confirmed
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SubscriptionRecord:
    """Most recent subscription row for an owner, as read from the store."""

    owner_id: str
    service_ids: RawServiceIds
    status: str
    created_at: datetime
    expires_at: RawExpiry = None
    id: Optional[int] = None
    subscription_type: Optional[str] = None
    total_price: Optional[Decimal] = None
    order_id: Optional[str] = None


@dataclass(frozen=True)
class EntitlementState:
    """Derived entitlement snapshot. Replaced whole, never patched."""

    is_active: bool
    unlocked_service_ids: FrozenSet[int]
    is_loading: bool = False

    def __post_init__(self) -> None:
        ids = frozenset(self.unlocked_service_ids)
        if ids and not self.is_active:
            raise ValueError("unlocked_service_ids must be empty when is_active is False")
        object.__setattr__(self, "unlocked_service_ids", ids)

    def to_dict(self) -> dict:
        return {
            "hasActiveSubscription": self.is_active,
            "subscribedServices": sorted(self.unlocked_service_ids),
            "isLoading": self.is_loading,
        }


LOADING_STATE = EntitlementState(is_active=False, unlocked_service_ids=frozenset(), is_loading=True)
EMPTY_STATE = EntitlementState(is_active=False, unlocked_service_ids=frozenset(), is_loading=False)


def _tokenize(raw: RawServiceIds) -> list:
    if raw is None:
        return []
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        # Older rows were written as a JSON array
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except ValueError:
                text = text.strip("[]")
            else:
                return list(decoded) if isinstance(decoded, list) else [decoded]
        return text.split(",")
    return list(raw)


def _to_int(token: object) -> Optional[int]:
    if isinstance(token, bool):
        return None
    if isinstance(token, int):
        return token
    text = str(token).strip()
    try:
        return int(text)
    except ValueError:
        return None


def parse_service_ids(raw: RawServiceIds) -> FrozenSet[int]:
    """
    Parse a stored service id list into a set of ints.

    Accepts "1,2,3", "[1, 2, 3]" or an iterable. Tokens that are not integers
    are dropped; partial entitlement is kept.
    """
    ids = set()
    dropped = []
    for token in _tokenize(raw):
        value = _to_int(token)
        if value is None:
            dropped.append(token)
            continue
        ids.add(value)
    if dropped:
        logger.debug("Dropped malformed service id tokens", extra={"tokens": [str(t) for t in dropped]})
    return frozenset(ids)


def parse_service_ids_strict(raw: RawServiceIds) -> FrozenSet[int]:
    """Like parse_service_ids, but raise on any unparseable token."""
    tokens = _tokenize(raw)
    bad = [str(t) for t in tokens if _to_int(t) is None]
    if bad:
        raise MalformedServiceIdListError(str(raw), bad)
    return frozenset(_to_int(t) for t in tokens)


def format_service_ids(service_ids: Iterable[int]) -> str:
    """Storage form: sorted, comma-delimited."""
    return ",".join(str(i) for i in sorted(set(service_ids)))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_expiry(value: RawExpiry) -> Optional[datetime]:
    """
    Normalize a stored expiry to an aware UTC datetime.

    Accepts a datetime or an ISO-8601 string ("2020-01-01T00:00:00Z").
    Naive values are taken as UTC. Raises ValueError when the value cannot
    be read as a timestamp.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return _as_utc(datetime.fromisoformat(text))
    raise ValueError(f"Unsupported expiry value: {value!r}")


def is_record_active(record: SubscriptionRecord, now: Optional[datetime] = None) -> bool:
    """Active status and not yet expired. Computed at read time, never stored."""
    status = record.status.value if isinstance(record.status, SubscriptionStatus) else str(record.status)
    if status.strip().lower() != SubscriptionStatus.ACTIVE.value:
        return False
    try:
        expires_at = parse_expiry(record.expires_at)
    except ValueError:
        logger.warning(
            "Unreadable subscription expiry, treating record as inactive",
            extra={"subscription_id": record.id, "expires_at": str(record.expires_at)},
        )
        return False
    if expires_at is None:
        return True
    compare_at = _as_utc(now or datetime.now(timezone.utc))
    return expires_at > compare_at


def derive_entitlement_state(
    record: Optional[SubscriptionRecord],
    now: Optional[datetime] = None,
) -> EntitlementState:
    """Full recomputation from the current record: none or inactive -> empty."""
    if record is None:
        return EMPTY_STATE
    if not is_record_active(record, now):
        return EMPTY_STATE
    return EntitlementState(
        is_active=True,
        unlocked_service_ids=parse_service_ids(record.service_ids),
        is_loading=False,
    )
