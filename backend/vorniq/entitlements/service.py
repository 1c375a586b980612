"""
Entitlement evaluation: latest subscription record -> EntitlementState.

Stateless; shared by the client-side EntitlementResolver and the backend API
(per-request state). Fails locked: any lookup error yields EMPTY_STATE and is
reported to the alert sink.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol, Tuple

from vorniq.entitlements.models import EMPTY_STATE, EntitlementState, SubscriptionRecord, derive_entitlement_state
from vorniq.identity.models import Principal
from vorniq.monitoring.entitlement_alerts import emit_lookup_failure

logger = logging.getLogger(__name__)


class SubscriptionStore(Protocol):
    """Read-only view of the subscription store used by the engine."""

    async def find_latest_subscription(self, owner_key: str) -> Optional[SubscriptionRecord]:
        """Most recently created record for owner_key regardless of status, or None."""
        ...


def owner_keys(principal: Principal, *, legacy_email_lookup: bool = False) -> Tuple[str, ...]:
    """Lookup keys in priority order. The principal id is canonical."""
    if legacy_email_lookup and principal.email != principal.id:
        return (principal.id, principal.email)
    return (principal.id,)


async def find_current_subscription(
    store: SubscriptionStore,
    principal: Principal,
    *,
    legacy_email_lookup: bool = False,
) -> Optional[SubscriptionRecord]:
    """First hit across owner_keys; a record keyed by id always wins."""
    for key in owner_keys(principal, legacy_email_lookup=legacy_email_lookup):
        record = await store.find_latest_subscription(key)
        if record is not None:
            if key != principal.id:
                logger.info(
                    "Subscription matched by legacy email key",
                    extra={"principal_id": principal.id, "subscription_id": record.id},
                )
            return record
    return None


async def resolve_entitlement_state(
    store: SubscriptionStore,
    principal: Optional[Principal],
    *,
    now: Optional[datetime] = None,
    legacy_email_lookup: bool = False,
) -> EntitlementState:
    """
    Compute entitlement for a principal.

    No principal -> EMPTY_STATE without touching the store.
    """
    if principal is None:
        return EMPTY_STATE

    try:
        record = await find_current_subscription(store, principal, legacy_email_lookup=legacy_email_lookup)
        state = derive_entitlement_state(record, now)
    except Exception as e:
        logger.exception("Entitlement lookup failed for principal %s", principal.id)
        emit_lookup_failure(principal.id, str(e))
        return EMPTY_STATE

    logger.debug(
        "Entitlement resolved",
        extra={
            "principal_id": principal.id,
            "has_record": record is not None,
            "is_active": state.is_active,
            "services": sorted(state.unlocked_service_ids),
        },
    )
    return state
