"""
Entitlement dependencies for API routes.

Per-request EntitlementState for the calling principal, read through the
status cache, and the require_service() guard for per-service routers.
Evaluation fails locked: a store failure is reported and answered with
"not entitled", and is never cached.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends

from vorniq.config import Settings
from vorniq.entitlements.cache import SubscriptionStatusCache
from vorniq.entitlements.catalog import get_service
from vorniq.entitlements.gate import is_unlocked, paywall_prompt
from vorniq.entitlements.models import (
    EMPTY_STATE,
    EntitlementState,
    SubscriptionRecord,
    derive_entitlement_state,
    parse_expiry,
)
from vorniq.entitlements.service import SubscriptionStore, find_current_subscription
from vorniq.identity.models import Principal
from vorniq.monitoring.entitlement_alerts import emit_lookup_failure, record_deny_and_alert
from vorniq.platform.errors import PaymentRequiredError
from vorniq.api.dependencies.auth import (
    get_app_settings,
    get_principal,
    get_status_cache,
    get_subscription_store,
)

logger = logging.getLogger(__name__)


def _cache_ttl(record: Optional[SubscriptionRecord], default_ttl: int, now: datetime) -> int:
    """Never cache an active state past the record's expiry."""
    if record is None:
        return default_ttl
    try:
        expires_at = parse_expiry(record.expires_at)
    except ValueError:
        return default_ttl
    if expires_at is None:
        return default_ttl
    remaining = int((expires_at - now).total_seconds())
    return max(0, min(default_ttl, remaining))


async def load_entitlement_state(
    principal: Principal,
    store: SubscriptionStore,
    cache: SubscriptionStatusCache,
    settings: Settings,
    *,
    now: Optional[datetime] = None,
) -> EntitlementState:
    cached = await cache.get(principal.id)
    if cached is not None:
        return cached

    now = now or datetime.now(timezone.utc)
    try:
        record = await find_current_subscription(
            store, principal, legacy_email_lookup=settings.legacy_email_lookup
        )
        state = derive_entitlement_state(record, now)
    except Exception as e:
        logger.exception("Entitlement lookup failed for principal %s", principal.id)
        emit_lookup_failure(principal.id, str(e))
        return EMPTY_STATE

    await cache.set(principal.id, state, ttl_seconds=_cache_ttl(record, settings.status_cache_ttl_seconds, now))
    return state


async def get_entitlement_state(
    principal: Principal = Depends(get_principal),
    store: SubscriptionStore = Depends(get_subscription_store),
    cache: SubscriptionStatusCache = Depends(get_status_cache),
    settings: Settings = Depends(get_app_settings),
) -> EntitlementState:
    return await load_entitlement_state(principal, store, cache, settings)


def require_service(service_id: int) -> Callable:
    """
    Dependency factory guarding one service's API routes.

    Use on a router: APIRouter(dependencies=[Depends(require_service(ServiceId.CRM))])
    Raises 402 with the preview route when the service is locked, else
    returns the principal.
    """
    service = get_service(service_id)
    prompt = paywall_prompt(service.id)

    async def _check(
        principal: Principal = Depends(get_principal),
        state: EntitlementState = Depends(get_entitlement_state),
    ) -> Principal:
        if is_unlocked(service.id, state):
            return principal
        logger.warning(
            "%s access denied - not entitled",
            service.name,
            extra={"principal_id": principal.id, "service_id": service.id},
        )
        record_deny_and_alert(principal.id, service.key)
        raise PaymentRequiredError(
            message=prompt.title,
            details={
                "service_id": service.id,
                "service_key": service.key,
                "preview_route": service.preview_route,
                "subscribe_link": prompt.subscribe_link,
                "demo_link": prompt.demo_link,
            },
        )

    return _check
