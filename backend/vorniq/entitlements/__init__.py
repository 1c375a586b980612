"""
Subscription entitlement engine.

This package provides:
- EntitlementState / SubscriptionRecord: derived state and its source row
- resolve_entitlement_state: stateless, fail-locked evaluation
- EntitlementResolver: keeps state in step with the current principal
- Service catalog: the six services and their routes
- Access Gate: is_unlocked, route_guard, preview_guard, navigation_decoration
- Error taxonomy: all recovered to "not entitled" inside the engine
"""

from vorniq.entitlements.errors import (
    EntitlementError,
    EntitlementLookupFailedError,
    IdentityUnavailableError,
    MalformedServiceIdListError,
    UnknownServiceError,
)
from vorniq.entitlements.catalog import (
    SERVICES,
    TOTAL_SERVICES,
    ServiceDefinition,
    ServiceId,
    get_service,
    get_service_by_key,
)
from vorniq.entitlements.models import (
    EMPTY_STATE,
    LOADING_STATE,
    EntitlementState,
    SubscriptionRecord,
    SubscriptionStatus,
    derive_entitlement_state,
    is_record_active,
    parse_expiry,
    parse_service_ids,
)
from vorniq.entitlements.service import SubscriptionStore, resolve_entitlement_state
from vorniq.entitlements.gate import (
    AccessGate,
    Allow,
    Decision,
    NavigationDecoration,
    RedirectToPreview,
    RedirectToService,
    StayOnPreview,
    is_unlocked,
    navigation_decoration,
    navigation_items,
    paywall_prompt,
    preview_guard,
    route_guard,
)
from vorniq.entitlements.resolver import EntitlementResolver

__all__ = [
    # Errors
    "EntitlementError",
    "EntitlementLookupFailedError",
    "IdentityUnavailableError",
    "MalformedServiceIdListError",
    "UnknownServiceError",
    # Catalog
    "SERVICES",
    "TOTAL_SERVICES",
    "ServiceDefinition",
    "ServiceId",
    "get_service",
    "get_service_by_key",
    # Models
    "EMPTY_STATE",
    "LOADING_STATE",
    "EntitlementState",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "derive_entitlement_state",
    "is_record_active",
    "parse_expiry",
    "parse_service_ids",
    # Evaluation
    "SubscriptionStore",
    "resolve_entitlement_state",
    "EntitlementResolver",
    # Gate
    "AccessGate",
    "Allow",
    "Decision",
    "NavigationDecoration",
    "RedirectToPreview",
    "RedirectToService",
    "StayOnPreview",
    "is_unlocked",
    "navigation_decoration",
    "navigation_items",
    "paywall_prompt",
    "preview_guard",
    "route_guard",
]
