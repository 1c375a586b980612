"""
Access Gate.

Pure predicates over (service_id, EntitlementState). Every surface that shows
or guards a service (header nav, sidebar, direct route access, API routes)
asks these functions, so lock badges and route guards can never disagree.
No I/O happens here.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple, Union

from vorniq.entitlements.catalog import SERVICES, TOTAL_SERVICES, get_service
from vorniq.entitlements.models import EntitlementState

if TYPE_CHECKING:
    from vorniq.entitlements.resolver import EntitlementResolver

SUBSCRIBE_LINK = "/#services"
DEMO_LINK = "/#demo"


@dataclass(frozen=True)
class Allow:
    service_id: int


@dataclass(frozen=True)
class RedirectToPreview:
    service_id: int
    location: str


Decision = Union[Allow, RedirectToPreview]


@dataclass(frozen=True)
class StayOnPreview:
    service_id: int


@dataclass(frozen=True)
class RedirectToService:
    service_id: int
    location: str


PreviewDecision = Union[StayOnPreview, RedirectToService]


@dataclass(frozen=True)
class NavigationDecoration:
    service_id: int
    key: str
    name: str
    route: str
    locked: bool

    def to_dict(self) -> dict:
        return {
            "id": self.service_id,
            "key": self.key,
            "name": self.name,
            "route": self.route,
            "locked": self.locked,
        }


@dataclass(frozen=True)
class PaywallPrompt:
    service_id: int
    title: str
    message: str
    subscribe_link: str = SUBSCRIBE_LINK
    demo_link: str = DEMO_LINK


def is_unlocked(service_id: int, state: EntitlementState) -> bool:
    """
    Active subscription and either the id is listed or the set is a full bundle.

    The bundle check counts elements: any set of TOTAL_SERVICES ids unlocks
    everything, whichever ids it holds.
    """
    if not state.is_active:
        return False
    unlocked = state.unlocked_service_ids
    return service_id in unlocked or len(unlocked) == TOTAL_SERVICES


def route_guard(service_id: int, state: EntitlementState) -> Decision:
    """Allow, or send a locked service to its unauthenticated preview."""
    if is_unlocked(service_id, state):
        return Allow(service_id=service_id)
    return RedirectToPreview(service_id=service_id, location=get_service(service_id).preview_route)


def preview_guard(service_id: int, state: EntitlementState) -> PreviewDecision:
    """
    Decide what a service's public preview page does for the caller.

    Only a full-bundle subscriber is sent on to the service itself. Holders of
    a partial subscription stay on the preview, even for a service they own.
    """
    service = get_service(service_id)
    if state.is_active and len(state.unlocked_service_ids) == TOTAL_SERVICES:
        return RedirectToService(service_id=service.id, location=service.route)
    return StayOnPreview(service_id=service.id)


def navigation_decoration(service_id: int, state: EntitlementState) -> NavigationDecoration:
    service = get_service(service_id)
    return NavigationDecoration(
        service_id=service.id,
        key=service.key,
        name=service.name,
        route=service.route,
        locked=not is_unlocked(service_id, state),
    )


def navigation_items(state: EntitlementState) -> Tuple[NavigationDecoration, ...]:
    return tuple(navigation_decoration(service.id, state) for service in SERVICES)


def paywall_prompt(service_id: int) -> PaywallPrompt:
    service = get_service(service_id)
    return PaywallPrompt(
        service_id=service.id,
        title=f"Unlock {service.name}",
        message=(
            "Subscribe to access this feature and all other powerful tools in VorniQ. "
            "Start your success journey now!"
        ),
    )


class AccessGate:
    """The gate bound to a resolver's current state, for UI code."""

    def __init__(self, resolver: "EntitlementResolver"):
        self._resolver = resolver

    @property
    def state(self) -> EntitlementState:
        return self._resolver.state

    def is_unlocked(self, service_id: int) -> bool:
        return is_unlocked(service_id, self._resolver.state)

    def route_guard(self, service_id: int) -> Decision:
        return route_guard(service_id, self._resolver.state)

    def navigation_decoration(self, service_id: int) -> NavigationDecoration:
        return navigation_decoration(service_id, self._resolver.state)

    def navigation_items(self) -> Tuple[NavigationDecoration, ...]:
        return navigation_items(self._resolver.state)

    def preview_guard(self, service_id: int) -> PreviewDecision:
        return preview_guard(service_id, self._resolver.state)
