"""
Service catalog and per-service access decisions.

The catalog is public. The access decision needs a principal and answers with
the same guard result the UI uses:
- view=app (default): a locked service is redirected to its preview page
- view=preview: a full-bundle subscriber on a preview page is sent on to
  the service itself
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends

from vorniq.entitlements.catalog import SERVICES, get_service_by_key
from vorniq.entitlements.gate import Allow, RedirectToService, paywall_prompt, preview_guard, route_guard
from vorniq.entitlements.models import EntitlementState
from vorniq.api.dependencies.entitlements import get_entitlement_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/services", tags=["services"])


@router.get("")
def list_services() -> dict:
    return {"services": [service.to_dict() for service in SERVICES]}


@router.get("/{key}/access")
async def service_access(
    key: str,
    view: Literal["app", "preview"] = "app",
    state: EntitlementState = Depends(get_entitlement_state),
) -> dict:
    # UnknownServiceError propagates and is answered as 404
    service = get_service_by_key(key)

    if view == "preview":
        preview = preview_guard(service.id, state)
        if isinstance(preview, RedirectToService):
            return {"service": service.key, "decision": "redirect", "location": preview.location}
        return {"service": service.key, "decision": "stay"}

    decision = route_guard(service.id, state)
    if isinstance(decision, Allow):
        return {"service": service.key, "decision": "allow"}

    prompt = paywall_prompt(service.id)
    return {
        "service": service.key,
        "decision": "redirect",
        "location": decision.location,
        "paywall": {
            "title": prompt.title,
            "message": prompt.message,
            "subscribeLink": prompt.subscribe_link,
            "demoLink": prompt.demo_link,
        },
    }
