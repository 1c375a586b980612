"""
Subscription API routes.

- GET  /api/subscription/status: entitlement for the calling principal
- POST /api/subscribe: record a purchase (status=created) and return the order
- POST /api/verify-payment: confirm payment for an order (status=active)

The owner is always the principal from the access token; it is never taken
from the request body.
"""

import hashlib
import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator

from vorniq.config import Settings
from vorniq.entitlements.cache import SubscriptionStatusCache
from vorniq.entitlements.errors import UnknownServiceError
from vorniq.entitlements.gate import navigation_items
from vorniq.entitlements.models import EntitlementState
from vorniq.identity.models import Principal
from vorniq.models.subscription import SubscriptionType
from vorniq.platform.errors import NotFoundError, ValidationError
from vorniq.services.subscription_store import SqlSubscriptionStore
from vorniq.api.dependencies.auth import (
    get_app_settings,
    get_principal,
    get_status_cache,
    get_subscription_store,
)
from vorniq.api.dependencies.entitlements import get_entitlement_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["subscription"])

CURRENCY = "INR"


# Request/Response Models

class SubscribeRequest(BaseModel):
    """Services being bought and the quoted price."""
    model_config = ConfigDict(populate_by_name=True)

    service_ids: List[int] = Field(..., alias="serviceIds", min_length=1)
    total_price: Decimal = Field(..., alias="totalPrice", ge=0)
    subscription_type: SubscriptionType = Field(SubscriptionType.INDIVIDUAL, alias="subscriptionType")

    @field_validator("service_ids")
    @classmethod
    def dedupe_service_ids(cls, v: List[int]) -> List[int]:
        return sorted(set(v))


class SubscribeResponse(BaseModel):
    orderId: str
    amount: int
    currency: str
    serviceIds: List[int]
    subscriptionType: str


class VerifyPaymentRequest(BaseModel):
    """Payment gateway confirmation for an order."""
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: Optional[str] = None


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: Optional[str], secret: str) -> bool:
    if not signature:
        return False
    expected = payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature.strip())


def _owned_by(owner_id: str, principal: Principal, settings: Settings) -> bool:
    if owner_id == principal.id:
        return True
    return settings.legacy_email_lookup and owner_id == principal.email


@router.get("/subscription/status")
async def subscription_status(state: EntitlementState = Depends(get_entitlement_state)) -> dict:
    """
    Entitlement for the calling principal.

    Lookup failures answer "not entitled" rather than an error; lock state per
    service comes from the same gate the UI and route guards use.
    """
    return {
        "hasActiveSubscription": state.is_active,
        "subscribedServices": sorted(state.unlocked_service_ids),
        "services": {item.key: {"locked": item.locked} for item in navigation_items(state)},
    }


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    body: SubscribeRequest,
    principal: Principal = Depends(get_principal),
    store: SqlSubscriptionStore = Depends(get_subscription_store),
    cache: SubscriptionStatusCache = Depends(get_status_cache),
) -> SubscribeResponse:
    try:
        record = await store.create_subscription(
            owner_id=principal.id,
            service_ids=body.service_ids,
            total_price=body.total_price,
            subscription_type=body.subscription_type,
        )
    except UnknownServiceError as e:
        raise ValidationError("Unknown service id", details={"service": e.service}) from e

    # The newest row now decides entitlement, even while unpaid
    await cache.invalidate(principal.id)

    logger.info(
        "Subscription order created",
        extra={"principal_id": principal.id, "order_id": record.order_id, "service_ids": body.service_ids},
    )
    return SubscribeResponse(
        orderId=record.order_id,
        amount=to_minor_units(body.total_price),
        currency=CURRENCY,
        serviceIds=body.service_ids,
        subscriptionType=body.subscription_type.value,
    )


@router.post("/verify-payment")
async def verify_payment(
    body: VerifyPaymentRequest,
    principal: Principal = Depends(get_principal),
    store: SqlSubscriptionStore = Depends(get_subscription_store),
    cache: SubscriptionStatusCache = Depends(get_status_cache),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    order_id = body.razorpay_order_id.strip()
    payment_id = body.razorpay_payment_id.strip()

    if settings.payment_webhook_secret and not verify_payment_signature(
        order_id, payment_id, body.razorpay_signature, settings.payment_webhook_secret
    ):
        logger.warning(
            "Payment signature mismatch",
            extra={"principal_id": principal.id, "order_id": order_id},
        )
        raise ValidationError("Payment signature verification failed", details={"order_id": order_id})

    existing = await store.get_by_order_id(order_id)
    if existing is None or not _owned_by(existing.owner_id, principal, settings):
        raise NotFoundError("Subscription order", order_id)

    record = await store.activate_subscription(order_id, payment_id)
    await cache.invalidate(principal.id)
    if record.owner_id != principal.id:
        await cache.invalidate(record.owner_id)

    return {"success": True, "orderId": record.order_id, "status": record.status}
