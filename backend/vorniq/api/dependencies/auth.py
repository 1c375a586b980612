"""
Request-scoped dependencies: settings, store, cache and the calling principal.

The principal comes only from the bearer access token. Owner ids are never
accepted from request bodies.
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from vorniq.config import Settings, get_settings
from vorniq.entitlements.cache import SubscriptionStatusCache
from vorniq.entitlements.errors import IdentityUnavailableError
from vorniq.identity.models import Principal
from vorniq.identity.tokens import decode_principal
from vorniq.platform.errors import AuthenticationError
from vorniq.services.subscription_store import SqlSubscriptionStore

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_subscription_store(request: Request) -> SqlSubscriptionStore:
    return request.app.state.subscription_store


def get_status_cache(request: Request) -> SubscriptionStatusCache:
    return request.app.state.status_cache


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_principal(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Principal:
    """Principal for the access token, or 401."""
    token = _bearer_token(request)
    if token is None:
        raise AuthenticationError("Missing bearer token")
    try:
        principal = decode_principal(token, settings)
    except IdentityUnavailableError as e:
        raise AuthenticationError("Invalid or expired access token", details={"reason": e.detail}) from e
    request.state.principal_id = principal.id
    return principal
