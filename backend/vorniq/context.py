"""
Entitlement context.

One explicitly owned bundle of IdentityResolver, EntitlementResolver and
AccessGate. UI shells build one per session; tests build as many as they like.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from vorniq.config import Settings, get_settings
from vorniq.entitlements.gate import AccessGate
from vorniq.entitlements.models import EntitlementState
from vorniq.entitlements.resolver import EntitlementResolver
from vorniq.entitlements.service import SubscriptionStore
from vorniq.identity.provider import HttpIdentityProvider, IdentityProvider
from vorniq.identity.resolver import IdentityResolver
from vorniq.identity.snapshot import FilePrincipalSnapshotStore, PrincipalSnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class EntitlementContext:
    identity: IdentityResolver
    entitlements: EntitlementResolver
    gate: AccessGate
    # Set when the context built the provider and must close its HTTP client
    owned_provider: Optional[HttpIdentityProvider] = None

    async def start(self) -> EntitlementState:
        """Restore the session and wait for the first entitlement result."""
        await self.identity.restore()
        await self.entitlements.wait_idle()
        return self.entitlements.state

    async def sign_out(self) -> None:
        await self.identity.sign_out()

    async def close(self) -> None:
        self.entitlements.close()
        await self.entitlements.wait_idle()
        if self.owned_provider is not None:
            await self.owned_provider.aclose()


def create_entitlement_context(
    provider: IdentityProvider,
    store: SubscriptionStore,
    snapshot_store: Optional[PrincipalSnapshotStore] = None,
    settings: Optional[Settings] = None,
) -> EntitlementContext:
    settings = settings or get_settings()
    identity = IdentityResolver(provider, snapshot_store)
    entitlements = EntitlementResolver(
        identity,
        store,
        legacy_email_lookup=settings.legacy_email_lookup,
    )
    logger.debug(
        "Entitlement context created",
        extra={"legacy_email_lookup": settings.legacy_email_lookup},
    )
    return EntitlementContext(identity=identity, entitlements=entitlements, gate=AccessGate(entitlements))


def create_http_entitlement_context(
    store: SubscriptionStore,
    access_token: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> EntitlementContext:
    """Context backed by the configured auth server and the on-disk snapshot."""
    settings = settings or get_settings()
    if not settings.auth_server_url:
        raise ValueError("AUTH_SERVER_URL is not configured")
    provider = HttpIdentityProvider(
        settings.auth_server_url,
        api_key=settings.auth_api_key,
        access_token=access_token,
    )
    snapshots = FilePrincipalSnapshotStore(settings.principal_snapshot_path)
    ctx = create_entitlement_context(provider, store, snapshots, settings)
    ctx.owned_provider = provider
    return ctx
