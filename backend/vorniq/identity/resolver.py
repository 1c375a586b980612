"""
Identity Resolver.

Tracks the provider-asserted identity of the current user and publishes it.
Lifecycle: loading -> authenticated | signed out, and back to signed out on
sign-out or session loss. Provider failures never raise out of this class;
they resolve to "no principal".
"""

import logging
from typing import Callable, Optional

from vorniq.identity.models import IDENTITY_LOADING, SIGNED_OUT, IdentityState, Principal, same_identity
from vorniq.identity.provider import IdentityProvider
from vorniq.identity.snapshot import InMemoryPrincipalSnapshotStore, PrincipalSnapshotStore
from vorniq.observable import Observable, Unsubscribe

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Owns the current Principal. Everyone else reads it."""

    def __init__(
        self,
        provider: IdentityProvider,
        snapshot_store: Optional[PrincipalSnapshotStore] = None,
    ):
        self._provider = provider
        self._snapshots = snapshot_store or InMemoryPrincipalSnapshotStore()
        self._state: Observable[IdentityState] = Observable(IDENTITY_LOADING)
        self._cached_principal = self._snapshots.load()

    @property
    def state(self) -> IdentityState:
        return self._state.value

    @property
    def principal(self) -> Optional[Principal]:
        return self._state.value.principal

    @property
    def cached_principal(self) -> Optional[Principal]:
        """Snapshot from the last session, for initial paint only."""
        return self._cached_principal

    def subscribe(self, callback: Callable[[IdentityState], None]) -> Unsubscribe:
        """Call back now with the current state, then on every identity change."""
        return self._state.subscribe(callback)

    on_principal_changed = subscribe

    async def restore(self) -> Optional[Principal]:
        """Ask the provider for the current session and publish the answer."""
        try:
            principal = await self._provider.get_current_principal()
        except Exception as e:
            logger.warning(
                "Session restore failed, treating as signed out",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            principal = None
        self.set_principal(principal)
        return principal

    def set_principal(self, principal: Optional[Principal]) -> None:
        """Provider-confirmed session change (sign-in, token refresh, session loss)."""
        current = self._state.value
        if not current.is_loading and current.principal == principal:
            return

        if principal is None:
            logger.info("Identity resolved to no principal")
        elif not same_identity(current.principal, principal):
            logger.info("Identity resolved", extra={"principal_id": principal.id})
        self._persist(principal)
        self._state.publish(IdentityState(is_loading=False, principal=principal))

    async def sign_out(self) -> None:
        """Terminate the session. Local state is cleared even if the provider fails."""
        principal_id = self.principal.id if self.principal else None
        try:
            await self._provider.sign_out()
        except Exception as e:
            logger.error(
                "Provider sign-out failed, clearing local session anyway",
                extra={"principal_id": principal_id, "error": str(e)},
            )
        finally:
            self._persist(None)
            self._state.publish(SIGNED_OUT)
            logger.info("Signed out", extra={"principal_id": principal_id})

    def _persist(self, principal: Optional[Principal]) -> None:
        if principal is None:
            self._snapshots.clear()
        else:
            self._snapshots.save(principal)
        self._cached_principal = principal
