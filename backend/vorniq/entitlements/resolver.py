"""
Entitlement Resolver.

Keeps EntitlementState in step with the current Principal:
- principal becomes None -> EMPTY_STATE immediately, no store call
- principal resolves or changes identity -> refresh scheduled
- refresh() on demand (e.g. after a purchase); never on a timer

Single writer: only this class publishes EntitlementState. Results computed
for a principal that is no longer current, or overtaken by a newer refresh,
are discarded.
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional, Set

from vorniq.entitlements.models import EMPTY_STATE, LOADING_STATE, EntitlementState
from vorniq.entitlements.service import SubscriptionStore, resolve_entitlement_state
from vorniq.identity.models import IdentityState, same_identity
from vorniq.observable import Observable, Unsubscribe

if TYPE_CHECKING:
    from vorniq.identity.resolver import IdentityResolver

logger = logging.getLogger(__name__)


class EntitlementResolver:
    """Derives and publishes EntitlementState for the identity resolver's principal."""

    def __init__(
        self,
        identity: "IdentityResolver",
        store: SubscriptionStore,
        *,
        legacy_email_lookup: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._identity = identity
        self._store = store
        self._legacy_email_lookup = legacy_email_lookup
        self._clock = clock
        self._state: Observable[EntitlementState] = Observable(LOADING_STATE)
        self._sequence = 0
        self._tracked: Optional[IdentityState] = None
        self._pending: Set[asyncio.Task] = set()
        self._unsubscribe_identity: Optional[Unsubscribe] = identity.subscribe(self._on_identity_changed)

    @property
    def state(self) -> EntitlementState:
        return self._state.value

    def subscribe(self, callback: Callable[[EntitlementState], None]) -> Unsubscribe:
        return self._state.subscribe(callback)

    async def refresh(self) -> EntitlementState:
        """
        Re-fetch and recompute for the current principal.

        Safe to call concurrently with itself: the newest call wins, and a
        result for a principal that has since changed is dropped.
        """
        self._sequence += 1
        sequence = self._sequence
        principal = self._identity.principal

        if principal is None:
            if not self._identity.state.is_loading:
                self._apply(EMPTY_STATE)
            return self._state.value

        now = self._clock() if self._clock else None
        state = await resolve_entitlement_state(
            self._store,
            principal,
            now=now,
            legacy_email_lookup=self._legacy_email_lookup,
        )

        if sequence != self._sequence:
            logger.debug("Discarding superseded entitlement refresh", extra={"principal_id": principal.id})
            return self._state.value
        if not same_identity(principal, self._identity.principal):
            logger.info("Discarding entitlement result for stale principal", extra={"principal_id": principal.id})
            return self._state.value

        self._apply(state)
        return state

    async def wait_idle(self) -> None:
        """Wait for refreshes scheduled by identity changes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        for task in list(self._pending):
            task.cancel()

    def _apply(self, state: EntitlementState) -> None:
        self._state.publish(state)

    def _on_identity_changed(self, identity_state: IdentityState) -> None:
        previous = self._tracked
        self._tracked = identity_state

        if identity_state.is_loading:
            return

        if identity_state.principal is None:
            # Bump the sequence so any in-flight fetch is discarded
            self._sequence += 1
            self._apply(EMPTY_STATE)
            return

        if previous is not None and not previous.is_loading and same_identity(
            previous.principal, identity_state.principal
        ):
            return

        self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; entitlement refresh deferred to explicit refresh()")
            return
        task = loop.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._on_refresh_done)

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("Scheduled entitlement refresh failed", exc_info=exc)
        # Never leave subscribers on the loading state
        if self._state.value.is_loading and not self._identity.state.is_loading:
            self._apply(EMPTY_STATE)
