"""
Integration tests for EntitlementContext: identity, resolver and gate wired
together over the SQL store.
"""

from dataclasses import replace

import pytest

from vorniq.context import create_entitlement_context, create_http_entitlement_context
from vorniq.database.session import build_engine, build_session_factory, create_tables
from vorniq.entitlements.gate import Allow, RedirectToPreview
from vorniq.entitlements.models import EMPTY_STATE, LOADING_STATE
from vorniq.identity.snapshot import FilePrincipalSnapshotStore, InMemoryPrincipalSnapshotStore
from vorniq.services.subscription_store import SqlSubscriptionStore
from vorniq.tests.conftest import FakeIdentityProvider


@pytest.fixture
def sql_store():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield SqlSubscriptionStore(build_session_factory(engine))
    engine.dispose()


class TestEntitlementContext:
    @pytest.mark.asyncio
    async def test_start_resolves_entitlement(self, principal, sql_store, settings):
        record = sql_store.create_subscription_sync(
            owner_id="u1", service_ids=[1, 4], total_price=1998, subscription_type="individual"
        )
        sql_store.activate_subscription_sync(record.order_id)

        ctx = create_entitlement_context(FakeIdentityProvider(principal), sql_store, settings=settings)
        assert ctx.entitlements.state == LOADING_STATE

        state = await ctx.start()
        assert state.unlocked_service_ids == frozenset({1, 4})
        assert ctx.gate.route_guard(1) == Allow(service_id=1)
        assert ctx.gate.route_guard(2) == RedirectToPreview(service_id=2, location="/preview/hrm")
        await ctx.close()

    @pytest.mark.asyncio
    async def test_purchase_then_refresh(self, principal, sql_store, settings):
        ctx = create_entitlement_context(FakeIdentityProvider(principal), sql_store, settings=settings)
        await ctx.start()
        assert ctx.gate.is_unlocked(6) is False

        record = await sql_store.create_subscription(
            owner_id="u1", service_ids=[6], total_price=999, subscription_type="individual"
        )
        await sql_store.activate_subscription(record.order_id, "pay_1")
        await ctx.entitlements.refresh()
        assert ctx.gate.is_unlocked(6) is True
        await ctx.close()

    @pytest.mark.asyncio
    async def test_sign_out_locks_everything(self, principal, sql_store, settings):
        record = sql_store.create_subscription_sync(
            owner_id="u1", service_ids=[1, 2, 3, 4, 5, 6], total_price=4999, subscription_type="bundle"
        )
        sql_store.activate_subscription_sync(record.order_id)
        snapshots = InMemoryPrincipalSnapshotStore()
        ctx = create_entitlement_context(FakeIdentityProvider(principal), sql_store, snapshots, settings)
        await ctx.start()
        assert all(not item.locked for item in ctx.gate.navigation_items())

        await ctx.sign_out()
        assert ctx.entitlements.state == EMPTY_STATE
        assert all(item.locked for item in ctx.gate.navigation_items())
        assert snapshots.load() is None
        await ctx.close()

    @pytest.mark.asyncio
    async def test_contexts_are_independent(self, principal, other_principal, sql_store, settings):
        record = sql_store.create_subscription_sync(
            owner_id="u2", service_ids=[3], total_price=999, subscription_type="individual"
        )
        sql_store.activate_subscription_sync(record.order_id)

        first = create_entitlement_context(FakeIdentityProvider(principal), sql_store, settings=settings)
        second = create_entitlement_context(FakeIdentityProvider(other_principal), sql_store, settings=settings)
        await first.start()
        await second.start()

        assert first.entitlements.state == EMPTY_STATE
        assert second.gate.is_unlocked(3) is True
        await first.close()
        await second.close()


class TestHttpEntitlementContext:
    def test_requires_auth_server(self, sql_store, settings):
        with pytest.raises(ValueError):
            create_http_entitlement_context(sql_store, settings=replace(settings, auth_server_url=None))

    @pytest.mark.asyncio
    async def test_without_token_starts_signed_out(self, sql_store, settings, tmp_path, principal):
        snapshot_path = tmp_path / "principal.json"
        FilePrincipalSnapshotStore(snapshot_path).save(principal)
        settings = replace(
            settings,
            auth_server_url="https://auth.example.com",
            principal_snapshot_path=str(snapshot_path),
        )

        ctx = create_http_entitlement_context(sql_store, access_token=None, settings=settings)
        assert ctx.identity.cached_principal == principal

        state = await ctx.start()
        assert state == EMPTY_STATE
        assert ctx.identity.principal is None
        assert not snapshot_path.exists()
        await ctx.close()
