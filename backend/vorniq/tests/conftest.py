"""
Shared fixtures and fakes for the entitlement engine tests.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from vorniq.config import Settings
from vorniq.entitlements.errors import EntitlementLookupFailedError, IdentityUnavailableError
from vorniq.entitlements.models import SubscriptionRecord
from vorniq.identity.models import Principal
from vorniq.monitoring.entitlement_alerts import reset_deny_counts


class FakeSubscriptionStore:
    """
    In-memory SubscriptionStore.

    hold(owner_key) makes lookups for that key wait until release(owner_key)
    so tests can control the order in which concurrent fetches complete.
    """

    def __init__(self):
        self.records: Dict[str, List[SubscriptionRecord]] = {}
        self.calls: List[str] = []
        self._gates: Dict[str, asyncio.Event] = {}

    def add(self, record: SubscriptionRecord) -> SubscriptionRecord:
        self.records.setdefault(record.owner_id, []).append(record)
        return record

    def hold(self, owner_key: str) -> None:
        self._gates[owner_key] = asyncio.Event()

    def release(self, owner_key: str) -> None:
        self._gates.pop(owner_key).set()

    async def find_latest_subscription(self, owner_key: str) -> Optional[SubscriptionRecord]:
        self.calls.append(owner_key)
        # Answer is read when the query starts, as a real round trip would
        result = self._latest(owner_key)
        gate = self._gates.get(owner_key)
        if gate is not None:
            await gate.wait()
        return result

    def _latest(self, owner_key: str) -> Optional[SubscriptionRecord]:
        rows = self.records.get(owner_key) or []
        if not rows:
            return None
        return max(rows, key=lambda r: (r.created_at, r.id or 0))


class FailingSubscriptionStore:
    def __init__(self):
        self.calls: List[str] = []

    async def find_latest_subscription(self, owner_key: str) -> Optional[SubscriptionRecord]:
        self.calls.append(owner_key)
        raise EntitlementLookupFailedError(owner_key, "connection refused")


class FakeIdentityProvider:
    def __init__(
        self,
        principal: Optional[Principal] = None,
        *,
        fail_lookup: bool = False,
        fail_sign_out: bool = False,
    ):
        self.principal = principal
        self.fail_lookup = fail_lookup
        self.fail_sign_out = fail_sign_out
        self.sign_out_calls = 0

    async def get_current_principal(self) -> Optional[Principal]:
        if self.fail_lookup:
            raise IdentityUnavailableError("auth server down")
        return self.principal

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.fail_sign_out:
            raise IdentityUnavailableError("logout endpoint failed")
        self.principal = None


def make_record(
    owner_id: str = "u1",
    service_ids="1",
    status: str = "active",
    expires_at=None,
    created_at: Optional[datetime] = None,
    id: Optional[int] = None,
) -> SubscriptionRecord:
    return SubscriptionRecord(
        owner_id=owner_id,
        service_ids=service_ids,
        status=status,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
        expires_at=expires_at,
        id=id,
    )


@pytest.fixture
def principal():
    return Principal(id="u1", email="u1@x.com", display_name="User One")


@pytest.fixture
def other_principal():
    return Principal(id="u2", email="u2@x.com")


@pytest.fixture
def store():
    return FakeSubscriptionStore()


@pytest.fixture
def failing_store():
    return FailingSubscriptionStore()


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret-0123456789-abcdefghijklmnop",
        jwt_audience="authenticated",
        legacy_email_lookup=True,
    )


@pytest.fixture(autouse=True)
def _reset_alert_counters():
    reset_deny_counts()
    yield
    reset_deny_counts()
