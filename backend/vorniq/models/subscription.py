"""
Subscription model.

One row per purchase. A principal may have many rows; the engine reads only
the most recently created one, whatever its status, and derives validity
from status and expiry at read time.

Lifecycle:
1. POST /api/subscribe creates a row with status=created and a fresh order id
2. POST /api/verify-payment flips status to active for that order id
3. Cancellation (outside this service) sets status=cancelled
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, Index

from vorniq.db_base import Base
from vorniq.entitlements.models import SubscriptionRecord, SubscriptionStatus
from vorniq.models.base import TimestampMixin


class SubscriptionType(str, enum.Enum):
    """How the services were bought."""
    INDIVIDUAL = "individual"
    BUNDLE = "bundle"


def generate_order_id() -> str:
    return f"order_{uuid.uuid4().hex[:20]}"


class Subscription(Base, TimestampMixin):
    """A purchased set of services for one owner."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Principal id; rows written by the legacy checkout hold the owner's email
    user_id = Column(String(255), nullable=False, index=True)

    service_ids = Column(
        Text,
        nullable=False,
        comment="Comma-delimited service ids, e.g. '1,3,5'",
    )
    total_price = Column(Numeric(12, 2), nullable=True)
    subscription_type = Column(String(32), nullable=False, default=SubscriptionType.INDIVIDUAL.value)
    status = Column(String(32), nullable=False, default=SubscriptionStatus.CREATED.value)

    order_id = Column(String(255), nullable=False, unique=True, default=generate_order_id)
    payment_id = Column(String(255), nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=True, comment="NULL means no expiry")

    __table_args__ = (
        Index("ix_subscriptions_user_created", "user_id", "created_at"),
    )

    def to_record(self) -> SubscriptionRecord:
        return SubscriptionRecord(
            id=self.id,
            owner_id=self.user_id,
            service_ids=self.service_ids,
            status=self.status,
            created_at=self.created_at,
            expires_at=self.expires_at,
            subscription_type=self.subscription_type,
            total_price=self.total_price,
            order_id=self.order_id,
        )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, user_id={self.user_id}, status={self.status})>"
