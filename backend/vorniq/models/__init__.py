"""
Database models for subscriptions.

Business entities (customers, employees, products, invoices) live outside
the entitlement engine and are not modelled here.
"""

from vorniq.models.base import TimestampMixin
from vorniq.models.subscription import Subscription, SubscriptionType

__all__ = [
    "TimestampMixin",
    "Subscription",
    "SubscriptionType",
]
