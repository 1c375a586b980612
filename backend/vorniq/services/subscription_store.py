"""
SQL-backed subscription store.

Implements the engine's SubscriptionStore lookup plus the purchase-side writes
used by the backend API (create on checkout, activate on payment). SQLAlchemy
work is synchronous and runs in a worker thread from the async methods.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from vorniq.entitlements.catalog import is_valid_service_id
from vorniq.entitlements.errors import EntitlementLookupFailedError, UnknownServiceError
from vorniq.entitlements.models import SubscriptionRecord, SubscriptionStatus, format_service_ids
from vorniq.models.subscription import Subscription, SubscriptionType, generate_order_id
from vorniq.platform.errors import NotFoundError

logger = logging.getLogger(__name__)


class SqlSubscriptionStore:
    """Subscription rows in the relational store."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ------------------------------------------------------------------ lookup

    async def find_latest_subscription(self, owner_key: str) -> Optional[SubscriptionRecord]:
        return await asyncio.to_thread(self.find_latest_subscription_sync, owner_key)

    def find_latest_subscription_sync(self, owner_key: str) -> Optional[SubscriptionRecord]:
        """Most recently created row for owner_key, any status."""
        normalized = str(owner_key).strip()
        if not normalized:
            return None
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(Subscription)
                    .where(Subscription.user_id == normalized)
                    .order_by(Subscription.created_at.desc(), Subscription.id.desc())
                    .limit(1)
                ).scalar_one_or_none()
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            logger.error("Subscription lookup query failed", extra={"owner_key": normalized, "error": str(e)})
            raise EntitlementLookupFailedError(normalized, "query failed", cause=e) from e

    # ------------------------------------------------------------------ writes

    async def create_subscription(
        self,
        *,
        owner_id: str,
        service_ids: Iterable[int],
        total_price: Union[Decimal, float, int, None],
        subscription_type: Union[SubscriptionType, str],
    ) -> SubscriptionRecord:
        return await asyncio.to_thread(
            self.create_subscription_sync,
            owner_id=owner_id,
            service_ids=service_ids,
            total_price=total_price,
            subscription_type=subscription_type,
        )

    def create_subscription_sync(
        self,
        *,
        owner_id: str,
        service_ids: Iterable[int],
        total_price: Union[Decimal, float, int, None],
        subscription_type: Union[SubscriptionType, str],
    ) -> SubscriptionRecord:
        ids = list(service_ids)
        for service_id in ids:
            if not is_valid_service_id(service_id):
                raise UnknownServiceError(service_id)
        if not ids:
            raise ValueError("at least one service is required")

        sub_type = SubscriptionType(subscription_type)
        with self._session_factory() as session:
            row = Subscription(
                user_id=str(owner_id).strip(),
                service_ids=format_service_ids(ids),
                total_price=Decimal(str(total_price)) if total_price is not None else None,
                subscription_type=sub_type.value,
                status=SubscriptionStatus.CREATED.value,
                order_id=generate_order_id(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            logger.info(
                "Subscription created",
                extra={"subscription_id": row.id, "owner_id": row.user_id, "order_id": row.order_id},
            )
            return row.to_record()

    async def activate_subscription(self, order_id: str, payment_id: Optional[str] = None) -> SubscriptionRecord:
        return await asyncio.to_thread(self.activate_subscription_sync, order_id, payment_id)

    def activate_subscription_sync(self, order_id: str, payment_id: Optional[str] = None) -> SubscriptionRecord:
        with self._session_factory() as session:
            row = self._get_by_order_id(session, order_id)
            if row is None:
                raise NotFoundError("Subscription order", order_id)
            row.status = SubscriptionStatus.ACTIVE.value
            if payment_id:
                row.payment_id = payment_id
            session.commit()
            session.refresh(row)
            logger.info(
                "Subscription activated",
                extra={"subscription_id": row.id, "owner_id": row.user_id, "order_id": order_id},
            )
            return row.to_record()

    async def get_by_order_id(self, order_id: str) -> Optional[SubscriptionRecord]:
        return await asyncio.to_thread(self.get_by_order_id_sync, order_id)

    def get_by_order_id_sync(self, order_id: str) -> Optional[SubscriptionRecord]:
        with self._session_factory() as session:
            row = self._get_by_order_id(session, order_id)
            return row.to_record() if row else None

    @staticmethod
    def _get_by_order_id(session: Session, order_id: str) -> Optional[Subscription]:
        return session.execute(
            select(Subscription).where(Subscription.order_id == order_id)
        ).scalar_one_or_none()
