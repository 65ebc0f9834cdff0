"""
Order Store

Durable record of orders on top of an AsyncSession. Only the lifecycle
engine calls the mutating methods; every mutation is committed as a
single statement so readers never observe half-written orders.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qrcafe.core.exceptions import ConflictError
from qrcafe.models import Order, OrderStatus, utcnow

logger = logging.getLogger(__name__)


class OrderStore:
    """SQL-backed order repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def insert(self, order: Order) -> Order:
        """
        Persist a new order.

        Raises:
            ConflictError: An order with the same ``order_id`` exists
        """
        existing = await self._session.execute(
            select(Order.id).where(Order.order_id == order.order_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Order {order.order_id} already exists")

        self._session.add(order)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            logger.error(f"Duplicate order id {order.order_id} rejected by database")
            raise ConflictError(f"Order {order.order_id} already exists")

        await self._session.refresh(order)
        return order

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(Order)
            .where(Order.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_recent(self, limit: int) -> list[Order]:
        """Newest orders first, at most ``limit`` of them."""
        result = await self._session.execute(
            select(Order)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
    ) -> Optional[Order]:
        """
        Compare-and-set the status of one order.

        The row is only written while it still holds ``expected``.

        Returns:
            The updated order, or None when no row matched
        """
        result = await self._session.execute(
            update(Order)
            .where(Order.order_id == order_id, Order.status == expected)
            .values(status=target, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()

        if result.rowcount == 0:
            return None
        return await self.find_by_id(order_id)
