import logging
from typing import List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException

from src.clients.models import Client, Project
from src.core.feed import ChangeEvent, ChangeFeed, ChangeKind, Collection, feed as default_feed
from src.employees.models import Employee
from src.orders.models import Order, OrderStatus
from src.orders.schemas import OrderCreate, OrderUpdate

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(self, db: AsyncSession, feed: ChangeFeed = default_feed):
        self.db = db
        self.feed = feed

    def _publish(self, kind: ChangeKind, order: Order):
        self.feed.publish(ChangeEvent(
            collection=Collection.ORDERS,
            kind=kind,
            tenant_id=order.tenant_id,
            record_id=order.id,
        ))

    async def _exists(self, model, record_id: UUID, tenant_id: UUID, **extra) -> bool:
        query = select(model.id).where(model.id == record_id, model.tenant_id == tenant_id)
        for field, value in extra.items():
            query = query.where(getattr(model, field) == value)
        result = await self.db.execute(query)
        return result.scalar_one_or_none() is not None

    async def validate_references(self, order_in: OrderCreate, tenant_id: UUID):
        """Every reference must exist in the same business; the project must belong to the client."""
        if not await self._exists(Client, order_in.client_id, tenant_id):
            raise HTTPException(status_code=400, detail="Client not found")
        if not await self._exists(Employee, order_in.employee_id, tenant_id):
            raise HTTPException(status_code=400, detail="Employee not found")
        if order_in.project_id is not None:
            if not await self._exists(Project, order_in.project_id, tenant_id, client_id=order_in.client_id):
                raise HTTPException(status_code=400, detail="Project not found for this client")

    async def create_order(self, order_in: OrderCreate, tenant_id: UUID) -> Order:
        await self.validate_references(order_in, tenant_id)
        order = Order(**order_in.model_dump(), tenant_id=tenant_id)
        self.db.add(order)
        await self.db.commit()
        await self.db.refresh(order)
        logger.info(f"Created order {order.id} for client {order.client_id}")
        self._publish(ChangeKind.CREATED, order)
        return order

    async def list_orders(
        self,
        tenant_id: UUID,
        status: Optional[OrderStatus] = None,
        client_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Order]:
        query = select(Order).where(Order.tenant_id == tenant_id)
        if status is not None:
            query = query.where(Order.status == status)
        if client_id is not None:
            query = query.where(Order.client_id == client_id)
        query = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_order(self, order_id: UUID, tenant_id: UUID) -> Order:
        query = select(Order).where(Order.id == order_id, Order.tenant_id == tenant_id)
        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    async def update_order(self, order_id: UUID, tenant_id: UUID, order_in: OrderUpdate) -> Order:
        order = await self.get_order(order_id, tenant_id)

        for field, value in order_in.model_dump(exclude_unset=True).items():
            setattr(order, field, value)

        await self.db.commit()
        await self.db.refresh(order)
        self._publish(ChangeKind.UPDATED, order)
        return order

    async def delete_order(self, order_id: UUID, tenant_id: UUID) -> None:
        order = await self.get_order(order_id, tenant_id)
        await self.db.delete(order)
        await self.db.commit()
        self._publish(ChangeKind.DELETED, order)
