from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession
from src.database import get_db
from src.auth.dependencies import require_tenant
from src.orders.models import OrderStatus
from src.orders.schemas import OrderCreate, OrderUpdate, OrderRecord
from src.orders.service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderRecord)
async def create_order(
    order: OrderCreate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    return await service.create_order(order, tenant_id)


@router.get("", response_model=List[OrderRecord])
async def list_orders(
    status: Optional[OrderStatus] = None,
    client_id: Optional[UUID] = None,
    skip: int = 0,
    limit: int = 100,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    return await service.list_orders(tenant_id, status=status, client_id=client_id, skip=skip, limit=limit)


@router.get("/{order_id}", response_model=OrderRecord)
async def get_order(
    order_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    return await service.get_order(order_id, tenant_id)


@router.patch("/{order_id}", response_model=OrderRecord)
async def update_order(
    order_id: UUID,
    order: OrderUpdate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    return await service.update_order(order_id, tenant_id, order)


@router.delete("/{order_id}", status_code=204)
async def delete_order(
    order_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    await service.delete_order(order_id, tenant_id)
    return Response(status_code=204)
