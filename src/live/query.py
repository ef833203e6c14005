"""Tenant-scoped query construction.

The record store is tenant-unaware. Every read or subscription goes through
``scoped`` so the business id equality filter is always present.
"""
from datetime import datetime
from typing import Any, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator

from src.core.feed import Collection
from src.shared.exceptions import MissingTenantError


class Cursor(BaseModel):
    """Position of the last record of a fetched page (``created_at``, ``id``)."""
    created_at: datetime
    id: UUID

    model_config = ConfigDict(frozen=True)

    @classmethod
    def after(cls, record: Any) -> "Cursor":
        return cls(created_at=record.created_at, id=record.id)


class CollectionSpec(BaseModel):
    collection: Collection
    parent_id: Optional[UUID] = None
    order_by: str = "created_at"
    descending: bool = True
    filters: Tuple[Tuple[str, Any], ...] = ()
    limit: Optional[int] = None
    start_after: Optional[Cursor] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_parent(self):
        if self.collection == Collection.PROJECTS and self.parent_id is None:
            raise ValueError("projects are nested under a client; parent_id is required")
        if self.collection != Collection.PROJECTS and self.parent_id is not None:
            raise ValueError(f"{self.collection.value} is a top-level collection")
        if self.start_after is not None and self.order_by != "created_at":
            raise ValueError("cursors are only valid for created_at ordering")
        if self.limit is not None and self.limit < 1:
            raise ValueError("limit must be positive")
        return self

    @property
    def slot(self) -> str:
        """Subscription slot: at most one live query per collection/parent."""
        if self.parent_id is not None:
            return f"{self.collection.value}:{self.parent_id}"
        return self.collection.value


class TenantQuery(BaseModel):
    spec: CollectionSpec
    tenant_id: UUID

    model_config = ConfigDict(frozen=True)

    def page(self, limit: int, start_after: Optional[Cursor] = None) -> "TenantQuery":
        spec = self.spec.model_copy(update={"limit": limit, "start_after": start_after})
        return TenantQuery(spec=spec, tenant_id=self.tenant_id)

    def unpaged(self) -> "TenantQuery":
        spec = self.spec.model_copy(update={"limit": None, "start_after": None})
        return TenantQuery(spec=spec, tenant_id=self.tenant_id)


def require_tenant_id(tenant_id: Any) -> UUID:
    if tenant_id is None or tenant_id == "":
        raise MissingTenantError()
    if isinstance(tenant_id, UUID):
        return tenant_id
    try:
        return UUID(str(tenant_id))
    except ValueError:
        raise MissingTenantError(f"Invalid business id: {tenant_id!r}")


def scoped(spec: CollectionSpec, tenant_id: Any) -> TenantQuery:
    return TenantQuery(spec=spec, tenant_id=require_tenant_id(tenant_id))


def _filters(values: dict) -> Tuple[Tuple[str, Any], ...]:
    # Sorted so equal filter sets produce equal (hashable) specs
    return tuple(sorted((k, v) for k, v in values.items() if v is not None))


def clients(**filters) -> CollectionSpec:
    return CollectionSpec(collection=Collection.CLIENTS, filters=_filters(filters))


def projects(client_id: UUID, **filters) -> CollectionSpec:
    return CollectionSpec(collection=Collection.PROJECTS, parent_id=client_id, filters=_filters(filters))


def orders(**filters) -> CollectionSpec:
    return CollectionSpec(collection=Collection.ORDERS, filters=_filters(filters))


def employees(**filters) -> CollectionSpec:
    return CollectionSpec(collection=Collection.EMPLOYEES, filters=_filters(filters))


def expenses(**filters) -> CollectionSpec:
    return CollectionSpec(collection=Collection.EXPENSES, filters=_filters(filters))
