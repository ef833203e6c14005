import logging
from typing import List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException

from src.clients.models import Client, Project
from src.clients.schemas import ClientCreate, ClientUpdate, ProjectCreate, ProjectUpdate
from src.core.feed import ChangeEvent, ChangeFeed, ChangeKind, Collection, feed as default_feed

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: AsyncSession, feed: ChangeFeed = default_feed):
        self.db = db
        self.feed = feed

    def _publish(self, collection: Collection, kind: ChangeKind, tenant_id: UUID, record_id: UUID, parent_id: Optional[UUID] = None):
        self.feed.publish(ChangeEvent(
            collection=collection,
            kind=kind,
            tenant_id=tenant_id,
            record_id=record_id,
            parent_id=parent_id,
        ))

    async def create_client(self, client_in: ClientCreate, tenant_id: UUID) -> Client:
        db_client = Client(
            **client_in.model_dump(),
            tenant_id=tenant_id
        )
        self.db.add(db_client)
        await self.db.commit()
        await self.db.refresh(db_client)
        self._publish(Collection.CLIENTS, ChangeKind.CREATED, tenant_id, db_client.id)
        return db_client

    async def list_clients(self, tenant_id: UUID, skip: int = 0, limit: int = 100) -> List[Client]:
        query = (
            select(Client)
            .where(Client.tenant_id == tenant_id)
            .order_by(Client.created_at.desc(), Client.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_client(self, client_id: UUID, tenant_id: UUID) -> Client:
        query = select(Client).where(Client.id == client_id, Client.tenant_id == tenant_id)
        result = await self.db.execute(query)
        client = result.scalar_one_or_none()
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    async def update_client(self, client_id: UUID, tenant_id: UUID, client_in: ClientUpdate) -> Client:
        client = await self.get_client(client_id, tenant_id)

        update_data = client_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(client, field, value)

        await self.db.commit()
        await self.db.refresh(client)
        self._publish(Collection.CLIENTS, ChangeKind.UPDATED, tenant_id, client.id)
        return client

    async def delete_client(self, client_id: UUID, tenant_id: UUID) -> None:
        """Hard delete. Projects go with the client; orders keep their references."""
        client = await self.get_client(client_id, tenant_id)
        result = await self.db.execute(select(Project.id).where(Project.client_id == client.id))
        project_ids = list(result.scalars().all())

        await self.db.delete(client)
        await self.db.commit()
        logger.info(f"Deleted client {client_id} and {len(project_ids)} projects")

        for project_id in project_ids:
            self._publish(Collection.PROJECTS, ChangeKind.DELETED, tenant_id, project_id, client_id)
        self._publish(Collection.CLIENTS, ChangeKind.DELETED, tenant_id, client_id)

    # -- Projects --

    async def create_project(self, client_id: UUID, tenant_id: UUID, project_in: ProjectCreate) -> Project:
        await self.get_client(client_id, tenant_id)
        project = Project(
            **project_in.model_dump(),
            client_id=client_id,
            tenant_id=tenant_id,
        )
        self.db.add(project)
        await self.db.commit()
        await self.db.refresh(project)
        self._publish(Collection.PROJECTS, ChangeKind.CREATED, tenant_id, project.id, client_id)
        return project

    async def get_project(self, client_id: UUID, project_id: UUID, tenant_id: UUID) -> Project:
        query = select(Project).where(
            Project.id == project_id,
            Project.client_id == client_id,
            Project.tenant_id == tenant_id,
        )
        result = await self.db.execute(query)
        project = result.scalar_one_or_none()
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        return project

    async def update_project(self, client_id: UUID, project_id: UUID, tenant_id: UUID, project_in: ProjectUpdate) -> Project:
        project = await self.get_project(client_id, project_id, tenant_id)

        for field, value in project_in.model_dump(exclude_unset=True).items():
            setattr(project, field, value)

        await self.db.commit()
        await self.db.refresh(project)
        self._publish(Collection.PROJECTS, ChangeKind.UPDATED, tenant_id, project.id, client_id)
        return project

    async def delete_project(self, client_id: UUID, project_id: UUID, tenant_id: UUID) -> None:
        project = await self.get_project(client_id, project_id, tenant_id)
        await self.db.delete(project)
        await self.db.commit()
        self._publish(Collection.PROJECTS, ChangeKind.DELETED, tenant_id, project_id, client_id)
