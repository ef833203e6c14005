import io
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from src.database import get_db
from src.auth.dependencies import require_tenant
from src.clients.schemas import (
    ClientCreate,
    ClientUpdate,
    ClientRecord,
    ProjectCreate,
    ProjectUpdate,
    ProjectRecord,
    ProjectPage,
)
from src.clients.service import ClientService
from src.export.schemas import InvoiceRequest
from src.export.service import build_client_invoice
from src.live.paginator import paginators
from src.live.store import RecordStore, get_store

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=ClientRecord)
async def create_client(
    client: ClientCreate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.create_client(client, tenant_id)


@router.get("", response_model=List[ClientRecord])
async def list_clients(
    skip: int = 0,
    limit: int = 100,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.list_clients(tenant_id, skip, limit)


@router.get("/{client_id}", response_model=ClientRecord)
async def get_client(
    client_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.get_client(client_id, tenant_id)


@router.patch("/{client_id}", response_model=ClientRecord)
async def update_client(
    client_id: UUID,
    client: ClientUpdate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.update_client(client_id, tenant_id, client)


@router.delete("/{client_id}", status_code=204)
async def delete_client(
    client_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    await service.delete_client(client_id, tenant_id)
    return Response(status_code=204)


# -- Projects --

@router.post("/{client_id}/projects", response_model=ProjectRecord)
async def create_project(
    client_id: UUID,
    project: ProjectCreate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.create_project(client_id, tenant_id, project)


@router.get("/{client_id}/projects", response_model=ProjectPage)
async def list_projects(
    client_id: UUID,
    page: int = Query(1, ge=1),
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    """Cursor-paginated projects. Pages must be visited in order from page 1."""
    result = await paginators.get(store, tenant_id).get_page(client_id, page)
    numbered = result.numbered()
    return ProjectPage(
        page=result.page_number,
        page_size=result.page_size,
        total=result.total,
        has_more=result.has_more,
        serial_numbers=[serial for serial, _ in numbered],
        projects=[project for _, project in numbered],
    )


@router.get("/{client_id}/projects/{project_id}", response_model=ProjectRecord)
async def get_project(
    client_id: UUID,
    project_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.get_project(client_id, project_id, tenant_id)


@router.patch("/{client_id}/projects/{project_id}", response_model=ProjectRecord)
async def update_project(
    client_id: UUID,
    project_id: UUID,
    project: ProjectUpdate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    return await service.update_project(client_id, project_id, tenant_id, project)


@router.delete("/{client_id}/projects/{project_id}", status_code=204)
async def delete_project(
    client_id: UUID,
    project_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ClientService(db)
    await service.delete_project(client_id, project_id, tenant_id)
    return Response(status_code=204)


@router.post("/{client_id}/invoice")
async def export_invoice(
    client_id: UUID,
    request: InvoiceRequest,
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    blob = await build_client_invoice(store, tenant_id, client_id, request.project_ids, request.format)
    return StreamingResponse(
        io.BytesIO(blob.content),
        media_type=blob.media_type,
        headers={
            "Content-Disposition": f"attachment; filename={blob.filename}",
            "X-Invoice-Number": blob.invoice_number,
        },
    )
