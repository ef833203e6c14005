import io
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from src.auth.dependencies import require_tenant
from src.export.schemas import ExportRequest
from src.export.service import ExportBuilder
from src.live.aggregator import BusinessReport, DashboardSummary, DateRange, ViewFilters, ViewKind, select_rows
from src.live.session import LiveView, ViewSnapshot, business_report, snapshot_view
from src.live.store import RecordStore, get_store
from src.orders.models import OrderStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/views", tags=["views"])


def view_filters(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
) -> ViewFilters:
    date_range = None
    if start is not None or end is not None:
        try:
            date_range = DateRange(start=start or datetime.min, end=end or datetime.max)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors()[0]["msg"])
    return ViewFilters(date_range=date_range, search_text=search, status=status)


def order_filters(order_status: Optional[OrderStatus] = None) -> dict:
    return {"status": order_status} if order_status is not None else {}


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    snapshot = await snapshot_view(store, tenant_id, ViewKind.PROJECTS)
    return snapshot.summary


@router.get("/reports", response_model=BusinessReport)
async def reports(
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    return await business_report(store, tenant_id)


@router.get("/{kind}", response_model=ViewSnapshot)
async def get_view(
    kind: ViewKind,
    filters: ViewFilters = Depends(view_filters),
    orders: dict = Depends(order_filters),
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    return await snapshot_view(store, tenant_id, kind, filters, orders)


@router.get("/{kind}/stream")
async def stream_view(
    kind: ViewKind,
    request: Request,
    filters: ViewFilters = Depends(view_filters),
    orders: dict = Depends(order_filters),
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    """Server-sent view snapshots, re-derived on every change to the underlying records."""
    view = LiveView(store, tenant_id, kind, filters=filters, order_filters=orders)

    async def events():
        async with view:
            async for snapshot in view.updates():
                if await request.is_disconnected():
                    logger.info(f"Client left {kind.value} stream for tenant {tenant_id}")
                    break
                yield {
                    "event": "snapshot",
                    "id": str(snapshot.version),
                    "data": snapshot.model_dump_json(),
                }

    return EventSourceResponse(events())


@router.post("/{kind}/export")
async def export_view(
    kind: ViewKind,
    export: ExportRequest,
    filters: ViewFilters = Depends(view_filters),
    tenant_id: UUID = Depends(require_tenant),
    store: RecordStore = Depends(get_store),
):
    snapshot = await snapshot_view(store, tenant_id, kind, filters)
    rows = select_rows(snapshot.rows, export.row_ids)
    blob = ExportBuilder(tenant_id).build_export(rows, export.format, kind)
    return StreamingResponse(
        io.BytesIO(blob.content),
        media_type=blob.media_type,
        headers={
            "Content-Disposition": f"attachment; filename={blob.filename}",
            "X-Invoice-Number": blob.invoice_number,
        },
    )
