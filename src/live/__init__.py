from src.live.query import (
    CollectionSpec,
    Cursor,
    TenantQuery,
    scoped,
    require_tenant_id,
)
from src.live.store import RecordStore, SqlRecordStore, get_store
from src.live.subscriptions import SubscriptionManager
from src.live.resolver import JoinResolver, ResidentRecords
from src.live.aggregator import BusinessReport, ViewFilters, ViewKind, ViewRow, aggregate, report, summarize
from src.live.paginator import CursorPaginator, Page, paginators
from src.live.session import LiveView, ViewSnapshot, business_report, snapshot_view
