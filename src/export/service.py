import csv
import io
import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from docx import Document as DocxDocument
from docx.shared import Pt
from docx.enum.text import WD_ALIGN_PARAGRAPH
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from fastapi import HTTPException
from pydantic import BaseModel

from src.config import settings
from src.export.schemas import ExportFormat, ExportParty
from src.core.feed import Collection
from src.live.aggregator import ViewKind, ViewRow, select_rows
from src.live.session import snapshot_view
from src.live.store import RecordStore
from src.shared.exceptions import EmptySelectionError

logger = logging.getLogger(__name__)


MEDIA_TYPES = {
    ExportFormat.TABULAR: ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    ExportFormat.DOCUMENT: ("docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    ExportFormat.CSV: ("csv", "text/csv"),
}

TITLES = {
    ViewKind.PROJECTS: "Project Details",
    ViewKind.INCOME: "Income Details",
    ViewKind.PROFITS: "Profit Details",
    ViewKind.EXPENSES: "Expense Details",
}

# (header, row field, value kind)
COLUMNS: Dict[ViewKind, List[Tuple[str, str, str]]] = {
    ViewKind.PROJECTS: [
        ("Project Name", "project_name", "text"),
        ("Client Name", "client_name", "text"),
        ("Budget", "budget", "money"),
        ("Status", "status", "status"),
        ("Deadline", "deadline", "date"),
        ("Created At", "created_at", "date"),
        ("Requirements", "description", "text"),
    ],
    ViewKind.INCOME: [
        ("Project Name", "project_name", "text"),
        ("Client Name", "client_name", "text"),
        ("Budget", "budget", "money"),
        ("Amount", "amount", "money"),
        ("Status", "status", "status"),
        ("Deadline", "deadline", "date"),
        ("Created At", "created_at", "date"),
        ("Description", "description", "text"),
    ],
    ViewKind.PROFITS: [
        ("Project Name", "project_name", "text"),
        ("Client Name", "client_name", "text"),
        ("Budget", "budget", "money"),
        ("Total Expense", "total_expense", "money"),
        ("Profit", "profit", "money"),
        ("Status", "status", "status"),
        ("Deadline", "deadline", "date"),
        ("Created At", "created_at", "date"),
        ("Description", "description", "text"),
    ],
    ViewKind.EXPENSES: [
        ("Title", "title", "text"),
        ("Amount", "amount", "money"),
        ("Project Name", "project_name", "text"),
        ("Client Name", "client_name", "text"),
        ("Employee", "employee_name", "text"),
        ("Status", "status", "status"),
        ("Created At", "created_at", "date"),
        ("Description", "description", "text"),
    ],
}

TOTAL_FIELDS = {
    ViewKind.PROJECTS: "budget",
    ViewKind.INCOME: "amount",
    ViewKind.PROFITS: "profit",
    ViewKind.EXPENSES: "amount",
}


class ExportTable(BaseModel):
    title: str
    headers: List[str]
    body: List[List[str]]
    total_column: int
    total: Decimal
    total_display: str

    @property
    def total_row(self) -> List[str]:
        row = [""] * len(self.headers)
        row[0] = "Total"
        row[self.total_column] = self.total_display
        return row


class ExportBlob(BaseModel):
    filename: str
    media_type: str
    content: bytes
    invoice_number: str
    total: Decimal


class ExportBuilder:
    def __init__(
        self,
        tenant_id: UUID,
        currency_symbol: str = settings.CURRENCY_SYMBOL,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.tenant_id = tenant_id
        self.currency_symbol = currency_symbol
        self.clock = clock

    def money(self, value: Optional[Decimal]) -> str:
        if value is None:
            return settings.SENTINEL_VALUE
        return f"{self.currency_symbol}{value:,.2f}"

    def _cell(self, row: ViewRow, field: str, kind: str) -> str:
        value = getattr(row, field)
        if kind == "money":
            return self.money(value)
        if value is None or value == "":
            return settings.SENTINEL_VALUE
        if kind == "date":
            if isinstance(value, datetime):
                value = value.date()
            return value.strftime("%b %d, %Y") if isinstance(value, date) else str(value)
        if kind == "status":
            return str(value).capitalize()
        return str(value)

    def build_table(self, rows: Sequence[ViewRow], view_kind: ViewKind) -> ExportTable:
        if not rows:
            raise EmptySelectionError()
        mismatched = [r.id for r in rows if r.kind != view_kind]
        if mismatched:
            raise ValueError(f"{len(mismatched)} selected rows do not belong to the {view_kind.value} view")

        columns = COLUMNS[view_kind]
        total_field = TOTAL_FIELDS[view_kind]
        total = sum((getattr(r, total_field) or Decimal("0") for r in rows), Decimal("0"))
        return ExportTable(
            title=TITLES[view_kind],
            headers=[header for header, _, _ in columns],
            body=[[self._cell(r, field, kind) for _, field, kind in columns] for r in rows],
            total_column=[field for _, field, _ in columns].index(total_field),
            total=total,
            total_display=self.money(total),
        )

    def invoice_number(self, issued_at: datetime, party: Optional[ExportParty] = None) -> str:
        owner = party.id if party is not None and party.id is not None else self.tenant_id
        fragment = str(owner).replace("-", "")[:8]
        return f"{settings.INVOICE_PREFIX}-{fragment}-{issued_at.strftime('%Y%m%d%H%M%S')}"

    def build_export(
        self,
        rows: Sequence[ViewRow],
        fmt: ExportFormat,
        view_kind: ViewKind,
        party: Optional[ExportParty] = None,
    ) -> ExportBlob:
        table = self.build_table(rows, view_kind)
        issued_at = self.clock()
        invoice_number = self.invoice_number(issued_at, party)

        if fmt == ExportFormat.TABULAR:
            content = self._xlsx(table)
        elif fmt == ExportFormat.CSV:
            content = self._csv(table)
        else:
            content = self._docx(table, invoice_number, issued_at, party)

        extension, media_type = MEDIA_TYPES[fmt]
        stem = f"invoice_{_safe_name(party.name)}" if party is not None else f"{view_kind.value}_details"
        filename = f"{stem}_{issued_at.strftime('%Y-%m-%d_%H-%M-%S')}.{extension}"
        logger.info(f"Built {fmt.value} export {filename} with {len(table.body)} rows, total {table.total_display}")
        return ExportBlob(
            filename=filename,
            media_type=media_type,
            content=content,
            invoice_number=invoice_number,
            total=table.total,
        )

    def _xlsx(self, table: ExportTable) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        # Worksheet titles are limited to 31 characters
        sheet.title = table.title[:31]
        sheet.append(table.headers)
        for values in table.body:
            sheet.append(values)
        sheet.append(table.total_row)

        bold = Font(bold=True)
        for row_index in (1, sheet.max_row):
            for cell in sheet[row_index]:
                cell.font = bold
        for index, header in enumerate(table.headers):
            width = max([len(header)] + [len(values[index]) for values in table.body])
            sheet.column_dimensions[get_column_letter(index + 1)].width = width + 2

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def _csv(self, table: ExportTable) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(table.headers)
        writer.writerows(table.body)
        writer.writerow(table.total_row)
        return buffer.getvalue().encode("utf-8")

    def _docx(self, table: ExportTable, invoice_number: str, issued_at: datetime, party: Optional[ExportParty]) -> bytes:
        doc = DocxDocument()

        # -- Title Block --
        self._add_title_block(doc, table.title, invoice_number, issued_at, party)

        # -- Rows --
        grid = doc.add_table(rows=1, cols=len(table.headers))
        grid.style = "Table Grid"
        for cell, header in zip(grid.rows[0].cells, table.headers):
            cell.text = ""
            run = cell.paragraphs[0].add_run(header)
            run.bold = True
        for values in table.body:
            cells = grid.add_row().cells
            for cell, value in zip(cells, values):
                cell.text = value
        total_cells = grid.add_row().cells
        for cell, value in zip(total_cells, table.total_row):
            cell.text = ""
            if value:
                run = cell.paragraphs[0].add_run(value)
                run.bold = True

        # -- Footer --
        doc.add_paragraph()
        footer = doc.add_paragraph(f"Generated on {issued_at.strftime('%b %d, %Y %H:%M:%S')}")
        footer.alignment = WD_ALIGN_PARAGRAPH.CENTER
        thanks = doc.add_paragraph("Thank you for your business!")
        thanks.alignment = WD_ALIGN_PARAGRAPH.CENTER

        buffer = io.BytesIO()
        doc.save(buffer)
        buffer.seek(0)
        return buffer.read()

    def _add_title_block(
        self,
        doc,
        title: str,
        invoice_number: str,
        issued_at: datetime,
        party: Optional[ExportParty],
    ):
        heading = doc.add_paragraph()
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = heading.add_run("Client Invoice" if party is not None else title)
        run.bold = True
        run.font.size = Pt(24)

        for label, value in (
            ("Invoice Number", invoice_number),
            ("Date", issued_at.strftime("%b %d, %Y")),
        ):
            p = doc.add_paragraph()
            p.add_run(f"{label}: ").bold = True
            p.add_run(value)

        if party is not None:
            doc.add_heading("Client", level=2)
            for label, value in (("Name", party.name), ("Email", party.email), ("Phone", party.phone)):
                p = doc.add_paragraph()
                p.add_run(f"{label}: ").bold = True
                p.add_run(value or settings.SENTINEL_VALUE)

        doc.add_heading(title, level=2)


def _safe_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", name).lower() or "unknown"


async def build_client_invoice(
    store: RecordStore,
    tenant_id: UUID,
    client_id: UUID,
    project_ids: Sequence[UUID],
    fmt: ExportFormat = ExportFormat.DOCUMENT,
) -> ExportBlob:
    """Selected projects of one client, billed to that client."""
    client = await store.get_one(Collection.CLIENTS, client_id)
    if client is None or client.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Client not found")
    if not project_ids:
        raise EmptySelectionError()

    snapshot = await snapshot_view(store, tenant_id, ViewKind.PROJECTS)
    rows = [r for r in select_rows(snapshot.rows, project_ids) if r.client_id == client_id]
    if len(rows) < len(set(project_ids)):
        raise HTTPException(status_code=404, detail="Project not found")

    party = ExportParty(id=client.id, name=client.full_name, email=client.email, phone=client.phone)
    return ExportBuilder(tenant_id).build_export(rows, fmt, ViewKind.PROJECTS, party=party)
