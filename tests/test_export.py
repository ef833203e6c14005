import csv
import io
import re
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from docx import Document
from fastapi import HTTPException
from openpyxl import load_workbook

from src.export.schemas import ExportFormat, ExportParty
from src.export.service import ExportBuilder, build_client_invoice
from src.live.aggregator import ViewKind, ViewRow
from src.shared.exceptions import EmptySelectionError

ISSUED_AT = datetime(2024, 5, 17, 14, 30, 5)


def _expense(amount, title="Item"):
    return ViewRow(
        id=uuid4(),
        kind=ViewKind.EXPENSES,
        created_at=datetime(2024, 5, 1),
        client_name="Acme Ltd",
        project_name="Website",
        employee_name="Jane Doe",
        title=title,
        status="pending",
        amount=Decimal(amount),
    )


@pytest.fixture
def builder(tenant_id):
    return ExportBuilder(tenant_id, clock=lambda: ISSUED_AT)


@pytest.fixture
def rows():
    return [_expense("10", "Logo"), _expense("20", "Banner"), _expense("30", "Flyer")]


def test_total_row_sums_the_amount_column(builder, rows):
    table = builder.build_table(rows, ViewKind.EXPENSES)

    assert table.total == Decimal("60")
    assert table.headers[table.total_column] == "Amount"
    assert table.total_row[0] == "Total"
    assert table.total_row[table.total_column] == "$60.00"
    assert len(table.body) == 3


def test_empty_selection_is_rejected(builder):
    with pytest.raises(EmptySelectionError):
        builder.build_export([], ExportFormat.TABULAR, ViewKind.EXPENSES)


def test_rows_from_another_view_are_rejected(builder, rows):
    with pytest.raises(ValueError):
        builder.build_table(rows, ViewKind.PROFITS)


def test_input_rows_are_not_mutated(builder, rows):
    before = [r.model_dump() for r in rows]
    builder.build_export(rows, ExportFormat.DOCUMENT, ViewKind.EXPENSES)
    assert [r.model_dump() for r in rows] == before


def test_missing_values_render_as_sentinel(builder):
    row = _expense("5")
    [cells] = builder.build_table([row], ViewKind.EXPENSES).body
    assert cells[-1] == "N/A"  # description


def test_tabular_export_is_a_workbook(builder, rows):
    blob = builder.build_export(rows, ExportFormat.TABULAR, ViewKind.EXPENSES)

    assert blob.media_type == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert blob.filename == "expenses_details_2024-05-17_14-30-05.xlsx"
    sheet = load_workbook(io.BytesIO(blob.content)).active
    assert sheet.title == "Expense Details"
    values = list(sheet.iter_rows(values_only=True))
    assert values[0][:2] == ("Title", "Amount")
    assert [row[0] for row in values[1:4]] == ["Logo", "Banner", "Flyer"]
    assert values[-1][:2] == ("Total", "$60.00")
    assert sheet.cell(row=1, column=1).font.bold
    assert sheet.cell(row=sheet.max_row, column=2).font.bold
    assert not sheet.cell(row=2, column=1).font.bold


def test_csv_export(builder, rows):
    blob = builder.build_export(rows, ExportFormat.CSV, ViewKind.EXPENSES)

    assert blob.media_type == "text/csv"
    assert blob.filename == "expenses_details_2024-05-17_14-30-05.csv"
    lines = list(csv.reader(io.StringIO(blob.content.decode("utf-8"))))
    assert lines[0][:2] == ["Title", "Amount"]
    assert [line[0] for line in lines[1:4]] == ["Logo", "Banner", "Flyer"]
    assert lines[-1][:2] == ["Total", "$60.00"]


def test_invoice_number_format(builder, tenant_id):
    number = builder.invoice_number(ISSUED_AT)
    assert re.fullmatch(r"INV-[0-9a-f]{8}-20240517143005", number)
    assert number.split("-")[1] == tenant_id.hex[:8]


def test_document_export_has_title_block_table_and_total(builder, rows):
    party = ExportParty(id=uuid4(), name="Acme Ltd", email="billing@acme.test")
    blob = builder.build_export(rows, ExportFormat.DOCUMENT, ViewKind.EXPENSES, party=party)

    assert blob.filename.startswith("invoice_acme_ltd_")
    assert blob.filename.endswith(".docx")
    doc = Document(io.BytesIO(blob.content))
    text = "\n".join(p.text for p in doc.paragraphs)
    assert f"Invoice Number: {blob.invoice_number}" in text
    assert blob.invoice_number.split("-")[1] == party.id.hex[:8]
    assert "Date: May 17, 2024" in text
    assert "Name: Acme Ltd" in text
    assert "Email: billing@acme.test" in text
    assert "Thank you for your business!" in text

    [table] = doc.tables
    assert len(table.rows) == 1 + len(rows) + 1
    assert table.rows[-1].cells[0].text == "Total"
    assert table.rows[-1].cells[1].text == "$60.00"


@pytest.mark.asyncio
async def test_client_invoice_bills_selected_projects(store, records, tenant_id):
    client = records.client(tenant_id, "Acme Ltd", phone="555-0100")
    chosen = [records.project(client, "Website", Decimal("1000")), records.project(client, "App", Decimal("2500"))]
    records.project(client, "Not billed", Decimal("99"))

    blob = await build_client_invoice(store, tenant_id, client.id, [p.id for p in chosen])

    assert blob.total == Decimal("3500")
    doc = Document(io.BytesIO(blob.content))
    names = {row.cells[0].text for row in doc.tables[0].rows[1:-1]}
    assert names == {"Website", "App"}


@pytest.mark.asyncio
async def test_client_invoice_hides_other_tenants(store, records, tenant_id, other_tenant_id):
    client = records.client(other_tenant_id)
    project = records.project(client)

    with pytest.raises(HTTPException) as exc:
        await build_client_invoice(store, tenant_id, client.id, [project.id])
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_client_invoice_requires_a_selection(store, records, tenant_id):
    client = records.client(tenant_id)
    with pytest.raises(EmptySelectionError):
        await build_client_invoice(store, tenant_id, client.id, [])
