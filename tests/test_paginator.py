import asyncio

import pytest

from src.live.paginator import CursorPaginator, PaginatorRegistry
from src.live.query import Cursor
from src.shared.exceptions import PaginationSequenceError


@pytest.fixture
def client_with_projects(records, tenant_id):
    client = records.client(tenant_id)
    projects = [records.project(client, f"Project {i}") for i in range(7)]
    return client, projects


@pytest.fixture
def paginator(store, tenant_id):
    paginator = CursorPaginator(store, tenant_id, page_size=3)
    paginator.attach()
    yield paginator
    paginator.detach()


def _names(page):
    return [p.name for p in page.records]


@pytest.mark.asyncio
async def test_pages_walk_forward_newest_first(paginator, client_with_projects):
    client, _ = client_with_projects

    first = await paginator.get_page(client.id, 1)
    second = await paginator.get_page(client.id, 2)
    third = await paginator.get_page(client.id, 3)

    assert _names(first) == ["Project 6", "Project 5", "Project 4"]
    assert _names(second) == ["Project 3", "Project 2", "Project 1"]
    assert _names(third) == ["Project 0"]
    assert (first.has_more, second.has_more, third.has_more) == (True, True, False)
    assert first.total == 7


@pytest.mark.asyncio
async def test_going_back_returns_the_same_first_page(paginator, client_with_projects):
    client, _ = client_with_projects

    first = await paginator.get_page(client.id, 1)
    await paginator.get_page(client.id, 2)
    again = await paginator.get_page(client.id, 1)

    assert [p.id for p in again.records] == [p.id for p in first.records]


@pytest.mark.asyncio
async def test_backward_navigation_reuses_recorded_cursors(paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)
    await paginator.get_page(client.id, 2)
    await paginator.get_page(client.id, 3)
    cursors = list(paginator.sessions[client.id].cursors)

    second = await paginator.get_page(client.id, 2)

    assert _names(second) == ["Project 3", "Project 2", "Project 1"]
    assert paginator.sessions[client.id].cursors == cursors


@pytest.mark.asyncio
async def test_skipping_ahead_is_an_error(paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)

    with pytest.raises(PaginationSequenceError) as exc:
        await paginator.get_page(client.id, 3)

    assert exc.value.retryable
    assert "restart from page 1" in exc.value.detail


@pytest.mark.asyncio
async def test_page_numbers_start_at_one(paginator, client_with_projects):
    client, _ = client_with_projects
    with pytest.raises(ValueError):
        await paginator.get_page(client.id, 0)


@pytest.mark.asyncio
async def test_total_is_counted_once_per_session(store, paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)
    await paginator.get_page(client.id, 2)
    await paginator.get_page(client.id, 1)
    assert store.counts == 1


@pytest.mark.asyncio
async def test_child_create_restarts_pagination(records, paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)
    await paginator.get_page(client.id, 2)

    records.project(client, "Newest")

    assert client.id not in paginator.sessions
    with pytest.raises(PaginationSequenceError):
        await paginator.get_page(client.id, 2)
    first = await paginator.get_page(client.id, 1)
    assert _names(first)[0] == "Newest"
    assert first.total == 8


@pytest.mark.asyncio
async def test_child_delete_restarts_pagination(store, paginator, client_with_projects):
    client, projects = client_with_projects
    await paginator.get_page(client.id, 1)

    store.remove(projects[0])

    assert client.id not in paginator.sessions


@pytest.mark.asyncio
async def test_child_update_keeps_cursor_history(records, paginator, client_with_projects):
    client, projects = client_with_projects
    await paginator.get_page(client.id, 1)

    records.store.put(projects[6].model_copy(update={"name": "Renamed"}))

    assert len(paginator.sessions[client.id].cursors) == 1


@pytest.mark.asyncio
async def test_parent_delete_restarts_pagination(store, paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)

    store.remove(client)

    assert client.id not in paginator.sessions


@pytest.mark.asyncio
async def test_sibling_changes_do_not_invalidate(records, paginator, client_with_projects, tenant_id):
    client, _ = client_with_projects
    sibling = records.client(tenant_id, "Sibling")
    await paginator.get_page(client.id, 1)

    records.project(sibling, "Elsewhere")

    assert client.id in paginator.sessions


@pytest.mark.asyncio
async def test_other_tenants_projects_are_invisible(store, client_with_projects, other_tenant_id):
    client, _ = client_with_projects
    page = await CursorPaginator(store, other_tenant_id, page_size=3).get_page(client.id, 1)
    assert page.records == []
    assert page.total == 0
    assert not page.has_more


@pytest.mark.asyncio
async def test_serial_numbers_are_positional(paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)
    second = await paginator.get_page(client.id, 2)
    assert [serial for serial, _ in second.numbered()] == [4, 5, 6]


@pytest.mark.asyncio
async def test_registry_binds_one_paginator_per_tenant(store, tenant_id, other_tenant_id):
    registry = PaginatorRegistry(page_size=3)
    first = registry.get(store, tenant_id)

    assert registry.get(store, tenant_id) is first
    assert registry.get(store, other_tenant_id) is not first
    assert len(store.feed.listeners) == 2

    registry.clear()
    assert store.feed.listeners == []


async def _until_parked(store, count=1):
    while store.parked < count:
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_reads_in_flight_during_a_create_are_discarded(store, records, paginator, tenant_id):
    client = records.client(tenant_id)
    for i in range(10):
        records.project(client, f"Project {i}")
    await paginator.get_page(client.id, 1)
    await paginator.get_page(client.id, 2)

    store.fetch_gate = asyncio.Event()
    in_flight = asyncio.create_task(paginator.get_page(client.id, 2))
    queued = asyncio.create_task(paginator.get_page(client.id, 3))
    await _until_parked(store)

    records.project(client, "Newest")
    assert client.id not in paginator.sessions
    store.fetch_gate.set()

    with pytest.raises(PaginationSequenceError):
        await in_flight
    with pytest.raises(PaginationSequenceError):
        await queued

    first = await paginator.get_page(client.id, 1)
    assert _names(first)[0] == "Newest"
    assert first.total == 11


@pytest.mark.asyncio
async def test_first_page_restarts_when_invalidated_in_flight(store, records, paginator, client_with_projects):
    client, _ = client_with_projects
    await paginator.get_page(client.id, 1)

    store.fetch_gate = asyncio.Event()
    pending = asyncio.create_task(paginator.get_page(client.id, 1))
    await _until_parked(store)

    records.project(client, "Newest")
    store.fetch_gate.set()
    first = await pending

    assert _names(first) == ["Newest", "Project 6", "Project 5"]
    assert first.total == 8
    assert paginator.sessions[client.id].cursors == [Cursor.after(first.records[-1])]
