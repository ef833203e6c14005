import pytest
from uuid import uuid4

from src.core.feed import ChangeEvent, ChangeFeed, ChangeKind, Collection


def _event(collection=Collection.ORDERS, kind=ChangeKind.CREATED):
    return ChangeEvent(collection=collection, kind=kind, tenant_id=uuid4(), record_id=uuid4())


@pytest.mark.asyncio
async def test_listen_receives_events_for_its_collection_only():
    feed = ChangeFeed()
    async with feed.listen(Collection.ORDERS) as events:
        feed.publish(_event(Collection.CLIENTS))
        order_event = _event(Collection.ORDERS)
        feed.publish(order_event)
        assert events.qsize() == 1
        assert events.get_nowait() == order_event
    assert Collection.ORDERS not in feed.rooms


@pytest.mark.asyncio
async def test_listeners_run_before_queues_and_failures_are_contained():
    feed = ChangeFeed()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    feed.add_listener(broken)
    remove = feed.add_listener(seen.append)
    async with feed.listen(Collection.ORDERS) as events:
        feed.publish(_event())
        assert len(seen) == 1
        assert events.qsize() == 1

    remove()
    feed.publish(_event())
    assert len(seen) == 1


def test_structural_changes():
    assert _event(kind=ChangeKind.CREATED).structural
    assert _event(kind=ChangeKind.DELETED).structural
    assert not _event(kind=ChangeKind.UPDATED).structural
