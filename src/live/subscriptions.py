import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from uuid import UUID

from src.config import settings
from src.live.query import CollectionSpec, TenantQuery, scoped
from src.live.store import RecordStore
from src.shared.exceptions import TransientFetchError

logger = logging.getLogger(__name__)

OnChange = Callable[[List[Any]], Union[None, Awaitable[None]]]
OnError = Callable[[Exception], Union[None, Awaitable[None]]]


async def _deliver(callback: Callable, value: Any):
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class Subscription:
    def __init__(self, slot: str, query: TenantQuery, task: asyncio.Task):
        self.slot = slot
        self.query = query
        self.task = task

    @property
    def active(self) -> bool:
        return not self.task.done()


class SubscriptionManager:
    """Owns the live queries of one view.

    Holds at most one subscription per slot; subscribing to an occupied slot
    cancels the previous query before the new one starts. Use as an async
    context manager so every exit path releases all subscriptions.
    """

    def __init__(
        self,
        store: RecordStore,
        retry_attempts: int = settings.SUBSCRIPTION_RETRY_ATTEMPTS,
        retry_delay: float = settings.SUBSCRIPTION_RETRY_DELAY_SECONDS,
    ):
        self.store = store
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.active: Dict[str, Subscription] = {}

    async def __aenter__(self) -> "SubscriptionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def subscribe(
        self,
        spec: CollectionSpec,
        tenant_id: UUID,
        on_change: OnChange,
        on_error: Optional[OnError] = None,
        slot: Optional[str] = None,
    ) -> Subscription:
        query = scoped(spec, tenant_id)
        slot = slot or spec.slot

        previous = self.active.pop(slot, None)
        if previous is not None:
            await self._cancel(previous)
            logger.debug(f"Replaced subscription {slot}")

        task = asyncio.create_task(self._pump(slot, query, on_change, on_error), name=f"subscription:{slot}")
        subscription = Subscription(slot, query, task)
        self.active[slot] = subscription
        logger.info(f"Subscribed {slot} for tenant {query.tenant_id}")
        return subscription

    async def unsubscribe(self, subscription: Subscription):
        if self.active.get(subscription.slot) is subscription:
            del self.active[subscription.slot]
        await self._cancel(subscription)

    async def unsubscribe_slot(self, slot: str):
        subscription = self.active.pop(slot, None)
        if subscription is not None:
            await self._cancel(subscription)

    async def close(self):
        subscriptions = list(self.active.values())
        self.active.clear()
        for subscription in subscriptions:
            await self._cancel(subscription)
        if subscriptions:
            logger.info(f"Released {len(subscriptions)} subscriptions")

    async def _cancel(self, subscription: Subscription):
        subscription.task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await subscription.task

    async def _pump(self, slot: str, query: TenantQuery, on_change: OnChange, on_error: Optional[OnError]):
        failures = 0
        while True:
            try:
                async with contextlib.aclosing(self.store.subscribe(query)) as snapshots:
                    async for snapshot in snapshots:
                        failures = 0
                        await _deliver(on_change, snapshot)
                return
            except TransientFetchError as e:
                failures += 1
                if failures > self.retry_attempts:
                    logger.error(f"Subscription {slot} gave up after {failures} failures: {e.detail}")
                    if on_error is not None:
                        await _deliver(on_error, e)
                    return
                logger.warning(f"Subscription {slot} failed ({e.detail}), retry {failures}/{self.retry_attempts}")
                await asyncio.sleep(self.retry_delay)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Subscription {slot} consumer failed")
                if on_error is not None:
                    await _deliver(on_error, e)
                return
