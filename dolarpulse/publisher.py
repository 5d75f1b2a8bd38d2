"""Live fan-out of samples to dashboard subscribers.

A new subscriber first receives a ``boot`` event carrying the whole
intraday history, then one ``tick`` event per completed cycle. Each
subscriber has a bounded queue drained by its own pump task, so a slow or
dead client never blocks the scheduler: when its queue is full it is
dropped.
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Protocol

from dolarpulse.history import SampleHistory
from dolarpulse.logger import get_logger
from dolarpulse.models import Sample

log = get_logger(__name__)

BOOT_EVENT = "boot"
TICK_EVENT = "tick"

Event = dict[str, Any]


class SubscriberSink(Protocol):
    """Transport to one connected client (e.g. a WebSocket)."""

    async def send(self, event: Event) -> None: ...

    async def close(self) -> None: ...


@dataclass(eq=False)
class Subscription:
    id: int
    sink: SubscriberSink
    queue: asyncio.Queue[Event]
    task: asyncio.Task[None] | None = field(default=None, repr=False)
    closed: bool = False


def boot_event(samples: tuple[Sample, ...]) -> Event:
    return {"event": BOOT_EVENT, "data": [sample.to_wire() for sample in samples]}


def tick_event(sample: Sample) -> Event:
    return {"event": TICK_EVENT, "data": sample.to_wire()}


class LivePublisher:
    """Broadcasts samples to every connected subscriber.

    ``connect`` and ``publish`` never await, so the boot snapshot and the
    registration happen atomically on the event loop: a subscriber sees
    each sample exactly once, either inside ``boot`` or as a ``tick``.
    """

    def __init__(self, history: SampleHistory, queue_size: int = 100) -> None:
        self.history = history
        self.queue_size = queue_size
        self._subscribers: dict[int, Subscription] = {}
        self._closing: set[asyncio.Task[None]] = set()
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def connect(self, sink: SubscriberSink) -> Subscription:
        """Register ``sink`` and queue the boot snapshot as its first event.

        Must be called from a running event loop.
        """
        # +1 so the boot event never counts against the tick backlog
        subscription = Subscription(
            id=next(self._ids),
            sink=sink,
            queue=asyncio.Queue(maxsize=self.queue_size + 1),
        )
        subscription.queue.put_nowait(boot_event(self.history.snapshot()))
        self._subscribers[subscription.id] = subscription
        subscription.task = asyncio.create_task(
            self._pump(subscription), name=f"subscriber-{subscription.id}"
        )

        log.info(
            "Subscriber connected",
            subscriber_id=subscription.id,
            boot_size=len(self.history),
            subscribers=self.subscriber_count,
        )
        return subscription

    def publish(self, sample: Sample) -> int:
        """Queue a tick for every subscriber; returns how many received it."""
        event = tick_event(sample)
        delivered = 0

        for subscription in list(self._subscribers.values()):
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                log.warning(
                    "Subscriber too slow, dropping",
                    subscriber_id=subscription.id,
                    backlog=subscription.queue.qsize(),
                )
                self._drop(subscription)
                # the pump may be cancelled before it ever ran its finally
                closing = asyncio.create_task(self._close_sink(subscription))
                self._closing.add(closing)
                closing.add_done_callback(self._closing.discard)

        return delivered

    async def disconnect(self, subscription: Subscription) -> None:
        """Stop delivering to ``subscription`` and close its sink."""
        self._drop(subscription)
        if subscription.task is not None:
            try:
                await subscription.task
            except asyncio.CancelledError:
                pass
        await self._close_sink(subscription)

    async def close(self) -> None:
        """Disconnect every subscriber."""
        for subscription in list(self._subscribers.values()):
            await self.disconnect(subscription)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)

    def _drop(self, subscription: Subscription) -> None:
        self._subscribers.pop(subscription.id, None)
        if subscription.task is not None and not subscription.task.done():
            subscription.task.cancel()

    async def _pump(self, subscription: Subscription) -> None:
        try:
            while True:
                event = await subscription.queue.get()
                await subscription.sink.send(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.info(
                "Subscriber send failed, removing",
                subscriber_id=subscription.id,
                error=str(exc),
            )
        finally:
            self._subscribers.pop(subscription.id, None)
            await self._close_sink(subscription)

    async def _close_sink(self, subscription: Subscription) -> None:
        if subscription.closed:
            return
        subscription.closed = True
        try:
            await subscription.sink.close()
        except Exception as exc:
            log.debug("Error closing subscriber sink", error=str(exc))
        log.info(
            "Subscriber disconnected",
            subscriber_id=subscription.id,
            subscribers=self.subscriber_count,
        )
