"""Sampling cycle orchestration.

One cycle: open a page session, run the fintech and spot extractors in
sequence (each isolated from the other's failure), close the session, then
build a sample, append it to the history and publish it. A cycle always
produces a sample, even when the browser engine is unavailable, so the
series never has gaps.

Cycles are triggered once at startup and then every ``refresh_ms``. The
timer does not wait for the previous cycle to finish, so a slow cycle may
overlap the next one. Both run on the same event loop, and the history is
only mutated by the synchronous ``append``.
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from config.settings import GlobalConfig, get_config
from dolarpulse.aggregator import aggregate
from dolarpulse.browser import BrowserManager, PageSession
from dolarpulse.exceptions import BrowserInitializationError, DolarPulseError
from dolarpulse.extractor import BaseExtractor
from dolarpulse.history import SampleHistory
from dolarpulse.logger import get_logger
from dolarpulse.models import Sample, build_sample
from dolarpulse.publisher import LivePublisher
from dolarpulse.sources import FintechAveragesExtractor, FintechResult, SpotReferenceExtractor

log = get_logger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(UTC)


class CycleScheduler:
    """Drives sampling cycles and feeds history and subscribers.

    Attributes:
        fetcher: Shared page fetcher (lazily launched browser engine).
        history: Intraday sample history; this scheduler is its only writer.
        publisher: Fan-out to live subscribers.
        cycles_completed: Number of cycles that produced a sample.
        last_cycle_duration: Wall time of the most recent cycle, in seconds.
    """

    def __init__(
        self,
        fetcher: BrowserManager,
        history: SampleHistory,
        publisher: LivePublisher,
        config: GlobalConfig | None = None,
        fintech: BaseExtractor[FintechResult] | None = None,
        spot: BaseExtractor[float | None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or get_config()
        self.fetcher = fetcher
        self.history = history
        self.publisher = publisher
        self.fintech = fintech or FintechAveragesExtractor(self.config)
        self.spot = spot or SpotReferenceExtractor(self.config)
        self.clock = clock

        self.cycles_completed = 0
        self.last_cycle_duration: float | None = None
        self._timer: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[Any]] = set()

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def in_flight(self) -> int:
        return len(self._cycles)

    async def run_cycle(self) -> Sample:
        """Run one sampling cycle and return the sample it produced."""
        timestamp = self.clock()
        loop = asyncio.get_running_loop()
        started = loop.time()

        log.info("Sampling cycle started", timestamp=timestamp.isoformat())

        fintech_result: FintechResult | None = None
        spot: float | None = None

        try:
            async with self.fetcher.session() as session:
                fintech_result = await self._run_source(self.fintech, session)
                spot = await self._run_source(self.spot, session)
        except BrowserInitializationError as exc:
            log.error(
                "Browser engine unavailable - emitting empty sample",
                error=exc.message,
            )
        except Exception as exc:
            log.exception("Unexpected error acquiring page session", error=str(exc))

        if fintech_result is not None:
            summary = aggregate(fintech_result.offers)
            log.info(
                "Fintech averages extracted",
                sample_count=fintech_result.sample_count,
                dropped=fintech_result.dropped,
                bid_average=summary.bid_average,
                ask_average=summary.ask_average,
            )
        else:
            summary = None

        if spot is not None:
            log.info("Spot reference extracted", spot=spot)

        sample = build_sample(
            timestamp=timestamp,
            aggregate=summary,
            spot=spot,
            sample_count=fintech_result.sample_count if fintech_result else 0,
        )

        self.history.append(sample)
        delivered = self.publisher.publish(sample)

        self.cycles_completed += 1
        self.last_cycle_duration = loop.time() - started

        log.info(
            "Sampling cycle complete",
            duration_sec=round(self.last_cycle_duration, 2),
            history_size=len(self.history),
            subscribers=delivered,
            empty=sample.is_empty,
        )
        return sample

    async def _run_source(self, extractor: BaseExtractor[T], session: PageSession) -> T | None:
        """Run one extractor; any failure yields None for this cycle."""
        try:
            return await extractor.extract(session)
        except DolarPulseError as exc:
            log.error("Source failed", source=extractor.name, error=exc.message)
        except Exception as exc:
            log.exception("Unexpected source error", source=extractor.name, error=str(exc))
        return None

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.exception("Sampling cycle crashed", error=str(exc))

    def trigger(self) -> asyncio.Task[None]:
        """Start a cycle in the background and return its task."""
        task = asyncio.create_task(self._guarded_cycle(), name="sampling-cycle")
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    async def _tick_forever(self) -> None:
        interval = self.config.refresh_seconds
        while True:
            await asyncio.sleep(interval)
            if self._cycles:
                log.warning("Previous cycle still running, starting another", in_flight=len(self._cycles))
            self.trigger()

    def start(self) -> None:
        """Trigger the first cycle now and schedule the following ones."""
        if self.is_running:
            return
        log.info("Scheduler started", refresh_ms=self.config.refresh_ms)
        self.trigger()
        self._timer = asyncio.create_task(self._tick_forever(), name="sampling-timer")

    async def stop(self) -> None:
        """Cancel the timer and any in-flight cycle (process shutdown)."""
        pending = [t for t in (self._timer, *self._cycles) if t is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._timer = None
        log.info("Scheduler stopped", cycles_completed=self.cycles_completed)
