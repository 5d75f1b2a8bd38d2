"""Extraction strategy base class.

Each source is a ``BaseExtractor`` subclass that declares where to go and
what structural marker to wait for, and implements ``parse`` to pull data
from the ready page. The shared ``extract`` workflow adds bounded retries
with exponential backoff around navigation and the structural wait, so a
flaky page costs a few seconds instead of a whole cycle.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from config.settings import GlobalConfig, get_config
from dolarpulse.browser import PageSession
from dolarpulse.exceptions import DolarPulseError, SourceUnavailableError
from dolarpulse.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class BaseExtractor(ABC, Generic[T]):
    """Abstract base class for site-specific extraction strategies.

    Type Parameters:
        T: Result type produced by ``parse``.

    Example:
        class SpotReferenceExtractor(BaseExtractor[float | None]):
            async def parse(self, session: PageSession) -> float | None:
                ...
    """

    wait_until: str = "domcontentloaded"

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable source name used in logs and errors."""
        ...

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @property
    @abstractmethod
    def ready_selector(self) -> str:
        """Structural marker that signals the page is rendered."""
        ...

    @property
    @abstractmethod
    def timeout_ms(self) -> int:
        ...

    @abstractmethod
    async def parse(self, session: PageSession) -> T:
        """Pull the source's data out of a page that passed the structural wait."""
        ...

    async def extract(self, session: PageSession) -> T:
        """Navigate, wait for the marker and parse.

        Raises:
            SourceUnavailableError: If navigation or the wait keeps failing.
        """
        await self._with_retry(
            "navigate",
            lambda: session.navigate(self.url, wait_until=self.wait_until, timeout_ms=self.timeout_ms),
        )
        await self._with_retry(
            "wait_for_selector",
            lambda: session.wait_for_selector(self.ready_selector, timeout_ms=self.timeout_ms),
        )
        return await self.parse(session)

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (1-based)."""
        delay = self.config.retry_base_delay_sec * (2 ** (attempt - 1))
        return min(delay, self.config.retry_max_delay_sec)

    async def _with_retry(self, step: str, operation: Callable[[], Awaitable[None]]) -> None:
        attempts = self.config.retry_max_attempts
        last_error: DolarPulseError | None = None

        for attempt in range(1, attempts + 1):
            try:
                await operation()
                return
            except DolarPulseError as exc:
                last_error = exc
                if attempt == attempts:
                    break
                delay = self.backoff_delay(attempt)
                log.warning(
                    "Source step failed, retrying",
                    source=self.name,
                    step=step,
                    attempt=attempt,
                    max_attempts=attempts,
                    retry_in_sec=delay,
                    error=exc.message,
                )
                await asyncio.sleep(delay)

        raise SourceUnavailableError(
            source=self.name,
            step=step,
            attempts=attempts,
            reason=last_error.message if last_error else "unknown",
        ) from last_error
