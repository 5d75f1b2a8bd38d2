"""Error hierarchy for the sampling pipeline.

Every error carries a ``context`` dict describing what was being fetched,
so a single log line is enough to tell which page, selector or step broke.
Errors raised inside a cycle are caught by the scheduler at the extractor or
session boundary; only startup errors (logging) ever reach ``main``.
"""

from datetime import UTC, datetime
from typing import Any


class DolarPulseError(Exception):
    """Root of all DolarPulse errors.

    Attributes:
        message: Human-readable error description.
        context: Extra debugging fields (url, selector, source, ...).
        timestamp: UTC instant the error was created.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.timestamp = datetime.now(UTC)

    def __str__(self) -> str:
        details = ", ".join(f"{key}={value}" for key, value in self.context.items() if value is not None)
        stamp = self.timestamp.isoformat(timespec="seconds")
        return f"{self.message} [{details}] @ {stamp}" if details else f"{self.message} @ {stamp}"


class BrowserInitializationError(DolarPulseError):
    """The browser engine could not be launched or a session opened.

    The cycle still emits an all-absent sample and the next cycle relaunches.
    """

    def __init__(self, reason: str, browser_type: str = "chromium") -> None:
        super().__init__(
            message=f"Browser engine '{browser_type}' unavailable: {reason}",
            context={"browser_type": browser_type, "reason": reason},
        )


class NavigationError(DolarPulseError):
    """Page load failed: timeout, no response or HTTP status >= 400."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Could not load {url}: {reason}",
            context={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class ExtractionError(DolarPulseError):
    def __init__(self, selector: str, url: str, reason: str) -> None:
        super().__init__(
            message=f"Could not read '{selector}': {reason}",
            context={"selector": selector, "url": url},
        )
        self.selector = selector


class SelectorNotFoundError(ExtractionError):
    """The structural marker never appeared; the page layout may have changed."""

    def __init__(self, selector: str, url: str) -> None:
        super().__init__(selector=selector, url=url, reason="marker not attached before timeout")


class SourceUnavailableError(DolarPulseError):
    """A source step kept failing after every retry attempt.

    Attributes:
        source: Name of the extractor that gave up.
        attempts: Number of attempts performed.
    """

    def __init__(self, source: str, step: str, attempts: int, reason: str) -> None:
        super().__init__(
            message=f"{source} source gave up at {step} after {attempts} attempt(s): {reason}",
            context={"source": source, "step": step, "attempts": attempts},
        )
        self.source = source
        self.attempts = attempts


class LoggingInitializationError(DolarPulseError):
    """The log directory is missing or not writable. Startup-blocking."""

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Log directory '{log_dir}' unusable: {reason}",
            context={"log_dir": log_dir},
        )
