"""Pytest configuration and shared fixtures for the DolarPulse test suite.

Guarantees:
- No external network requests (Playwright and pages are faked)
- Isolated config state (the get_config singleton is reset per test)
- No real sleeping in retry paths (backoff delays are zero)
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytest_mock import MockerFixture

from config.settings import GlobalConfig
from dolarpulse.exceptions import BrowserInitializationError
from dolarpulse.models import RankedOffer, Sample


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Example:
        def test_something(mock_config: GlobalConfig) -> None:
            assert mock_config.retry_max_attempts == 2
    """
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    test_env = {
        "APP_NAME": "DolarPulse-Test",
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "HEADLESS": "true",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "PORT": "3999",
        "REFRESH_MS": "1000",
        "STATIC_DIR": str(tmp_path / "no-public"),
        "FINTECH_URL": "https://fintech.test/",
        "FINTECH_TIMEOUT_MS": "5000",
        "SPOT_URL": "https://spot.test/quote",
        "SPOT_TIMEOUT_MS": "5000",
        "RETRY_MAX_ATTEMPTS": "2",
        "RETRY_BASE_DELAY_SEC": "0",
        "RETRY_MAX_DELAY_SEC": "0",
        "HISTORY_MAX_LENGTH": "2000",
        "SUBSCRIBER_QUEUE_SIZE": "5",
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    get_config.cache_clear()


@pytest.fixture
def sample_factory() -> Callable[..., Sample]:
    """Factory for samples at a given UTC instant.

    Example:
        sample = sample_factory(hour=10, bid_average=3.75)
    """

    def _make(
        day: int = 17,
        hour: int = 12,
        minute: int = 0,
        second: int = 0,
        **fields: Any,
    ) -> Sample:
        return Sample(
            timestamp=datetime(2026, 10, day, hour, minute, second, tzinfo=UTC),
            **fields,
        )

    return _make


@pytest.fixture
def full_sample(sample_factory: Callable[..., Sample]) -> Sample:
    return sample_factory(
        bid_average=3.751,
        ask_average=3.7625,
        spot=3.7553,
        best_buy=RankedOffer(name="Rextie", price=3.758),
        best_sell=RankedOffer(name="Kambista", price=3.755),
        sample_count=12,
    )


class FakeSession:
    """Stand-in for PageSession driven by per-URL scripted behavior.

    Attributes:
        evaluations: Mapping of url -> value returned by ``evaluate`` there.
        navigate_errors: Mapping of url -> list of exceptions raised in order.
        wait_errors: Mapping of selector -> list of exceptions raised in order.
    """

    def __init__(self) -> None:
        self.current_url: str | None = None
        self.evaluations: dict[str, Any] = {}
        self.navigate_errors: dict[str, list[Exception]] = {}
        self.wait_errors: dict[str, list[Exception]] = {}
        self.navigations: list[tuple[str, str, int | None]] = []
        self.waits: list[str] = []
        self.closed = False

    async def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int | None = None) -> None:
        self.navigations.append((url, wait_until, timeout_ms))
        errors = self.navigate_errors.get(url)
        if errors:
            raise errors.pop(0)
        self.current_url = url

    async def wait_for_selector(self, selector: str, timeout_ms: int | None = None) -> None:
        self.waits.append(selector)
        errors = self.wait_errors.get(selector)
        if errors:
            raise errors.pop(0)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        value = self.evaluations.get(self.current_url)
        if isinstance(value, Exception):
            raise value
        return value

    async def set_user_agent(self, user_agent: str) -> None:
        pass

    async def close(self) -> None:
        self.closed = True


class FakeFetcher:
    """Stand-in for BrowserManager handing out a FakeSession."""

    def __init__(self, session: FakeSession | None = None, fail: bool = False) -> None:
        self.session_obj = session or FakeSession()
        self.fail = fail
        self.sessions_opened = 0

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[FakeSession, None]:
        if self.fail:
            raise BrowserInitializationError(reason="Executable doesn't exist")
        self.sessions_opened += 1
        try:
            yield self.session_obj
        finally:
            await self.session_obj.close()

    async def close(self) -> None:
        pass


class RecordingSink:
    """Subscriber sink that records events; can be made slow or broken."""

    def __init__(self, fail_on_send: bool = False, block: bool = False) -> None:
        self.events: list[dict[str, Any]] = []
        self.closed = False
        self.fail_on_send = fail_on_send
        self._gate = asyncio.Event()
        if not block:
            self._gate.set()

    async def send(self, event: dict[str, Any]) -> None:
        if self.fail_on_send:
            raise ConnectionResetError("client went away")
        await self._gate.wait()
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_fetcher(fake_session: FakeSession) -> FakeFetcher:
    return FakeFetcher(fake_session)


def create_playwright_mock() -> tuple[MagicMock, MagicMock, MagicMock, MagicMock, MagicMock]:
    """Mock chain for the ``async_playwright().start()`` pattern.

    Returns:
        Tuple of (async_playwright_instance, playwright, browser, context, page)
    """
    page_mock = MagicMock()
    page_mock.url = "https://fintech.test/"
    page_mock.goto = AsyncMock(return_value=MagicMock(status=200))
    page_mock.wait_for_selector = AsyncMock()
    page_mock.evaluate = AsyncMock(return_value=None)
    page_mock.set_extra_http_headers = AsyncMock()
    page_mock.close = AsyncMock()

    context_mock = MagicMock()
    context_mock.add_init_script = AsyncMock()
    context_mock.new_page = AsyncMock(return_value=page_mock)
    context_mock.close = AsyncMock()

    browser_mock = MagicMock()
    browser_mock.new_context = AsyncMock(return_value=context_mock)
    browser_mock.is_connected = MagicMock(return_value=True)
    browser_mock.close = AsyncMock()

    playwright_mock = MagicMock()
    playwright_mock.chromium.launch = AsyncMock(return_value=browser_mock)
    playwright_mock.stop = AsyncMock()

    async_playwright_instance = MagicMock()
    async_playwright_instance.start = AsyncMock(return_value=playwright_mock)

    return async_playwright_instance, playwright_mock, browser_mock, context_mock, page_mock


@pytest.fixture
def playwright_mocks(mocker: MockerFixture) -> tuple[MagicMock, MagicMock, MagicMock, MagicMock, MagicMock]:
    """Patch ``async_playwright`` in the browser module with a mock chain."""
    mocks = create_playwright_mock()
    mocker.patch("dolarpulse.browser.async_playwright", return_value=mocks[0])
    return mocks


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
