"""Playwright page fetcher with a lazily launched, shared browser engine.

The engine is expensive, so it is launched on first use and reused across
cycles. If launching fails, the next call simply tries again. Every cycle
gets its own ``PageSession`` (one browser context plus one page), which is
always closed when the cycle ends.

Anti-bot measures:
    - Disables the navigator.webdriver flag
    - Picks a user-agent from a configurable pool per session
    - Uses a realistic viewport and a Lima locale/timezone
"""

import asyncio
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Self

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import GlobalConfig, get_config
from dolarpulse.exceptions import (
    BrowserInitializationError,
    NavigationError,
    SelectorNotFoundError,
)
from dolarpulse.logger import get_logger

log = get_logger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
]

STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
});
Object.defineProperty(navigator, 'languages', {
    get: () => ['es-PE', 'es', 'en-US', 'en'],
});
window.chrome = {
    runtime: {},
};
"""


class PageSession:
    """One browser context and page, used by a single sampling cycle.

    Exposes only what the extractors need: navigate, wait for a selector,
    evaluate a script in the page and override the user agent.
    """

    def __init__(self, context: BrowserContext, page: Page) -> None:
        self._context = context
        self._page = page
        self._closed = False

    @property
    def page(self) -> Page:
        return self._page

    async def navigate(
        self,
        url: str,
        wait_until: str = "domcontentloaded",
        timeout_ms: int | None = None,
    ) -> None:
        """Navigate to ``url``.

        Raises:
            NavigationError: On timeout, missing response or HTTP >= 400.
        """
        log.debug("Navigating to URL", url=url, wait_until=wait_until, timeout_ms=timeout_ms)

        try:
            response = await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)

            if response is None:
                raise NavigationError(url=url, reason="No response received")

            status_code = response.status
            if status_code >= 400:
                raise NavigationError(
                    url=url,
                    reason=f"HTTP {status_code}",
                    status_code=status_code,
                )

            log.debug("Navigation successful", url=url, status_code=status_code)

        except (PlaywrightTimeoutError, TimeoutError) as exc:
            raise NavigationError(
                url=url,
                reason=f"Navigation timeout after {timeout_ms}ms",
            ) from exc
        except NavigationError:
            raise
        except Exception as exc:
            raise NavigationError(url=url, reason=str(exc)) from exc

    async def wait_for_selector(self, selector: str, timeout_ms: int | None = None) -> None:
        """Wait until ``selector`` is attached to the DOM.

        Raises:
            SelectorNotFoundError: If it does not appear within the timeout.
        """
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms, state="attached")
        except (PlaywrightTimeoutError, TimeoutError) as exc:
            raise SelectorNotFoundError(selector=selector, url=self._page.url) from exc

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run ``script`` in the page and return its JSON-serializable result."""
        return await self._page.evaluate(script, arg)

    async def set_user_agent(self, user_agent: str) -> None:
        await self._page.set_extra_http_headers({"User-Agent": user_agent})

    async def close(self) -> None:
        """Close page and context; errors are logged, never raised."""
        if self._closed:
            return
        self._closed = True

        try:
            await self._page.close()
        except Exception as exc:
            log.warning("Error closing page", error=str(exc))

        try:
            await self._context.close()
        except Exception as exc:
            log.warning("Error closing context", error=str(exc))


class BrowserManager:
    """Owns the Playwright runtime and the shared browser engine.

    Example:
        async with BrowserManager.create(config) as fetcher:
            async with fetcher.session() as session:
                await session.navigate("https://example.com")
    """

    def __init__(self, config: GlobalConfig) -> None:
        self.config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Yield a manager whose engine is torn down on exit.

        The browser itself is not launched here; the first session does it.
        """
        instance = cls(config or get_config())
        try:
            yield instance
        finally:
            await instance.close()

    def _select_user_agent(self) -> str:
        return random.choice(self.config.user_agents)

    async def _ensure_browser(self) -> Browser:
        """Launch the engine once; relaunch if it died or never started.

        Raises:
            BrowserInitializationError: If the launch fails.
        """
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._browser is not None:
                log.warning("Browser disconnected, relaunching")
                await self.close()

            log.info("Launching browser engine", headless=self.config.headless)

            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.config.headless,
                    args=LAUNCH_ARGS,
                )
            except Exception as exc:
                await self.close()
                raise BrowserInitializationError(
                    reason=str(exc), browser_type="chromium"
                ) from exc

            log.info("Browser engine ready")
            return self._browser

    async def new_session(self) -> PageSession:
        """Open a fresh context and page on the shared engine.

        Raises:
            BrowserInitializationError: If the engine or the context cannot be created.
        """
        browser = await self._ensure_browser()

        user_agent = self._select_user_agent()
        try:
            context = await browser.new_context(
                user_agent=user_agent,
                viewport={"width": random.randint(1280, 1920), "height": random.randint(720, 1080)},
                locale="es-PE",
                timezone_id="America/Lima",
                java_script_enabled=True,
            )
        except Exception as exc:
            raise BrowserInitializationError(
                reason=f"Cannot open browser context: {exc}", browser_type="chromium"
            ) from exc

        try:
            await context.add_init_script(STEALTH_JS)
            page = await context.new_page()
        except Exception as exc:
            try:
                await context.close()
            except Exception as close_exc:
                log.warning("Error closing context", error=str(close_exc))
            raise BrowserInitializationError(
                reason=f"Cannot open page: {exc}", browser_type="chromium"
            ) from exc

        log.debug("Page session opened", user_agent=user_agent[:50] + "...")
        return PageSession(context, page)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[PageSession, None]:
        """Yield a PageSession that is closed whatever the outcome."""
        page_session = await self.new_session()
        try:
            yield page_session
        finally:
            await page_session.close()

    async def close(self) -> None:
        """Release browser resources in reverse initialization order."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                log.warning("Error closing browser", error=str(exc))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))
            self._playwright = None

    @property
    def is_initialized(self) -> bool:
        """True once the engine has been launched and is still held."""
        return self._playwright is not None and self._browser is not None
