"""
Headless browser session.

One Chromium process per run. The session is the only thing allowed to
open or close pages, and it must be closed exactly once whatever happens
during the crawl, so use it as an async context manager.
"""

import logging

from playwright.async_api import async_playwright, Route

from tales_analyzer.config import get_settings
from tales_analyzer.errors import BrowserLaunchError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

# Chromium flags that keep the browser alive inside small containers
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--disable-extensions",
]

BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font"})


async def block_heavy_resources(route: Route):
    """Abort image/stylesheet/font fetches, let everything else through."""
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserSession:
    def __init__(self, settings=None, playwright_factory=async_playwright, logger=logger):
        self.settings = settings or get_settings()
        self._playwright_factory = playwright_factory
        self._playwright = None
        self._browser = None
        self._context = None
        self._closed = False
        self.log = logger

    @property
    def launched(self) -> bool:
        return self._context is not None and not self._closed

    async def launch(self) -> "BrowserSession":
        """Start Chromium. Any failure here is fatal to the run; no retry."""
        s = self.settings
        launch_options = {"headless": s.headless, "args": LAUNCH_ARGS}
        if s.browser_executable_path:
            launch_options["executable_path"] = s.browser_executable_path

        try:
            self._playwright = await self._playwright_factory().start()
            self._browser = await self._playwright.chromium.launch(**launch_options)
            self._context = await self._browser.new_context(
                viewport={"width": s.viewport_width, "height": s.viewport_height},
                user_agent=USER_AGENT,
            )
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        self.log.info(f"Browser launched (headless={s.headless})")
        return self

    async def configure_page(self, page):
        """Apply timeouts and the resource filter to a page."""
        timeout = self.settings.navigation_timeout_ms
        page.set_default_navigation_timeout(timeout)
        page.set_default_timeout(timeout)
        await page.route("**/*", block_heavy_resources)
        return page

    async def open_page(self):
        if not self.launched:
            raise BrowserLaunchError("Browser session is not running")
        page = await self._context.new_page()
        return await self.configure_page(page)

    async def close_page(self, page) -> None:
        try:
            if not page.is_closed():
                await page.close()
        except Exception as e:
            self.log.warning(f"Failed to close page: {e}")

    async def close(self) -> None:
        """Release the browser. Safe to call more than once; only the first call acts."""
        if self._closed:
            return
        self._closed = True

        for name, closer in (
            ("context", self._context and self._context.close),
            ("browser", self._browser and self._browser.close),
            ("playwright", self._playwright and self._playwright.stop),
        ):
            if not closer:
                continue
            try:
                await closer()
            except Exception as e:
                self.log.warning(f"Failed to close {name}: {e}")

        self.log.info("Browser closed")

    async def __aenter__(self):
        return await self.launch()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
