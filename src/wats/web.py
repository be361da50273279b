"""Web: a browser session against the dashboard.

Wraps one Playwright browser, context and page. Nothing is cached between
calls; every query goes to the live DOM. Queries for absent elements return
None/""/[]; only wait_for() (and click_and_wait()) fail, with
WaitTimeoutError, when an element never appears.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import DEFAULT_TIMEOUT_MS
from .errors import TeardownError, WaitTimeoutError
from .shared.logging import get_logger

logger = get_logger(__name__)

LOGIN_PATH = "/sky/login"
USERNAME_SELECTOR = 'input[name="login"]'
PASSWORD_SELECTOR = 'input[name="password"]'
SUBMIT_SELECTOR = "#submit-login"

VIEWPORT = {"width": 1280, "height": 720}

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    # The dashboard refreshes on a timer; keep it running in background tabs
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
]

_COMPUTED_STYLE_JS = """(element, property) => {
    const style = window.getComputedStyle(element);
    return style.getPropertyValue(property) || style[property] || "";
}"""


class Web:
    """Browser session bound to one dashboard base URL."""

    def __init__(
        self,
        url: str,
        page: Page,
        context: BrowserContext | None = None,
        browser: Browser | None = None,
        playwright: Playwright | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ):
        self.url = url.rstrip("/")
        self.page = page
        self.context = context
        self.browser = browser
        self.playwright = playwright
        self.username = username
        self.password = password
        self.timeout_ms = timeout_ms
        self.closed = False

    @classmethod
    async def build(
        cls,
        url: str,
        username: str | None = None,
        password: str | None = None,
        *,
        headless: bool = True,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ) -> Web:
        """Launch a browser and open a page.

        If credentials are given, the session is logged in before returning.
        """
        playwright = await async_playwright().start()
        browser = None
        try:
            browser = await playwright.chromium.launch(headless=headless, args=BROWSER_ARGS)
            context = await browser.new_context(viewport=VIEWPORT, ignore_https_errors=True)
            page = await context.new_page()
            page.set_default_timeout(timeout_ms)
        except BaseException:
            if browser is not None:
                await browser.close()
            await playwright.stop()
            raise

        web = cls(
            url,
            page,
            context=context,
            browser=browser,
            playwright=playwright,
            username=username,
            password=password,
            timeout_ms=timeout_ms,
        )
        logger.debug("browser session opened", url=web.url, username=username)

        if username is not None and password is not None:
            try:
                await web.login()
            except BaseException:
                await web.close()
                raise
        return web

    def route(self, path: str = "/", **params: str) -> str:
        """Absolute URL for a path; keyword params become the query string."""
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    async def goto(self, url: str) -> None:
        """Navigate and wait for the network to settle."""
        logger.debug("navigating", url=url)
        await self.page.goto(url, wait_until="networkidle")

    async def login(self) -> None:
        """Log in through the dashboard's login form."""
        if self.username is None or self.password is None:
            raise ValueError("login requires a username and password")

        await self.goto(self.route(LOGIN_PATH))
        await self.wait_for(USERNAME_SELECTOR)
        await self.page.fill(USERNAME_SELECTOR, self.username)
        await self.page.fill(PASSWORD_SELECTOR, self.password)
        await self.page.click(SUBMIT_SELECTOR)
        await self.page.wait_for_load_state("networkidle")
        logger.info("logged in", url=self.url, username=self.username)

    async def wait_for(self, selector: str, timeout: float | None = None) -> ElementHandle:
        """Suspend until an element matching `selector` is in the DOM.

        Args:
            selector: CSS selector
            timeout: Milliseconds; defaults to the session timeout

        Raises:
            WaitTimeoutError: The element did not appear in time
        """
        timeout_ms = self.timeout_ms if timeout is None else timeout
        try:
            return await self.page.wait_for_selector(
                selector, state="attached", timeout=timeout_ms
            )
        except PlaywrightTimeoutError as e:
            raise WaitTimeoutError.for_selector(selector, timeout_ms) from e

    async def query(self, selector: str) -> ElementHandle | None:
        """First element matching `selector`, or None."""
        return await self.page.query_selector(selector)

    async def query_texts(self, selector: str) -> list[str]:
        """Rendered text of every element matching `selector`, in DOM order."""
        return await self.page.eval_on_selector_all(
            selector, "elements => elements.map(e => e.innerText)"
        )

    async def text(self, element: ElementHandle | None = None) -> str:
        """Rendered text of `element`, or of the whole page."""
        if element is None:
            return await self.page.inner_text("body")
        return await element.inner_text()

    async def computed_style(self, element: ElementHandle | None, property: str) -> str:
        """Live computed CSS value, e.g. computed_style(banner, "backgroundColor").

        Returns "" when the element is absent.
        """
        if element is None:
            return ""
        return await element.evaluate(_COMPUTED_STYLE_JS, property)

    async def click_and_wait(
        self, click_selector: str, wait_selector: str, timeout: float | None = None
    ) -> ElementHandle:
        """Click an element, then wait for the view it leads to."""
        await self.wait_for(click_selector, timeout)
        await self.page.click(click_selector)
        return await self.wait_for(wait_selector, timeout)

    async def pause(self, ms: float) -> None:
        """Fixed wait, for straddling a known refresh interval."""
        await self.page.wait_for_timeout(ms)

    def search_query(self) -> str:
        """Value of the `search` query parameter of the current URL."""
        query = parse_qs(urlparse(self.page.url).query)
        return query.get("search", [""])[0]

    async def screenshot(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(path), full_page=True)
        return path

    async def content(self) -> str:
        return await self.page.content()

    async def close(self) -> None:
        """Close context, browser and Playwright.

        Raises:
            TeardownError: Any step failed; every step is still attempted
        """
        if self.closed:
            return
        self.closed = True

        errors: list[str] = []
        for name, resource in (("context", self.context), ("browser", self.browser)):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"failed to close {name}", error=str(e))
                errors.append(f"close {name}: {e}")

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.warning("failed to stop playwright", error=str(e))
                errors.append(f"stop playwright: {e}")

        logger.debug("browser session closed", url=self.url)
        if errors:
            raise TeardownError.from_errors(errors)
