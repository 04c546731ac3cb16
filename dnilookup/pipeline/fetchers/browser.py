from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import async_playwright, Browser, Playwright, Route


DEFAULT_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-gpu',
    '--disable-dev-shm-usage',                          # Prevent /dev/shm issues in containers
    '--disable-blink-features=AutomationControlled',    # Hide navigator.webdriver
]

# Resource types aborted before they reach the network
BLOCKED_RESOURCE_TYPES = frozenset({'image', 'font', 'media'})

# Containers that usually hold rendered results
RESULT_SELECTORS = "table, .results, article, ul, ol, [class*=result], [class*=resultado], [class*=search]"


@dataclass(frozen=True)
class BrowserResult:
    """Outcome of one fetch: rendered HTML, or an error reason. Never both."""
    url: str
    status_code: int
    html: str | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.html)


class BrowserSession:
    """Long-lived headless Chromium shared by every query of the process.

    - One browser process, launched lazily under a lock (never two launches)
    - Relaunched when disconnected or when the liveness check fails
    - One fresh context + page per fetch, always closed before returning
    """

    def __init__(
        self,
        *,
        navigation_timeout_ms: int = 45000,
        settle_timeout_ms: int = 12000,
        user_agent: str = DEFAULT_UA,
        locale: str = "es-ES",
        proxy_url: Optional[str] = None,
        headless: bool = True,
        liveness_timeout_s: float = 5.0,
        liveness_interval_s: float = 30.0,
    ) -> None:
        self.navigation_timeout_ms = int(navigation_timeout_ms)
        self.settle_timeout_ms = int(settle_timeout_ms)
        self.user_agent = user_agent
        self.locale = locale
        self.proxy_url = proxy_url or None
        self.headless = bool(headless)
        self.liveness_timeout_s = float(liveness_timeout_s)
        self.liveness_interval_s = float(liveness_interval_s)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._last_liveness_check = 0.0
        self.launch_count = 0

    async def _is_alive(self, browser: Browser) -> bool:
        """Connection flag, plus a protocol round trip once the last one is stale."""
        if not browser.is_connected():
            return False
        loop = asyncio.get_running_loop()
        if loop.time() - self._last_liveness_check < self.liveness_interval_s:
            return True
        try:
            cdp = await asyncio.wait_for(browser.new_browser_cdp_session(), timeout=self.liveness_timeout_s)
            await cdp.detach()
        except Exception:
            return False
        self._last_liveness_check = loop.time()
        return True

    async def acquire_browser(self) -> Browser:
        """Return the shared browser, launching (or relaunching) it if needed."""
        async with self._lock:
            if self._browser is not None and await self._is_alive(self._browser):
                return self._browser
            if self._browser is not None:
                print("browser not alive; relaunching", file=sys.stderr)
                try:
                    await self._browser.close()
                except Exception:
                    pass
                self._browser = None
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=list(LAUNCH_ARGS),
            )
            self.launch_count += 1
            self._last_liveness_check = asyncio.get_running_loop().time()
            return self._browser

    def _context_options(self, referer_url: str) -> dict:
        opts = dict(
            user_agent=self.user_agent,
            locale=self.locale,
            java_script_enabled=True,
            extra_http_headers={
                'Accept-Language': 'es-ES,es;q=0.9',
                'Upgrade-Insecure-Requests': '1',
                'Sec-CH-UA-Platform': '"Windows"',
                'Referer': referer_url,
            },
        )
        if self.proxy_url:
            opts['proxy'] = {'server': self.proxy_url}
        return opts

    @staticmethod
    async def _filter_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def _wait_for_results(self, page) -> None:
        """Settle wait: first of a result-container selector or a flat delay."""
        waiters = [
            asyncio.ensure_future(page.wait_for_selector(RESULT_SELECTORS, timeout=self.settle_timeout_ms)),
            asyncio.ensure_future(page.wait_for_timeout(self.settle_timeout_ms)),
        ]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for w in waiters:
                if not w.done():
                    w.cancel()
            # Collect outcomes so a losing waiter's timeout error is not reported as unretrieved
            await asyncio.gather(*waiters, return_exceptions=True)

    async def fetch(self, target_url: str, referer_url: str) -> BrowserResult:
        """Load ``target_url`` in an isolated context and return the rendered HTML."""
        context = None
        page = None
        try:
            browser = await self.acquire_browser()
            context = await browser.new_context(**self._context_options(referer_url))
            # Reduce load by dropping heavy resources
            await context.route("**/*", self._filter_resources)
            page = await context.new_page()

            # DOM construction only; SPA pages may never reach network idle
            response = await page.goto(target_url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            status_code = response.status if response else 0

            await self._wait_for_results(page)

            html = await page.content()
            return BrowserResult(url=target_url, status_code=status_code, html=html, error=None)
        except Exception as e:
            print(f"fetch error: {e}", file=sys.stderr)
            return BrowserResult(url=target_url, status_code=0, html=None, error=str(e) or type(e).__name__)
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception:
                    pass
            if context is not None:
                try:
                    await context.close()
                except Exception:
                    pass

    async def close(self) -> None:
        """Shut down the browser and the Playwright driver; safe to call twice."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except Exception:
                    pass
                self._browser = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception:
                    pass
                self._playwright = None
