from __future__ import annotations

import random
from typing import Optional

from playwright.sync_api import sync_playwright

from lawdir.schemas import FetchMode
from .proxy import ProxyProvider, random_user_agent
from .static import BROWSER_HEADERS, FetchResult


class PlaywrightFetcher:
    """Headless browser fetcher used once the site starts challenging us.

    Uses Playwright with security-first settings:
    - Sandbox enabled (no --no-sandbox)
    - Extensions and plugins disabled
    - Headless mode only

    A fresh browser is launched per fetch, so concurrent callers on different
    threads never share Playwright objects.
    """

    def __init__(
        self,
        *,
        timeout_ms: int = 45000,
        idle_timeout_ms: int = 10000,
        user_agent: str | None = None,
        proxy_provider: Optional[ProxyProvider] = None,
        human_delay_ms: tuple[int, int] = (500, 1500),
    ) -> None:
        self.timeout_ms = timeout_ms
        self.idle_timeout_ms = idle_timeout_ms
        self.user_agent = user_agent
        self.proxy_provider = proxy_provider
        self.human_delay_ms = human_delay_ms

    def _launch_kwargs(self) -> dict:
        kwargs: dict = {
            "headless": True,
            "args": [
                '--disable-dev-shm-usage',     # Prevent /dev/shm issues in containers
                '--disable-gpu',                # Disable GPU for headless
                '--disable-extensions',         # No browser extensions
                '--disable-plugins',            # No plugins
                '--no-first-run',               # Skip first run setup
                '--disable-default-apps',       # No default apps
            ],
        }
        proxy = self.proxy_provider.new_url() if self.proxy_provider else None
        if proxy:
            kwargs["proxy"] = {"server": proxy}
        return kwargs

    def fetch(self, url: str) -> FetchResult:
        """Fetch page using Playwright headless browser."""
        return self._fetch(url, raw=False)

    def fetch_raw(self, url: str) -> FetchResult:
        """Fetch through the browser but keep the response body as served (JSON endpoints)."""
        return self._fetch(url, raw=True)

    def _fetch(self, url: str, *, raw: bool) -> FetchResult:
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(**self._launch_kwargs())
                try:
                    context = browser.new_context(
                        user_agent=self.user_agent or random_user_agent(),
                        locale="en-US",
                        extra_http_headers=BROWSER_HEADERS,
                    )
                    page = context.new_page()

                    response = page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    if not response:
                        return FetchResult(
                            url=url,
                            final_url=url,
                            status_code=0,
                            body=None,
                            mode=FetchMode.RENDERED,
                            error="No response received",
                        )

                    # Let XHR-driven listings settle, then a short human-like pause
                    try:
                        page.wait_for_load_state("networkidle", timeout=self.idle_timeout_ms)
                    except Exception:
                        pass
                    low, high = self.human_delay_ms
                    page.wait_for_timeout(random.randint(low, high))

                    return FetchResult(
                        url=url,
                        final_url=page.url or url,
                        status_code=response.status,
                        body=response.text() if raw else page.content(),
                        mode=FetchMode.RENDERED,
                        headers=dict(response.headers or {}),
                        page_title=page.title(),
                    )
                finally:
                    browser.close()
        except Exception as e:
            return FetchResult(
                url=url,
                final_url=url,
                status_code=0,
                body=None,
                mode=FetchMode.RENDERED,
                error=str(e),
            )
