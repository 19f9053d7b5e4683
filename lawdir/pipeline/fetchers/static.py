from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlparse
from urllib import robotparser

import httpx

from lawdir.schemas import FetchMode
from .proxy import ProxyProvider, random_user_agent


DEFAULT_UA = "LDS-StaticFetcher/0.1 (+https://example.com)"

# 503 is a blocking status and is classified upstream, not retried here
RETRY_STATUS_CODES = {500, 502, 504}

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    body: str | None
    mode: FetchMode = FetchMode.LIGHTWEIGHT
    headers: Dict[str, str] = field(default_factory=dict)
    error: str | None = None
    blocked_by_robots: bool = False
    page_title: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.blocked_by_robots and self.body is not None


class StaticFetcher:
    """Lightweight HTTP fetcher (no JavaScript).

    - Uses httpx for network IO, rotating desktop user agents per request
    - Retries transport errors and non-blocking 5xx a bounded number of times
    - Optional robots.txt enforcement (parsed with urllib.robotparser, cached per host)
    """

    def __init__(
        self,
        *,
        timeout_s: float = 12.0,
        user_agent: str | None = None,
        respect_robots: bool = True,
        max_attempts: int = 3,
        backoff_s: float = 1.0,
        proxy_provider: Optional[ProxyProvider] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.respect_robots = respect_robots
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_s = backoff_s
        proxy = proxy_provider.new_url() if proxy_provider else None
        self._client = httpx.Client(
            timeout=self.timeout_s,
            headers={"User-Agent": self.user_agent or DEFAULT_UA, **BROWSER_HEADERS},
            proxy=proxy,
            transport=transport,
        )
        self._robots: Dict[str, Optional[robotparser.RobotFileParser]] = {}

    def close(self) -> None:
        self._client.close()

    def _request_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent or random_user_agent()}

    def _robots_allows(self, url: str) -> bool:
        if not self.respect_robots:
            return True
        parsed = urlparse(url)
        host = f"{parsed.scheme}://{parsed.netloc}"
        if host not in self._robots:
            rp: Optional[robotparser.RobotFileParser] = None
            try:
                resp = self._client.get(f"{host}/robots.txt")
                if resp.status_code < 400:
                    rp = robotparser.RobotFileParser()
                    rp.parse(resp.text.splitlines())
            except httpx.HTTPError:
                # If cannot retrieve robots, default allow
                rp = None
            self._robots[host] = rp
        rp = self._robots[host]
        if rp is None:
            return True
        ua = self.user_agent or DEFAULT_UA
        return rp.can_fetch(ua, url) and rp.can_fetch("*", url)

    def fetch(self, url: str) -> FetchResult:
        if not self._robots_allows(url):
            return FetchResult(
                url=url,
                final_url=url,
                status_code=0,
                body=None,
                error="Blocked by robots.txt",
                blocked_by_robots=True,
            )
        last_error = "no attempt made"
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = self._client.get(url, follow_redirects=True, headers=self._request_headers())
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                print(f"  ↻ static fetch attempt {attempt}/{self.max_attempts} failed: {last_error}")
            else:
                if resp.status_code in RETRY_STATUS_CODES and attempt < self.max_attempts:
                    last_error = f"HTTP {resp.status_code}"
                    print(f"  ↻ static fetch attempt {attempt}/{self.max_attempts}: {last_error}")
                else:
                    return FetchResult(
                        url=url,
                        final_url=str(resp.url),
                        status_code=resp.status_code,
                        body=resp.text,
                        headers={k: v for k, v in resp.headers.items()},
                        error=(f"HTTP {resp.status_code}" if resp.status_code in RETRY_STATUS_CODES else None),
                    )
            if attempt < self.max_attempts and self.backoff_s > 0:
                time.sleep(self.backoff_s * attempt)
        return FetchResult(url=url, final_url=url, status_code=0, body=None, error=last_error)
