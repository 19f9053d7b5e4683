from __future__ import annotations

import itertools
import random
import threading
from typing import Iterable, Optional


USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:122.0) Gecko/20100101 Firefox/122.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
]


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


class ProxyProvider:
    """Round-robin over configured proxy URLs.

    ``new_url()`` returns None when no proxies are configured, so callers can
    pass the value straight through to httpx / Playwright.
    """

    def __init__(self, urls: Iterable[str] | None = None) -> None:
        self.urls = [u.strip() for u in (urls or []) if u and u.strip()]
        self._cycle = itertools.cycle(self.urls) if self.urls else None
        self._lock = threading.Lock()

    def __bool__(self) -> bool:
        return bool(self.urls)

    def new_url(self) -> Optional[str]:
        if self._cycle is None:
            return None
        with self._lock:
            return next(self._cycle)
