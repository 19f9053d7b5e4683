from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse, urlunparse


def absolute_url(href: str | None, base: str) -> str:
    """Resolve ``href`` against ``base``; empty string unless the result is http(s)."""
    if not href or not isinstance(href, str):
        return ""
    try:
        u = urljoin(base, href.strip())
    except ValueError:
        return ""
    return u if u.startswith(("http://", "https://")) else ""


def _host(u: str) -> str:
    netloc = (urlparse(u).netloc or "").lower()
    return netloc[4:] if netloc.startswith("www.") else netloc


def same_origin(base: str, other: str) -> bool:
    try:
        return _host(base) == _host(other) and bool(_host(other))
    except ValueError:
        return False


def same_page(a: str, b: str) -> bool:
    """Compare two URLs ignoring fragment and a trailing slash."""
    def _norm(u: str) -> str:
        p = urlparse(u)
        path = p.path or "/"
        if path.endswith("/") and path != "/":
            path = path.rstrip("/")
        return urlunparse(p._replace(netloc=p.netloc.lower(), path=path, fragment=""))
    return _norm(a) == _norm(b)


def slugify(value: str | None) -> str:
    s = (value or "").strip().lower()
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"[^a-z0-9-]", "", s)
    s = re.sub(r"-+", "-", s)
    return s.strip("-")
