from __future__ import annotations

"""
Next-page resolution for directory listings.

Given the current listing page, find the URL of the following page across
the pagination markups seen in the wild, in order:

1. an explicit ``rel="next"`` link
2. an anchor whose text is a "next" token or contains "next page"
3. an anchor whose aria-label mentions "next"
4. inside a pagination container: current page number N -> anchor "N+1"

No match means the listing is exhausted.
"""

from typing import Callable, List, Optional

from selectolax.parser import HTMLParser, Node

from .urls import absolute_url, same_page


NEXT_TOKENS = {"next", "next ›", "next »", "›", "»", ">", "next page"}

PAGINATION_CONTAINERS = ".pagination, .pager, nav[role='navigation'], nav[aria-label*='agination']"
CURRENT_MARKERS = "[aria-current='page'], .current, .active, .selected"


def _href(node: Node) -> str:
    return ((node.attributes or {}).get("href") or "").strip()


def _text(node: Node) -> str:
    return " ".join((node.text(separator=" ") or "").split())


def _parse_int(s: str) -> Optional[int]:
    s = (s or "").strip()
    return int(s) if s.isdigit() else None


def _rel_next(parser: HTMLParser) -> List[str]:
    out: List[str] = []
    for node in parser.css("a[rel], link[rel]"):
        rel = ((node.attributes or {}).get("rel") or "").lower().split()
        if "next" in rel and _href(node):
            out.append(_href(node))
    return out


def _is_next_text(text: str) -> bool:
    t = text.lower()
    return t in NEXT_TOKENS or "next page" in t


def _text_next(parser: HTMLParser) -> List[str]:
    return [_href(a) for a in parser.css("a[href]") if _is_next_text(_text(a))]


def _aria_next(parser: HTMLParser) -> List[str]:
    out: List[str] = []
    for a in parser.css("a[aria-label]"):
        label = ((a.attributes or {}).get("aria-label") or "").lower()
        if "next" in label and _href(a):
            out.append(_href(a))
    return out


def _numbered_next(parser: HTMLParser) -> List[str]:
    out: List[str] = []
    for container in parser.css(PAGINATION_CONTAINERS):
        current = container.css_first(CURRENT_MARKERS)
        if current is None:
            continue
        n = _parse_int(_text(current))
        if n is None:
            continue
        for a in container.css("a[href]"):
            if _parse_int(_text(a)) == n + 1:
                out.append(_href(a))
                break
    return out


RULES: List[Callable[[HTMLParser], List[str]]] = [_rel_next, _text_next, _aria_next, _numbered_next]


def next_page_url(html: str | None, page_url: str) -> Optional[str]:
    if not html:
        return None
    parser = HTMLParser(html)
    for rule in RULES:
        for href in rule(parser):
            url = absolute_url(href, page_url)
            if url and not same_page(url, page_url):
                return url
    return None
