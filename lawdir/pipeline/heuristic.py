"""
Heuristic HTML extractor - last resort of the cascade.

Finds profile anchors (``/lawyers/<...>/<...>``), climbs to the enclosing
listing card and reads sibling fields with ordered selector fallbacks. Least
precise strategy; only runs when every structured extractor came back empty.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import urlparse

from selectolax.parser import HTMLParser, Node

from lawdir.schemas import LawyerRecord, join_practice_areas
from .structured import BaseExtractor
from .urls import absolute_url, same_origin


PROFILE_PREFIX = "/lawyers/"

CONTAINER_TAGS = ("article", "li")
CONTAINER_CLASS_HINTS = ("listing", "card", "result")

FIRM_SELECTORS = ['.firm-name', '[class*="firm"]', '.law-firm', '.organization']
LOCATION_SELECTORS = ['.location', '[class*="location"]', '.address', '[itemprop="address"]']
PHONE_SELECTORS = ['.phone', '[class*="phone"]']
PRACTICE_SELECTORS = 'a[href*="-law"], .practice-area, [class*="practice"]'
MAX_PRACTICE_CHIPS = 10


def clean_text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return " ".join((node.text(separator=" ") or "").split())


def first_text(root: Node, selectors: List[str]) -> str:
    for sel in selectors:
        t = clean_text(root.css_first(sel))
        if t:
            return t
    return ""


def is_profile_href(href: str, page_url: str) -> bool:
    try:
        p = urlparse(href)
    except ValueError:
        return False
    if p.scheme and p.scheme not in ("http", "https"):
        return False
    if p.netloc and not same_origin(page_url, href):
        return False
    path = p.path or ""
    if not path.startswith(PROFILE_PREFIX):
        return False
    segments = [s for s in path.split("/") if s]
    return len(segments) >= 2


def find_card(anchor: Node) -> Optional[Node]:
    cur = anchor.parent
    while cur is not None and cur.tag not in ("body", "html"):
        if cur.tag in CONTAINER_TAGS:
            return cur
        if cur.tag == "div":
            cls = ((cur.attributes or {}).get("class") or "").lower()
            if any(h in cls for h in CONTAINER_CLASS_HINTS):
                return cur
        cur = cur.parent
    return None


def card_phone(card: Node) -> str:
    tel = card.css_first('a[href^="tel:"]')
    if tel is not None:
        t = clean_text(tel)
        if t:
            return t
        href = ((tel.attributes or {}).get("href") or "")[4:].strip()
        if href:
            return href
    return first_text(card, PHONE_SELECTORS)


def card_practice_areas(card: Node, name: str) -> str:
    pieces: List[str] = []
    for n in card.css(PRACTICE_SELECTORS):
        t = clean_text(n)
        if 2 < len(t) < 100 and t != name and t not in pieces:
            pieces.append(t)
    return join_practice_areas(pieces[:MAX_PRACTICE_CHIPS])


class HeuristicHtmlExtractor(BaseExtractor):
    name = "html_heuristic"

    def _extract(self, html: str, page_url: str) -> List[LawyerRecord]:
        parser = HTMLParser(html)
        by_url: Dict[str, LawyerRecord] = {}
        for a in parser.css("a[href]"):
            href = ((a.attributes or {}).get("href") or "").strip()
            if not href or not is_profile_href(href, page_url):
                continue
            profile = absolute_url(href, page_url)
            if not profile:
                continue
            card = find_card(a)
            if card is None:
                continue
            name = clean_text(a)
            existing = by_url.get(profile)
            if existing is not None:
                if name and not existing.has_known_name():
                    by_url[profile] = existing.model_copy(update={"name": name})
                continue
            location = first_text(card, LOCATION_SELECTORS)
            by_url[profile] = LawyerRecord(
                name=name,
                firm_name=first_text(card, FIRM_SELECTORS) or None,
                location=location or None,
                address=location or None,
                phone=card_phone(card) or None,
                profile_url=profile,
                practice_areas=card_practice_areas(card, name) or None,
            )
        return list(by_url.values())
