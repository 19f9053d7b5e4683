"""
Structured extractors - records from machine-readable page payloads.

Four strategies share the ``extract(html, page_url) -> list`` contract:

- ApiDiscoveryExtractor: follows the first same-origin JSON/API URL found in the page
- EmbeddedJsonExtractor: inline script blobs mentioning lawyers/attorneys/results
- JsonLdExtractor: schema.org JSON-LD blocks (Attorney/Person/LegalService)
- FrameworkStateExtractor: the ``__NEXT_DATA__`` state payload

None of them raise: malformed input yields an empty list.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Iterator, List, Optional
from urllib.parse import urlparse

from selectolax.parser import HTMLParser

from lawdir.schemas import LawyerRecord
from .fetchers.static import FetchResult
from .jsonwalk import (
    email_value,
    joined_value,
    location_value,
    address_value,
    named_value,
    text_value,
    walk_records,
)
from .urls import absolute_url, same_origin, same_page


class BaseExtractor:
    """Capability shared by every strategy in the cascade."""

    name = "base"

    def extract(self, html: str | None, page_url: str) -> List[LawyerRecord]:
        if not html:
            return []
        try:
            return self._extract(html, page_url)
        except Exception as e:
            print(f"  ⚠️  {self.name} extractor failed on {page_url}: {type(e).__name__}: {e}")
            return []

    def _extract(self, html: str, page_url: str) -> List[LawyerRecord]:
        raise NotImplementedError


def safe_json_loads(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def matching_brace(text: str, start: int) -> Optional[int]:
    """Index of the ``}`` closing the ``{`` at ``start``; string literals are skipped."""
    depth = 0
    quote: Optional[str] = None
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in ('"', "'"):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def brace_matched_objects(text: str, max_attempts: int = 8) -> Iterator[Any]:
    """Yield JSON values parsed from balanced ``{...}`` substrings, first to last."""
    pos = text.find("{")
    attempts = 0
    while pos != -1 and attempts < max_attempts:
        attempts += 1
        end = matching_brace(text, pos)
        if end is None:
            pos = text.find("{", pos + 1)
            continue
        value = safe_json_loads(text[pos:end + 1])
        if value is None:
            # Not JSON at this level (JS literal?), look inside it
            pos = text.find("{", pos + 1)
            continue
        yield value
        pos = text.find("{", end + 1)


def _inline_scripts(parser: HTMLParser) -> Iterator[str]:
    for node in parser.css("script"):
        attrs = node.attributes or {}
        if attrs.get("src"):
            continue
        if (attrs.get("type") or "").strip().lower() == "application/ld+json":
            continue
        if attrs.get("id") == FrameworkStateExtractor.script_id:
            continue
        text = node.text() or ""
        if text.strip():
            yield text


# -------------------------
# JSON API discovery
# -------------------------
QUOTED_STRING_RE = re.compile(r"""["']([^"'\s<>]{2,500})["']""")


def _looks_like_api(candidate: str) -> bool:
    try:
        path = urlparse(candidate).path.lower()
    except ValueError:
        return False
    return "/api/" in path or path.endswith(".json")


def discover_api_urls(html: str, page_url: str) -> List[str]:
    """Same-origin JSON/API URLs mentioned anywhere in the page, in order of appearance."""
    out: List[str] = []
    for raw in QUOTED_STRING_RE.findall(html.replace("\\/", "/")):
        if not (raw.startswith(("http://", "https://", "/")) and not raw.startswith("//")):
            continue
        if not _looks_like_api(raw):
            continue
        url = absolute_url(raw, page_url)
        if not url or not same_origin(page_url, url) or same_page(url, page_url):
            continue
        if url not in out:
            out.append(url)
    return out


class ApiDiscoveryExtractor(BaseExtractor):
    name = "api_discovery"

    def __init__(self, fetch: Callable[[str], FetchResult]) -> None:
        self.fetch = fetch
        self.discovered_urls: List[str] = []

    def _extract(self, html: str, page_url: str) -> List[LawyerRecord]:
        candidates = discover_api_urls(html, page_url)
        for u in candidates:
            if u not in self.discovered_urls:
                self.discovered_urls.append(u)
        if not candidates:
            return []
        endpoint = candidates[0]
        result = self.fetch(endpoint)
        if not result.ok or result.status_code >= 400:
            print(f"  ⚠️  api endpoint unavailable: {endpoint} ({result.error or result.status_code})")
            return []
        payload = safe_json_loads(result.body)
        if payload is None:
            return []
        return walk_records(payload, page_url)


# -------------------------
# Embedded JSON in inline scripts
# -------------------------
EMBEDDED_KEYWORDS = ("lawyer", "attorney", "results")


class EmbeddedJsonExtractor(BaseExtractor):
    name = "embedded_json"

    def _extract(self, html: str, page_url: str) -> List[LawyerRecord]:
        parser = HTMLParser(html)
        for text in _inline_scripts(parser):
            low = text.lower()
            if not any(k in low for k in EMBEDDED_KEYWORDS):
                continue
            direct = safe_json_loads(text)
            if direct is not None:
                records = walk_records(direct, page_url)
                if records:
                    return records
            for value in brace_matched_objects(text):
                records = walk_records(value, page_url)
                if records:
                    return records
        return []


# -------------------------
# JSON-LD
# -------------------------
LAWYER_TYPES = ("attorney", "lawyer", "person", "legalservice")


def _jsonld_types(item: dict) -> List[str]:
    t = item.get("@type")
    if isinstance(t, str):
        return [t.lower()]
    if isinstance(t, list):
        return [x.lower() for x in t if isinstance(x, str)]
    return []


def _is_lawyer_entity(item: dict) -> bool:
    return any(k in t for t in _jsonld_types(item) for k in LAWYER_TYPES)


def jsonld_entities(data: Any) -> Iterator[dict]:
    """Lawyer-typed entities in document order, unwrapping arrays, @graph and ItemList."""
    stack: List[Any] = [data]
    visited: set[int] = set()
    while stack:
        node = stack.pop()
        if not isinstance(node, (dict, list)) or id(node) in visited:
            continue
        visited.add(id(node))
        if isinstance(node, list):
            stack.extend(reversed(node))
            continue
        nested: List[Any] = []
        if "@graph" in node:
            nested.append(node["@graph"])
        if "itemListElement" in node:
            nested.append(node["itemListElement"])
        if "listitem" in _jsonld_types(node) and "item" in node:
            nested.append(node["item"])
        if _is_lawyer_entity(node):
            yield node
        stack.extend(reversed(nested))


def _first(v: Any) -> Any:
    if isinstance(v, list):
        return v[0] if v else None
    return v


def _name_list(v: Any) -> Optional[List[str]]:
    items = v if isinstance(v, list) else [v]
    out = [n for n in (named_value(x) for x in items) if n]
    return out or None


def record_from_jsonld(item: dict, page_url: str) -> Optional[LawyerRecord]:
    name = text_value(item.get("name"))
    if not name:
        parts = [text_value(item.get("givenName")), text_value(item.get("familyName"))]
        name = " ".join(p for p in parts if p) or None
    profile = absolute_url(text_value(item.get("url")) or text_value(item.get("@id")), page_url)
    if not name and not profile:
        return None

    raw_address = item.get("address")
    if isinstance(raw_address, str):
        location = text_value(raw_address)
        address = location
    else:
        location = location_value(_first(raw_address)) or text_value(item.get("location"))
        address = address_value(_first(raw_address)) or location

    firm = None
    for key in ("worksFor", "affiliation", "memberOf"):
        firm = named_value(_first(item.get(key)))
        if firm:
            break

    try:
        return LawyerRecord(
            name=name,
            firm_name=firm,
            location=location,
            address=address,
            phone=text_value(item.get("telephone")) or text_value(item.get("phone")),
            email=email_value(item.get("email")),
            profile_url=profile or None,
            practice_areas=joined_value(item.get("knowsAbout")) or joined_value(item.get("areaServed")),
            description=text_value(item.get("description")),
            years_licensed=text_value(item.get("yearsInPractice")),
            education=_name_list(item.get("alumniOf")) if item.get("alumniOf") else None,
            languages=_name_list(item.get("knowsLanguage")) if item.get("knowsLanguage") else None,
        )
    except ValueError:
        return None


class JsonLdExtractor(BaseExtractor):
    name = "json_ld"

    def _extract(self, html: str, page_url: str) -> List[LawyerRecord]:
        parser = HTMLParser(html)
        records: List[LawyerRecord] = []
        for node in parser.css('script[type="application/ld+json"]'):
            data = safe_json_loads(node.text())
            if data is None:
                continue
            for entity in jsonld_entities(data):
                rec = record_from_jsonld(entity, page_url)
                if rec is not None:
                    records.append(rec)
        return records


# -------------------------
# Framework state (__NEXT_DATA__)
# -------------------------
class FrameworkStateExtractor(BaseExtractor):
    name = "framework_state"
    script_id = "__NEXT_DATA__"

    def _extract(self, html: str, page_url: str) -> List[LawyerRecord]:
        parser = HTMLParser(html)
        node = parser.css_first(f"script#{self.script_id}")
        if node is None:
            return []
        state = safe_json_loads(node.text())
        if state is None:
            return []
        return walk_records(state, page_url)
