"""
Profile Enrichment - augment listing records with detail-page data.

For each admitted record that lacks detail fields, fetch its profile page in
the run's current fetch mode and merge what the page offers. Precedence per
field: explicit detail-page markup > JSON-LD on the detail page > the base
record. An empty detail value never replaces a filled base value.

Failures (blocked page, transport error, parse problem) are non-fatal: the
base record is returned unchanged.
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Any

from selectolax.parser import HTMLParser

from lawdir.schemas import LawyerRecord
from .escalation import EscalatedFetch
from .heuristic import clean_text, first_text
from .structured import JsonLdExtractor
from .urls import same_page


DETAIL_FIELDS = ("email", "biography", "education", "bar_admissions", "languages")

MERGE_FIELDS = (
    "firm_name",
    "location",
    "address",
    "phone",
    "email",
    "practice_areas",
    "description",
    "years_licensed",
    "biography",
    "education",
    "bar_admissions",
    "languages",
)

BIOGRAPHY_SELECTORS = ['.biography', '#biography', '[class*="bio"]', '.profile-description', '.about']
EDUCATION_ITEMS = '.education li, [class*="education"] li, .education-list li'
ADMISSION_ITEMS = '.admissions li, [class*="admission"] li, .bar-admissions li'
LANGUAGE_ITEMS = '.languages li, [class*="language"] li'

LICENSED_FOR_RE = re.compile(r"licensed\s+for\s+(\d{1,2})\s+years?", re.IGNORECASE)
LICENSED_SINCE_RE = re.compile(r"licensed\s+(?:since|in)\s+((?:19|20)\d{2})", re.IGNORECASE)

DEFAULT_CONCURRENCY = 4


def _filled(value: Any) -> bool:
    return value not in (None, "", [])


def needs_enrichment(record: LawyerRecord) -> bool:
    if not record.profile_url:
        return False
    return any(not _filled(getattr(record, f)) for f in DETAIL_FIELDS)


def _list_items(parser: HTMLParser, selector: str) -> Optional[List[str]]:
    out: List[str] = []
    for li in parser.css(selector):
        t = clean_text(li)
        if t and t not in out:
            out.append(t)
    return out or None


def parse_detail_page(html: str) -> Dict[str, Any]:
    """Explicit fields found in the profile markup; empty values are left out."""
    parser = HTMLParser(html)
    body = parser.body or parser.root
    fields: Dict[str, Any] = {}

    mailto = parser.css_first('a[href^="mailto:"]')
    if mailto is not None:
        email = ((mailto.attributes or {}).get("href") or "")[7:].split("?", 1)[0].strip()
        if email:
            fields["email"] = email

    tel = parser.css_first('a[href^="tel:"]')
    if tel is not None:
        phone = clean_text(tel) or ((tel.attributes or {}).get("href") or "")[4:].strip()
        if phone:
            fields["phone"] = phone

    if body is not None:
        bio = first_text(body, BIOGRAPHY_SELECTORS)
        if bio:
            fields["biography"] = bio

    for field_name, selector in (
        ("education", EDUCATION_ITEMS),
        ("bar_admissions", ADMISSION_ITEMS),
        ("languages", LANGUAGE_ITEMS),
    ):
        items = _list_items(parser, selector)
        if items:
            fields[field_name] = items

    page_text = clean_text(body)
    m = LICENSED_FOR_RE.search(page_text)
    if m:
        fields["years_licensed"] = m.group(1)
    else:
        m = LICENSED_SINCE_RE.search(page_text)
        if m:
            fields["years_licensed"] = m.group(1)
    return fields


def pick_jsonld_record(records: List[LawyerRecord], profile_url: str) -> Optional[LawyerRecord]:
    for rec in records:
        if rec.profile_url and same_page(rec.profile_url, profile_url):
            return rec
    if len(records) == 1 and not records[0].profile_url:
        return records[0]
    return None


def merge_detail(
    base: LawyerRecord,
    explicit: Dict[str, Any],
    jsonld: Optional[LawyerRecord] = None,
) -> LawyerRecord:
    updates: Dict[str, Any] = {}
    for f in MERGE_FIELDS:
        value = explicit.get(f)
        if not _filled(value) and jsonld is not None:
            value = getattr(jsonld, f)
        if _filled(value):
            updates[f] = value
    if not base.has_known_name():
        name = explicit.get("name") or (jsonld.name if jsonld is not None and jsonld.has_known_name() else None)
        if name:
            updates["name"] = name
    return base.model_copy(update=updates) if updates else base


class ProfileEnricher:
    """Fetch one profile page and merge it into the base record."""

    def __init__(self, fetch_detail: Callable[[str], EscalatedFetch]) -> None:
        self.fetch_detail = fetch_detail
        self._jsonld = JsonLdExtractor()

    def enrich(self, base: LawyerRecord) -> LawyerRecord:
        url = base.profile_url
        if not url:
            return base
        try:
            fetched = self.fetch_detail(url)
        except Exception as e:
            print(f"  ⚠️  Failed to enrich profile {url}: {e}")
            return base
        result = fetched.result
        if fetched.blocked:
            print(f"  ⚠️  Profile blocked, keeping listing data: {url}")
            return base
        if not result.ok or result.status_code >= 400:
            print(f"  ⚠️  Failed to enrich profile {url}: {result.error or result.status_code}")
            return base
        page_url = result.final_url or url
        try:
            explicit = parse_detail_page(result.body or "")
        except Exception as e:
            print(f"  ⚠️  Could not parse profile {url}: {e}")
            explicit = {}
        jsonld = pick_jsonld_record(self._jsonld.extract(result.body, page_url), url)
        return merge_detail(base, explicit, jsonld)


class EnrichmentScheduler:
    """Enrich a page batch with a bounded number of in-flight detail fetches.

    Output order equals input (admission) order regardless of completion order.
    """

    def __init__(self, enricher: ProfileEnricher, *, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        self.enricher = enricher
        self.concurrency = max(1, int(concurrency))

    def _maybe_enrich(self, record: LawyerRecord) -> LawyerRecord:
        if not needs_enrichment(record):
            return record
        return self.enricher.enrich(record)

    def enrich_batch(self, records: List[LawyerRecord]) -> List[LawyerRecord]:
        if not records:
            return []
        workers = min(self.concurrency, len(records))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enrich") as pool:
            return list(pool.map(self._maybe_enrich, records))
