"""
Generic JSON walk - find lawyer-like arrays inside arbitrary JSON payloads.

Used by every extractor that consumes free-form JSON (discovered API
responses, inline script blobs, framework state). The traversal is an explicit
work list with a visited set keyed by container identity, so deep or
self-referential payloads neither blow the stack nor loop forever.

Field mapping is data-driven: ``FIELD_ALIASES`` lists, per record field, the
ordered ``(key_path, coerce)`` rules to try; the first rule producing a
non-empty value wins.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from lawdir.schemas import LawyerRecord, join_practice_areas
from .urls import absolute_url


Coerce = Callable[[Any], Optional[str]]
AliasRule = Tuple[Tuple[str, ...], Coerce]

RECORD_ARRAY_KEYS = ("lawyers", "attorneys", "results", "items", "profiles")
NESTED_ARRAY_KEYS = ("lawyers", "attorneys", "results", "items")


def text_value(v: Any) -> Optional[str]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        s = " ".join(v.split())
        return s or None
    return None


def named_value(v: Any) -> Optional[str]:
    """Plain text, or the ``name`` of an object."""
    if isinstance(v, dict):
        return text_value(v.get("name"))
    return text_value(v)


def email_value(v: Any) -> Optional[str]:
    s = text_value(v)
    if s and s.lower().startswith("mailto:"):
        s = s[7:].split("?", 1)[0].strip() or None
    return s


def location_value(v: Any) -> Optional[str]:
    if isinstance(v, dict):
        parts = [
            text_value(v.get("addressLocality") or v.get("city") or v.get("locality")),
            text_value(v.get("addressRegion") or v.get("state") or v.get("region")),
        ]
        return ", ".join(p for p in parts if p) or None
    return text_value(v)


def address_value(v: Any) -> Optional[str]:
    if isinstance(v, dict):
        street = text_value(v.get("streetAddress") or v.get("street") or v.get("line1"))
        return street or location_value(v)
    return text_value(v)


def joined_value(v: Any) -> Optional[str]:
    if isinstance(v, list):
        return join_practice_areas(named_value(x) or "" for x in v) or None
    return named_value(v)


FIELD_ALIASES: Dict[str, List[AliasRule]] = {
    "name": [
        (("name",), text_value),
        (("fullName",), text_value),
        (("title",), text_value),
    ],
    "firm_name": [
        (("firmName",), text_value),
        (("firm",), named_value),
        (("organization", "name"), text_value),
    ],
    "location": [
        (("location",), location_value),
        (("city",), text_value),
        (("region",), text_value),
    ],
    "address": [
        (("address",), address_value),
    ],
    "phone": [
        (("phone",), text_value),
        (("telephone",), text_value),
        (("tel",), text_value),
        (("contact", "phone"), text_value),
        (("contact", "telephone"), text_value),
    ],
    "email": [
        (("email",), email_value),
        (("contact", "email"), email_value),
    ],
    "profile_url": [
        (("url",), text_value),
        (("profileUrl",), text_value),
        (("profileURL",), text_value),
        (("link",), text_value),
    ],
    "practice_areas": [
        (("practiceAreas",), joined_value),
        (("specialties",), joined_value),
    ],
    "description": [
        (("description",), text_value),
        (("bio",), text_value),
    ],
    "years_licensed": [
        (("yearsLicensed",), text_value),
        (("licensedSince",), text_value),
    ],
}


def lookup(obj: Any, path: Tuple[str, ...]) -> Any:
    cur = obj
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def resolve_field(item: dict, rules: List[AliasRule]) -> Optional[str]:
    for path, coerce in rules:
        value = coerce(lookup(item, path))
        if value:
            return value
    return None


def record_from_item(item: Any, page_url: str) -> Optional[LawyerRecord]:
    """Map one JSON element to a record; None when it has neither name nor profile URL."""
    if not isinstance(item, dict):
        return None
    values = {f: resolve_field(item, rules) for f, rules in FIELD_ALIASES.items()}
    profile = absolute_url(values.pop("profile_url"), page_url)
    if not values["name"] and not profile:
        return None
    try:
        return LawyerRecord(profile_url=profile or None, **values)
    except ValueError:
        return None


def _candidate_arrays(node: dict) -> Iterator[list]:
    for key in RECORD_ARRAY_KEYS:
        value = node.get(key)
        if isinstance(value, list):
            yield value
    data = node.get("data")
    if isinstance(data, dict):
        for key in NESTED_ARRAY_KEYS:
            value = data.get(key)
            if isinstance(value, list):
                yield value


def walk_records(root: Any, page_url: str) -> List[LawyerRecord]:
    records: List[LawyerRecord] = []
    stack: List[Any] = [root]
    visited: set[int] = set()
    harvested: set[int] = set()
    while stack:
        node = stack.pop()
        if not isinstance(node, (dict, list)):
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))
        if isinstance(node, dict):
            for arr in _candidate_arrays(node):
                if id(arr) in harvested:
                    continue
                harvested.add(id(arr))
                for element in arr:
                    rec = record_from_item(element, page_url)
                    if rec is not None:
                        records.append(rec)
            children = list(node.values())
        else:
            children = node
        # Reverse push keeps document order on pop
        for child in reversed(children):
            if isinstance(child, (dict, list)):
                stack.append(child)
    return records
