from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .fetchers.static import FetchResult


BLOCKING_STATUS_CODES = frozenset({403, 429, 503})

# Lowercase phrases seen on interstitial challenge pages
CHALLENGE_MARKERS = (
    "checking your browser",
    "verify you are human",
    "access denied",
    "just a moment",
    "enable javascript and cookies to continue",
    "attention required",
    "are you a robot",
    "cf-chl",
)

PREFIX_SCAN_CHARS = 4096


@dataclass(frozen=True)
class BlockDecision:
    blocked: bool
    reasons: List[str] = field(default_factory=list)


def detect_challenge_markers(body: str | None, *, limit: int = PREFIX_SCAN_CHARS) -> list[str]:
    """Return the challenge phrases found in the leading ``limit`` characters of ``body``."""
    if not body:
        return []
    head = body[:limit].lower()
    return [m for m in CHALLENGE_MARKERS if m in head]


def classify(fetch: FetchResult) -> BlockDecision:
    reasons: List[str] = []
    if fetch.status_code in BLOCKING_STATUS_CODES:
        reasons.append(f"status={fetch.status_code}")
    for marker in detect_challenge_markers(fetch.body):
        reasons.append(f"marker:{marker}")
    return BlockDecision(blocked=len(reasons) > 0, reasons=reasons)


def is_blocked(fetch: FetchResult) -> bool:
    return classify(fetch).blocked
