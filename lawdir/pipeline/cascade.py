from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from lawdir.schemas import LawyerRecord
from .fetchers.static import FetchResult
from .heuristic import HeuristicHtmlExtractor
from .structured import (
    ApiDiscoveryExtractor,
    BaseExtractor,
    EmbeddedJsonExtractor,
    FrameworkStateExtractor,
    JsonLdExtractor,
)


NO_STRATEGY = "none"


@dataclass(frozen=True)
class CascadeOutcome:
    records: List[LawyerRecord] = field(default_factory=list)
    strategy: str = NO_STRATEGY

    @property
    def zero_yield(self) -> bool:
        return not self.records


class StrategyCascade:
    """Try extractors in priority order; the first non-empty result wins.

    Structured sources come first, the heuristic HTML extractor last.
    """

    def __init__(self, extractors: Sequence[BaseExtractor]) -> None:
        self.extractors = list(extractors)

    @classmethod
    def default(cls, fetch_json: Callable[[str], FetchResult]) -> "StrategyCascade":
        return cls([
            ApiDiscoveryExtractor(fetch_json),
            EmbeddedJsonExtractor(),
            JsonLdExtractor(),
            FrameworkStateExtractor(),
            HeuristicHtmlExtractor(),
        ])

    @property
    def discovered_api_urls(self) -> List[str]:
        urls: List[str] = []
        for ex in self.extractors:
            urls.extend(getattr(ex, "discovered_urls", []))
        return urls

    def run(self, fetch: FetchResult) -> CascadeOutcome:
        page_url = fetch.final_url or fetch.url
        for extractor in self.extractors:
            records = extractor.extract(fetch.body, page_url)
            if records:
                return CascadeOutcome(records=list(records), strategy=extractor.name)
        return CascadeOutcome()
