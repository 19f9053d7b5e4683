from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
import time

from lawdir.config import AppConfig
from lawdir.ops_logger import OpsLogger, ops_enabled_by_env
from lawdir.schemas import DiagnosticSnapshot, FetchMode, LawyerRecord, RunStatistics
from .cascade import NO_STRATEGY, StrategyCascade
from .dedup import DedupLedger
from .enrichment import DEFAULT_CONCURRENCY, EnrichmentScheduler, ProfileEnricher
from .escalation import EscalationController
from .export import MemorySink, RecordSink
from .fetchers.playwright import PlaywrightFetcher
from .fetchers.proxy import ProxyProvider
from .fetchers.static import StaticFetcher
from .pagination import next_page_url


HTML_EXCERPT_CHARS = 5000
STATISTICS_KEY = "SCRAPER_STATISTICS"


@dataclass
class RunCounters:
    pages_processed: int = 0
    total_records_stored: int = 0


@dataclass
class PageOutcome:
    """What happened to one listing page."""
    url: str
    mode: FetchMode
    status_code: int
    strategy: str = NO_STRATEGY
    extracted: int = 0
    stored: int = 0
    blocked: bool = False
    escalated: bool = False
    next_url: Optional[str] = None
    error: Optional[str] = None
    reasons: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RunReport:
    statistics: RunStatistics
    pages: List[PageOutcome]
    stop_reason: str


class IngestPipeline:
    """Page loop: fetch -> detect blocking -> escalate -> cascade -> dedup -> enrich -> sink -> next page.

    Pages are processed strictly one at a time since the next URL is only
    known from the current page. Run state (ledger, counters, escalation mode)
    is created inside ``run()`` and never outlives it.
    """

    def __init__(
        self,
        *,
        static_fetcher: Optional[StaticFetcher] = None,
        playwright_fetcher: Optional[PlaywrightFetcher] = None,
        sink: Optional[RecordSink] = None,
        ops_logger: Optional[OpsLogger] = None,
        max_lawyers: int = 50,
        max_pages: int = 5,
        fetch_full_profiles: bool = False,
        debug: bool = False,
        enrichment_concurrency: int = DEFAULT_CONCURRENCY,
        enable_headless: bool = True,
    ):
        self.static_fetcher = static_fetcher or StaticFetcher()
        self.playwright_fetcher = playwright_fetcher or PlaywrightFetcher()
        self.sink = sink if sink is not None else MemorySink()
        self.ops_logger = ops_logger
        self.max_lawyers = max(0, int(max_lawyers))
        self.max_pages = max(0, int(max_pages))
        self.fetch_full_profiles = bool(fetch_full_profiles)
        self.debug = bool(debug)
        self.enrichment_concurrency = enrichment_concurrency
        self.enable_headless = bool(enable_headless)
        # OPS logging toggle (config flag or env LDS_OPS_JSON=1)
        self.ops_json_enabled = False

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        *,
        sink: Optional[RecordSink] = None,
        ops_logger: Optional[OpsLogger] = None,
    ) -> "IngestPipeline":
        proxies = ProxyProvider(cfg.ops.proxy_urls)
        pipeline = cls(
            static_fetcher=StaticFetcher(
                timeout_s=cfg.ops.static_timeout_s,
                respect_robots=cfg.ops.respect_robots,
                max_attempts=cfg.ops.max_attempts,
                proxy_provider=proxies,
            ),
            playwright_fetcher=PlaywrightFetcher(timeout_ms=cfg.ops.render_timeout_ms, proxy_provider=proxies),
            sink=sink,
            ops_logger=ops_logger,
            max_lawyers=cfg.input.max_lawyers,
            max_pages=cfg.input.max_pages,
            fetch_full_profiles=cfg.input.fetch_full_profiles,
            debug=cfg.input.debug,
            enrichment_concurrency=cfg.ops.enrichment_concurrency,
            enable_headless=cfg.ops.headless,
        )
        pipeline.ops_json_enabled = cfg.ops.ops_json
        return pipeline

    # -------------------------
    # Helpers
    # -------------------------
    def _emit_ops(self, record: dict) -> None:
        if self.ops_logger is None:
            return
        if not (self.ops_json_enabled or ops_enabled_by_env()):
            return
        self.ops_logger.emit(record)

    def _records_exhausted(self, counters: RunCounters) -> bool:
        return self.max_lawyers > 0 and counters.total_records_stored >= self.max_lawyers

    def _pages_exhausted(self, counters: RunCounters) -> bool:
        return self.max_pages > 0 and counters.pages_processed >= self.max_pages

    def _admit(self, records: List[LawyerRecord], ledger: DedupLedger, counters: RunCounters) -> List[LawyerRecord]:
        remaining = (self.max_lawyers - counters.total_records_stored) if self.max_lawyers else None
        admitted: List[LawyerRecord] = []
        for rec in records:
            if remaining is not None and len(admitted) >= remaining:
                break
            if ledger.admit(rec):
                admitted.append(rec)
        return admitted

    # -------------------------
    # Page cycle
    # -------------------------
    def _process_page(
        self,
        url: str,
        *,
        escalation: EscalationController,
        cascade: StrategyCascade,
        ledger: DedupLedger,
        scheduler: EnrichmentScheduler,
        counters: RunCounters,
    ) -> PageOutcome:
        t0 = time.perf_counter()
        fetched = escalation.fetch(url)
        result = fetched.result
        page = PageOutcome(
            url=url,
            mode=result.mode,
            status_code=result.status_code,
            blocked=fetched.blocked,
            escalated=fetched.escalated,
            reasons=list(fetched.decision.reasons),
        )
        if fetched.blocked:
            page.error = f"blocked in {result.mode.value} mode ({', '.join(fetched.decision.reasons)})"
        elif not result.ok or result.status_code >= 400:
            page.error = result.error or f"HTTP {result.status_code}"
        if page.error:
            print(f"  ⚠️  Skipped: {url} ({page.error})")
            self._emit_ops({"event": "page_skipped", "url": url, "mode": result.mode.value,
                            "status_code": result.status_code, "error": page.error})
            return page

        page_url = result.final_url or url
        outcome = cascade.run(result)
        page.strategy = outcome.strategy
        page.extracted = len(outcome.records)

        admitted = self._admit(outcome.records, ledger, counters)
        if self.fetch_full_profiles and admitted:
            admitted = scheduler.enrich_batch(admitted)
        if admitted:
            self.sink.push(admitted)
        counters.pages_processed += 1
        counters.total_records_stored += len(admitted)
        page.stored = len(admitted)

        if outcome.zero_yield:
            print(f"  ℹ️  No lawyers found on {page_url} ({result.mode.value})")
            self._emit_ops({"event": "zero_yield", "url": page_url, "mode": result.mode.value,
                            "status_code": result.status_code})
            if self.debug:
                snapshot = DiagnosticSnapshot(
                    url=page_url,
                    status_code=result.status_code,
                    blocked=fetched.blocked,
                    html_excerpt=(result.body or "")[:HTML_EXCERPT_CHARS],
                    page_title=result.page_title,
                    mode=result.mode,
                    discovered_api_urls=cascade.discovered_api_urls,
                )
                self.sink.set_value(f"DEBUG_EMPTY_PAGE_{counters.pages_processed}", snapshot)
        else:
            print(f"  ✅ Saved {page.stored} of {page.extracted} lawyers via {outcome.strategy} "
                  f"(page {counters.pages_processed}, total {counters.total_records_stored})")

        if not (self._records_exhausted(counters) or self._pages_exhausted(counters)):
            page.next_url = next_page_url(result.body, page_url)

        self._emit_ops({
            "event": "page",
            "url": page_url,
            "mode": result.mode.value,
            "status_code": result.status_code,
            "strategy": outcome.strategy,
            "counts": {"extracted": page.extracted, "stored": page.stored,
                       "total_stored": counters.total_records_stored},
            "escalated": page.escalated,
            "reasons": page.reasons,
            "next_url": page.next_url,
            "duration_s": round(time.perf_counter() - t0, 4),
        })
        return page

    # -------------------------
    # Run loop
    # -------------------------
    def run(self, start_url: str) -> RunReport:
        escalation = EscalationController(
            self.static_fetcher.fetch,
            self.playwright_fetcher.fetch if self.enable_headless else None,
            rendered_raw=self.playwright_fetcher.fetch_raw if self.enable_headless else None,
        )
        cascade = StrategyCascade.default(escalation.fetch_api)
        ledger = DedupLedger()
        counters = RunCounters()
        scheduler = EnrichmentScheduler(
            ProfileEnricher(escalation.fetch_detail),
            concurrency=self.enrichment_concurrency,
        )

        pages: List[PageOutcome] = []
        visited: set[str] = set()
        url: Optional[str] = start_url
        stop_reason = "no_next_page"
        while url:
            if self._pages_exhausted(counters):
                stop_reason = "max_pages"
                break
            if self._records_exhausted(counters):
                stop_reason = "max_lawyers"
                break
            if url in visited:
                stop_reason = "pagination_loop"
                break
            visited.add(url)

            print(f"➡️  Processing page {counters.pages_processed + 1}: {url}")
            page = self._process_page(
                url,
                escalation=escalation,
                cascade=cascade,
                ledger=ledger,
                scheduler=scheduler,
                counters=counters,
            )
            pages.append(page)
            if not page.success:
                stop_reason = "fetch_failed"
                break
            if self._records_exhausted(counters):
                stop_reason = "max_lawyers"
                print("Reached maxLawyers limit, stopping")
                break
            if self._pages_exhausted(counters):
                stop_reason = "max_pages"
                print("Reached maxPages limit, stopping")
                break
            url = page.next_url
            if not url:
                print("No next page found, finishing")

        strategies = [p.strategy for p in pages if p.success]
        used = [s for s in strategies if s != NO_STRATEGY]
        stats = RunStatistics(
            total_records_stored=counters.total_records_stored,
            pages_processed=counters.pages_processed,
            strategy_used_per_page=strategies,
            final_strategy=used[-1] if used else None,
            final_mode=escalation.mode,
            discovered_api_urls=cascade.discovered_api_urls,
        )
        self.sink.set_value(STATISTICS_KEY, stats)
        self._emit_ops({"event": "summary", "stop_reason": stop_reason, **stats.model_dump(mode="json")})
        return RunReport(statistics=stats, pages=pages, stop_reason=stop_reason)

    def close(self) -> None:
        """Clean up resources."""
        self.static_fetcher.close()
