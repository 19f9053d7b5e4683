from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from lawdir.schemas import FetchMode
from .blocking import BlockDecision, classify
from .fetchers.static import FetchResult


Transport = Callable[[str], FetchResult]


@dataclass
class EscalationState:
    mode: FetchMode = FetchMode.LIGHTWEIGHT
    consecutive_blocks: int = 0


@dataclass(frozen=True)
class EscalatedFetch:
    result: FetchResult
    decision: BlockDecision
    escalated: bool = False

    @property
    def blocked(self) -> bool:
        return self.decision.blocked


class EscalationController:
    """One-way lightweight -> rendered switch.

    The first blocked classification moves the run to the rendering transport
    and re-fetches the same URL. There is no transition back: every later fetch
    in the run uses the rendered transport.
    """

    def __init__(
        self,
        lightweight: Transport,
        rendered: Optional[Transport],
        *,
        rendered_raw: Optional[Transport] = None,
        detector: Callable[[FetchResult], BlockDecision] = classify,
    ) -> None:
        self._transports = {FetchMode.LIGHTWEIGHT: lightweight, FetchMode.RENDERED: rendered}
        self._raw_transports = {FetchMode.LIGHTWEIGHT: lightweight, FetchMode.RENDERED: rendered_raw or rendered}
        self.detector = detector
        self.state = EscalationState()
        self._lock = threading.Lock()

    @property
    def mode(self) -> FetchMode:
        with self._lock:
            return self.state.mode

    @property
    def can_escalate(self) -> bool:
        return self._transports[FetchMode.RENDERED] is not None

    def _escalate(self) -> bool:
        with self._lock:
            if self.state.mode is FetchMode.RENDERED or not self.can_escalate:
                return False
            self.state.mode = FetchMode.RENDERED
            return True

    def _record(self, decision: BlockDecision) -> None:
        with self._lock:
            if decision.blocked:
                self.state.consecutive_blocks += 1
            else:
                self.state.consecutive_blocks = 0

    def _fetch_in(self, mode: FetchMode, url: str) -> FetchResult:
        transport = self._transports[mode]
        return transport(url)

    def fetch(self, url: str) -> EscalatedFetch:
        """Fetch a listing page, escalating once and retrying immediately if blocked."""
        result = self._fetch_in(self.mode, url)
        decision = self.detector(result)
        self._record(decision)
        if not decision.blocked:
            return EscalatedFetch(result=result, decision=decision)
        if not self._escalate():
            return EscalatedFetch(result=result, decision=decision)
        print(f"🛡️  blocked ({', '.join(decision.reasons)}); escalating to rendered mode")
        result = self._fetch_in(FetchMode.RENDERED, url)
        decision = self.detector(result)
        self._record(decision)
        return EscalatedFetch(result=result, decision=decision, escalated=True)

    def fetch_detail(self, url: str) -> EscalatedFetch:
        """Fetch in the current mode without driving any transition."""
        result = self._fetch_in(self.mode, url)
        return EscalatedFetch(result=result, decision=self.detector(result))

    def fetch_api(self, url: str) -> FetchResult:
        """Fetch a discovered JSON endpoint in the current mode, body kept as served."""
        transport = self._raw_transports[self.mode]
        return transport(url)
