from __future__ import annotations

import json
import random
import threading
import time
from unittest.mock import Mock

from lawdir.pipeline.blocking import classify
from lawdir.pipeline.enrichment import (
    EnrichmentScheduler,
    ProfileEnricher,
    merge_detail,
    needs_enrichment,
    parse_detail_page,
)
from lawdir.pipeline.escalation import EscalatedFetch
from lawdir.pipeline.fetchers.static import FetchResult
from lawdir.schemas import LawyerRecord


PROFILE = "https://www.justia.com/lawyers/ohio/columbus/pat-profile"

DETAIL_HTML = """
<html><body>
  <h1>Pat Profile</h1>
  <a href="mailto:pat@profile.law?subject=Hi">Email</a>
  <div class="biography"><p>Pat has practiced family law for two decades.</p></div>
  <ul class="education"><li>Ohio State University, J.D.</li><li>Kenyon College, B.A.</li></ul>
  <ul class="bar-admissions"><li>Ohio</li></ul>
  <ul class="languages"><li>English</li><li>Spanish</li></ul>
  <p>Licensed for 21 years</p>
</body></html>
"""


def _escalated(body, url=PROFILE, status=200, error=None):
    result = FetchResult(url=url, final_url=url, status_code=status, body=body, error=error)
    return EscalatedFetch(result=result, decision=classify(result))


def _base(**kw):
    defaults = dict(name="Pat Profile", profile_url=PROFILE, phone="555-0100", location="Columbus, OH")
    defaults.update(kw)
    return LawyerRecord(**defaults)


def test_parse_detail_page_fields():
    fields = parse_detail_page(DETAIL_HTML)
    assert fields["email"] == "pat@profile.law"
    assert fields["biography"] == "Pat has practiced family law for two decades."
    assert fields["education"] == ["Ohio State University, J.D.", "Kenyon College, B.A."]
    assert fields["bar_admissions"] == ["Ohio"]
    assert fields["languages"] == ["English", "Spanish"]
    assert fields["years_licensed"] == "21"
    assert "phone" not in fields


def test_licensed_since_year():
    assert parse_detail_page("<body><p>Licensed since 2004 in Ohio.</p></body>")["years_licensed"] == "2004"


def test_enrich_keeps_base_phone_when_detail_has_none():
    enricher = ProfileEnricher(Mock(return_value=_escalated(DETAIL_HTML)))
    out = enricher.enrich(_base())

    assert out.phone == "555-0100"
    assert out.email == "pat@profile.law"
    assert out.languages == ["English", "Spanish"]
    assert out.location == "Columbus, OH"


def test_enrich_returns_new_instance():
    base = _base()
    out = ProfileEnricher(Mock(return_value=_escalated(DETAIL_HTML))).enrich(base)
    assert out is not base
    assert base.email is None


def test_explicit_markup_beats_jsonld():
    ld = {"@type": "Attorney", "name": "Pat Profile", "url": PROFILE, "email": "ld@profile.law",
          "telephone": "614-555-0000", "description": "From JSON-LD"}
    html = DETAIL_HTML.replace("</body>", f'<script type="application/ld+json">{json.dumps(ld)}</script></body>')
    out = ProfileEnricher(Mock(return_value=_escalated(html))).enrich(_base(phone=None))

    assert out.email == "pat@profile.law"
    assert out.phone == "614-555-0000"
    assert out.description == "From JSON-LD"


def test_name_only_replaces_sentinel():
    ld = LawyerRecord(name="Ld Name", profile_url=PROFILE)
    named = merge_detail(_base(name="Listing Name"), {}, ld)
    unnamed = merge_detail(_base(name=None), {}, ld)
    assert named.name == "Listing Name"
    assert unnamed.name == "Ld Name"


def test_empty_detail_values_never_overwrite():
    base = _base(biography="Listing bio")
    out = merge_detail(base, {"biography": "", "education": []}, None)
    assert out is base


def test_blocked_or_failed_detail_returns_base():
    base = _base()
    blocked = ProfileEnricher(Mock(return_value=_escalated("<title>Just a moment...</title>", status=403)))
    failed = ProfileEnricher(Mock(return_value=_escalated(None, status=0, error="ReadTimeout")))
    raising = ProfileEnricher(Mock(side_effect=RuntimeError("browser crashed")))

    assert blocked.enrich(base) is base
    assert failed.enrich(base) is base
    assert raising.enrich(base) is base


def test_needs_enrichment():
    assert needs_enrichment(_base()) is True
    assert needs_enrichment(_base(profile_url=None)) is False
    full = _base(email="a@b.c", biography="x", education=["e"], bar_admissions=["b"], languages=["l"])
    assert needs_enrichment(full) is False


def test_batch_preserves_admission_order_under_jitter():
    records = [_base(name=f"Lawyer {i}", profile_url=f"{PROFILE}-{i}") for i in range(12)]

    def fetch_detail(url):
        time.sleep(random.uniform(0, 0.02))
        return _escalated(f"<body><div class='biography'>Bio for {url}</div></body>", url=url)

    scheduler = EnrichmentScheduler(ProfileEnricher(fetch_detail), concurrency=4)
    out = scheduler.enrich_batch(records)

    assert [r.name for r in out] == [r.name for r in records]
    assert all(r.biography == f"Bio for {r.profile_url}" for r in out)


def test_batch_bounds_in_flight_fetches():
    lock = threading.Lock()
    state = {"current": 0, "peak": 0}

    def fetch_detail(url):
        with lock:
            state["current"] += 1
            state["peak"] = max(state["peak"], state["current"])
        time.sleep(0.01)
        with lock:
            state["current"] -= 1
        return _escalated("<body></body>", url=url)

    records = [_base(profile_url=f"{PROFILE}-{i}") for i in range(10)]
    EnrichmentScheduler(ProfileEnricher(fetch_detail), concurrency=2).enrich_batch(records)
    assert state["peak"] <= 2


def test_records_without_missing_fields_are_not_fetched():
    fetch = Mock()
    full = _base(email="a@b.c", biography="x", education=["e"], bar_admissions=["b"], languages=["l"])
    out = EnrichmentScheduler(ProfileEnricher(fetch)).enrich_batch([full])
    assert out == [full]
    fetch.assert_not_called()


def test_jsonld_for_another_lawyer_is_ignored():
    ld = {"@type": "Attorney", "name": "Other Lawyer", "url": "https://www.justia.com/lawyers/ohio/akron/other",
          "telephone": "999-9999", "worksFor": {"@type": "Organization", "name": "Other Firm"}}
    html = f'<html><body><script type="application/ld+json">{json.dumps(ld)}</script></body></html>'
    out = ProfileEnricher(Mock(return_value=_escalated(html))).enrich(_base(firm_name="Pat LLC"))

    assert out.phone == "555-0100"
    assert out.firm_name == "Pat LLC"


def test_lone_jsonld_without_url_is_used():
    ld = {"@type": "Attorney", "name": "Pat Profile", "telephone": "614-555-0000"}
    html = f'<html><body><script type="application/ld+json">{json.dumps(ld)}</script></body></html>'
    out = ProfileEnricher(Mock(return_value=_escalated(html))).enrich(_base(phone=None))

    assert out.phone == "614-555-0000"
