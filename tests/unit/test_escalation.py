from __future__ import annotations

from unittest.mock import Mock

from lawdir.pipeline.escalation import EscalationController
from lawdir.pipeline.fetchers.static import FetchResult
from lawdir.schemas import FetchMode


CHALLENGE = "<html><head><title>Just a moment...</title></head><body>Checking your browser</body></html>"
LISTING = "<html><body><h1>Lawyers</h1></body></html>"


def _fr(url, status=200, body=LISTING, mode=FetchMode.LIGHTWEIGHT):
    return FetchResult(url=url, final_url=url, status_code=status, body=body, mode=mode)


def test_usable_page_stays_lightweight():
    light = Mock(side_effect=lambda u: _fr(u))
    rendered = Mock()
    ctl = EscalationController(light, rendered)

    res = ctl.fetch("https://example.com/a")

    assert res.blocked is False
    assert res.escalated is False
    assert ctl.mode is FetchMode.LIGHTWEIGHT
    rendered.assert_not_called()


def test_block_escalates_and_refetches_same_url():
    light = Mock(side_effect=lambda u: _fr(u, status=403, body="Forbidden"))
    rendered = Mock(side_effect=lambda u: _fr(u, mode=FetchMode.RENDERED))
    ctl = EscalationController(light, rendered)

    res = ctl.fetch("https://example.com/a")

    assert res.escalated is True
    assert res.blocked is False
    assert res.result.mode is FetchMode.RENDERED
    rendered.assert_called_once_with("https://example.com/a")
    assert ctl.mode is FetchMode.RENDERED


def test_mode_never_returns_to_lightweight():
    light = Mock(side_effect=lambda u: _fr(u, body=CHALLENGE))
    rendered = Mock(side_effect=lambda u: _fr(u, mode=FetchMode.RENDERED))
    ctl = EscalationController(light, rendered)

    ctl.fetch("https://example.com/1")
    for i in range(2, 5):
        res = ctl.fetch(f"https://example.com/{i}")
        assert res.escalated is False
        assert ctl.mode is FetchMode.RENDERED
    # Only the very first page hit the lightweight transport
    assert light.call_count == 1
    assert rendered.call_count == 4


def test_still_blocked_after_render_is_reported():
    light = Mock(side_effect=lambda u: _fr(u, status=429, body=""))
    rendered = Mock(side_effect=lambda u: _fr(u, status=403, body=CHALLENGE, mode=FetchMode.RENDERED))
    ctl = EscalationController(light, rendered)

    res = ctl.fetch("https://example.com/a")

    assert res.blocked is True
    assert res.escalated is True
    assert ctl.state.consecutive_blocks == 2


def test_no_rendered_transport_means_no_escalation():
    light = Mock(side_effect=lambda u: _fr(u, status=503, body=""))
    ctl = EscalationController(light, None)

    res = ctl.fetch("https://example.com/a")

    assert res.blocked is True
    assert res.escalated is False
    assert ctl.mode is FetchMode.LIGHTWEIGHT


def test_consecutive_blocks_reset_on_usable_page():
    responses = iter([_fr("u", status=403, body=""), _fr("u")])
    ctl = EscalationController(lambda u: next(responses), None)

    ctl.fetch("https://example.com/a")
    assert ctl.state.consecutive_blocks == 1
    ctl.fetch("https://example.com/b")
    assert ctl.state.consecutive_blocks == 0


def test_detail_fetch_never_transitions():
    light = Mock(side_effect=lambda u: _fr(u, status=403, body=""))
    rendered = Mock()
    ctl = EscalationController(light, rendered)

    res = ctl.fetch_detail("https://example.com/lawyers/a/b")

    assert res.blocked is True
    assert ctl.mode is FetchMode.LIGHTWEIGHT
    rendered.assert_not_called()


def test_api_fetch_follows_current_mode():
    light = Mock(side_effect=lambda u: _fr(u, status=403, body=CHALLENGE) if u.endswith("/list") else _fr(u, body="{}"))
    rendered = Mock(side_effect=lambda u: _fr(u, mode=FetchMode.RENDERED))
    raw = Mock(side_effect=lambda u: _fr(u, body='{"results": []}', mode=FetchMode.RENDERED))
    ctl = EscalationController(light, rendered, rendered_raw=raw)

    before = ctl.fetch_api("https://example.com/api/lawyers.json")
    ctl.fetch("https://example.com/list")
    after = ctl.fetch_api("https://example.com/api/lawyers.json")

    assert before.mode is FetchMode.LIGHTWEIGHT
    assert after.mode is FetchMode.RENDERED
    assert after.body == '{"results": []}'
    raw.assert_called_once_with("https://example.com/api/lawyers.json")
    assert light.call_count == 2
