from unittest.mock import patch, MagicMock

from lawdir.pipeline.fetchers.playwright import PlaywrightFetcher
from lawdir.pipeline.fetchers.proxy import ProxyProvider
from lawdir.schemas import FetchMode


def _wire(mock_sync_playwright, page):
    mock_context = MagicMock()
    mock_context.new_page.return_value = page
    mock_browser = MagicMock()
    mock_browser.new_context.return_value = mock_context
    mock_playwright = MagicMock()
    mock_playwright.chromium.launch.return_value = mock_browser
    mock_sync_playwright.return_value.__enter__.return_value = mock_playwright
    return mock_playwright, mock_browser


@patch('lawdir.pipeline.fetchers.playwright.sync_playwright')
def test_playwright_fetcher_success(mock_sync_playwright):
    # Arrange
    mock_page = MagicMock()
    mock_response = MagicMock()
    mock_response.status = 200
    mock_response.headers = {"content-type": "text/html"}
    mock_page.goto.return_value = mock_response
    mock_page.url = "https://www.justia.com/lawyers/family-law/ohio?page=1"
    mock_page.content.return_value = "<html><body>Rendered listing</body></html>"
    mock_page.title.return_value = "Family Law Lawyers"
    _, mock_browser = _wire(mock_sync_playwright, mock_page)

    fetcher = PlaywrightFetcher(timeout_ms=30000, human_delay_ms=(500, 500))
    url = "https://www.justia.com/lawyers/family-law/ohio"

    # Act
    result = fetcher.fetch(url)

    # Assert
    assert result.status_code == 200
    assert result.mode is FetchMode.RENDERED
    assert result.body == "<html><body>Rendered listing</body></html>"
    assert result.final_url == "https://www.justia.com/lawyers/family-law/ohio?page=1"
    assert result.page_title == "Family Law Lawyers"
    assert result.error is None
    mock_page.goto.assert_called_once_with(url, wait_until="domcontentloaded", timeout=30000)
    mock_page.wait_for_load_state.assert_called_once()
    mock_page.wait_for_timeout.assert_called_once_with(500)
    mock_browser.close.assert_called_once()


@patch('lawdir.pipeline.fetchers.playwright.sync_playwright')
def test_playwright_fetcher_no_response(mock_sync_playwright):
    mock_page = MagicMock()
    mock_page.goto.return_value = None  # Simulate no response
    _, mock_browser = _wire(mock_sync_playwright, mock_page)

    result = PlaywrightFetcher().fetch("https://www.justia.com/lawyers/a/b")

    assert result.status_code == 0
    assert result.body is None
    assert "No response received" in result.error
    mock_browser.close.assert_called_once()


@patch('lawdir.pipeline.fetchers.playwright.sync_playwright')
def test_playwright_fetcher_network_idle_timeout_is_tolerated(mock_sync_playwright):
    mock_page = MagicMock()
    mock_response = MagicMock()
    mock_response.status = 200
    mock_response.headers = {}
    mock_page.goto.return_value = mock_response
    mock_page.content.return_value = "<html></html>"
    mock_page.title.return_value = "Title"
    # Listing keeps polling; networkidle never arrives
    mock_page.wait_for_load_state.side_effect = Exception("Timeout 10000ms exceeded")
    _, mock_browser = _wire(mock_sync_playwright, mock_page)

    result = PlaywrightFetcher().fetch("https://www.justia.com/lawyers/a/b")

    assert result.status_code == 200
    assert result.body == "<html></html>"
    assert result.error is None
    mock_browser.close.assert_called_once()


@patch('lawdir.pipeline.fetchers.playwright.sync_playwright')
def test_playwright_fetcher_general_exception(mock_sync_playwright):
    mock_playwright = MagicMock()
    mock_playwright.chromium.launch.side_effect = Exception("Launch failed")
    mock_sync_playwright.return_value.__enter__.return_value = mock_playwright

    result = PlaywrightFetcher().fetch("https://www.justia.com/lawyers/a/b")

    assert result.status_code == 0
    assert result.body is None
    assert result.mode is FetchMode.RENDERED
    assert "Launch failed" in result.error


@patch('lawdir.pipeline.fetchers.playwright.sync_playwright')
def test_playwright_fetcher_uses_proxy(mock_sync_playwright):
    mock_page = MagicMock()
    mock_page.goto.return_value = None
    mock_playwright, _ = _wire(mock_sync_playwright, mock_page)

    PlaywrightFetcher(proxy_provider=ProxyProvider(["http://proxy:8000"])).fetch("https://www.justia.com/x/y")

    kwargs = mock_playwright.chromium.launch.call_args.kwargs
    assert kwargs["proxy"] == {"server": "http://proxy:8000"}
    assert kwargs["headless"] is True


@patch('lawdir.pipeline.fetchers.playwright.sync_playwright')
def test_playwright_fetch_raw_keeps_response_body(mock_sync_playwright):
    mock_page = MagicMock()
    mock_response = MagicMock()
    mock_response.status = 200
    mock_response.headers = {"content-type": "application/json"}
    mock_response.text.return_value = '{"results": []}'
    mock_page.goto.return_value = mock_response
    mock_page.url = "https://www.justia.com/api/lawyers.json"
    mock_page.content.return_value = '<html><body><pre>{"results": []}</pre></body></html>'
    _wire(mock_sync_playwright, mock_page)

    result = PlaywrightFetcher(human_delay_ms=(0, 0)).fetch_raw("https://www.justia.com/api/lawyers.json")

    assert result.body == '{"results": []}'
    assert result.mode is FetchMode.RENDERED
    mock_page.content.assert_not_called()
