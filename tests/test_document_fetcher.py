"""Tests for core.document_fetcher (no real network or browser)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests
from playwright.async_api import Error as PlaywrightError

from conftest import make_response
from core.document_fetcher import FILES_CLICK_SCRIPT, BrowserDocumentFetcher, DocumentFetcher, HttpDocumentFetcher


def _text_response(text):
    response = make_response(None)
    response.text = text
    return response


def test_http_fetch_retries_then_succeeds():
    session = MagicMock()
    session.get.side_effect = [requests.ConnectionError("reset"), _text_response("<html>ok</html>")]
    sleep = AsyncMock()
    fetcher = HttpDocumentFetcher(session, max_retries=2, retry_delay=5, sleep=sleep)

    assert asyncio.run(fetcher.fetch("http://s/p")) == "<html>ok</html>"
    sleep.assert_awaited_once_with(5)


def test_http_fetch_gives_up_with_none():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("down")
    fetcher = HttpDocumentFetcher(session, max_retries=1, retry_delay=0, sleep=AsyncMock())

    assert asyncio.run(fetcher.fetch("http://s/p")) is None
    assert session.get.call_count == 2


def _browser_with_page(page):
    fetcher = BrowserDocumentFetcher(poll_attempts=3, poll_interval=0)
    fetcher._context = MagicMock()
    fetcher._context.new_page = AsyncMock(return_value=page)
    return fetcher


def test_browser_fetch_reveals_files_and_closes_tab():
    page = AsyncMock()
    page.query_selector_all.side_effect = [[], [MagicMock()]]
    page.content.return_value = "<html>files</html>"
    fetcher = _browser_with_page(page)

    assert asyncio.run(fetcher.fetch("http://s/p")) == "<html>files</html>"
    page.goto.assert_awaited_once_with("http://s/p")
    page.evaluate.assert_awaited_once_with(FILES_CLICK_SCRIPT)
    assert page.query_selector_all.await_count == 2
    page.close.assert_awaited_once()


def test_browser_fetch_without_action_area_still_returns_page(caplog):
    page = AsyncMock()
    page.query_selector_all.return_value = []
    page.content.return_value = "<html>no files</html>"
    fetcher = _browser_with_page(page)

    assert asyncio.run(fetcher.fetch("http://s/p")) == "<html>no files</html>"
    assert page.query_selector_all.await_count == 3
    assert "No action area found" in caplog.text


def test_browser_fetch_error_returns_none():
    page = AsyncMock()
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    fetcher = _browser_with_page(page)

    assert asyncio.run(fetcher.fetch("http://s/p")) is None
    page.close.assert_awaited_once()


def test_browser_close_shuts_everything_down():
    fetcher = BrowserDocumentFetcher()
    context, browser, playwright = AsyncMock(), AsyncMock(), AsyncMock()
    fetcher._context, fetcher._browser, fetcher._playwright = context, browser, playwright

    asyncio.run(fetcher.close())

    context.clear_cookies.assert_awaited_once()
    context.close.assert_awaited_once()
    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert fetcher._context is None


def test_login_fills_the_first_two_inputs():
    page = AsyncMock()
    username_field, password_field = AsyncMock(), AsyncMock()
    page.query_selector_all.return_value = [username_field, password_field]
    fetcher = _browser_with_page(page)

    asyncio.run(fetcher.login("alice", "secret"))

    username_field.fill.assert_awaited_once_with("alice")
    password_field.fill.assert_awaited_once_with("secret")
    page.click.assert_awaited_once_with("button")
    page.close.assert_awaited_once()


def _fake_playwright(login_page):
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=login_page)
    browser = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    return starter, playwright, browser, context


def test_failed_login_shuts_the_browser_down():
    login_page = AsyncMock()
    login_page.query_selector_all.return_value = []
    starter, playwright, browser, context = _fake_playwright(login_page)
    fetcher = BrowserDocumentFetcher(credentials=("alice", "secret"))

    with patch("core.document_fetcher.async_playwright", return_value=starter):
        with pytest.raises(RuntimeError, match="login form not found"):
            asyncio.run(fetcher.open())

    context.close.assert_awaited_once()
    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert fetcher._browser is None and fetcher._playwright is None


def test_failed_launch_stops_playwright():
    starter, playwright, browser, _ = _fake_playwright(AsyncMock())
    playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")
    fetcher = BrowserDocumentFetcher()

    async def run():
        async with fetcher:
            pass

    with patch("core.document_fetcher.async_playwright", return_value=starter):
        with pytest.raises(PlaywrightError):
            asyncio.run(run())

    playwright.stop.assert_awaited_once()
    browser.close.assert_not_awaited()


def test_fetcher_must_implement_fetch():
    class NoFetch(DocumentFetcher):
        pass

    with pytest.raises(TypeError):
        NoFetch()
