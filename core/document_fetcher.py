"""
Document Fetchers — Download the rendered HTML of Wikidot pages.

Two interchangeable fetchers share one async interface (open / fetch / close,
also usable as "async with"):

  HttpDocumentFetcher
      Plain GET through the shared requests.Session. Blocking calls run in the
      default worker-thread pool (asyncio.to_thread) so other pages keep
      progressing. Enough for the page content.

  BrowserDocumentFetcher
      One headless Chromium (Playwright) for the whole run, one tab per page.
      Needed for the attached-files table, which Wikidot only renders after
      WIKIDOT.page.listeners.filesClick() runs in an authenticated session:

          new tab -> goto(url) -> filesClick() -> poll "#action-area a"
                  -> content() -> close tab

      The poll gives up after FILES_POLL_ATTEMPTS x FILES_POLL_INTERVAL and
      captures the page anyway, with a warning (usually a failed login).

fetch() never raises for a single page: a failure is logged and returns None,
so one broken page cannot stop the others.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from config.settings import (
    FILES_POLL_ATTEMPTS,
    FILES_POLL_INTERVAL,
    PAGE_MAX_RETRIES,
    PAGE_RETRY_DELAY,
    REQUEST_TIMEOUT,
    USER_AGENT,
    WIKIDOT_LOGIN_URL,
)

from .errors import RetryExhaustedError
from .retry import retry_with_backoff_async

logger = logging.getLogger(__name__)

FILES_CLICK_SCRIPT = "WIKIDOT.page.listeners.filesClick();"
ACTION_AREA_LINKS = "#action-area a"


class DocumentFetcher(ABC):
    """Base class: async context manager around open() and close()."""

    async def open(self):
        pass

    async def close(self):
        pass

    @abstractmethod
    async def fetch(self, url: str) -> Optional[str]:
        """Return the HTML of url, or None if it could not be downloaded."""

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


def get_text(session: requests.Session, url: str) -> str:
    """Blocking GET returning the decoded body."""
    response = session.get(url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return response.text


class HttpDocumentFetcher(DocumentFetcher):
    """Downloads pages with plain HTTP GET requests.

    Attributes:
        session: Shared requests.Session (connection pooling).
        max_retries: Retries per page after the first attempt.
        retry_delay: Seconds between attempts.
    """

    def __init__(
        self,
        session: requests.Session,
        max_retries: int = PAGE_MAX_RETRIES,
        retry_delay: float = PAGE_RETRY_DELAY,
        sleep=asyncio.sleep,
    ):
        self.session = session
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def fetch(self, url: str) -> Optional[str]:
        try:
            return await retry_with_backoff_async(
                lambda: asyncio.to_thread(get_text, self.session, url),
                max_retries=self.max_retries,
                delay=self.retry_delay,
                retry_on=(requests.RequestException,),
                sleep=self._sleep,
                description=f"Download of {url}",
            )
        except RetryExhaustedError as e:
            logger.warning("Error while downloading %s: %s", url, e)
            return None


class BrowserDocumentFetcher(DocumentFetcher):
    """Downloads pages through one shared headless browser.

    Attributes:
        headless: Hide the browser window.
        credentials: (username, password) used to log into Wikidot, or None.
        poll_attempts: How many times to look for the revealed file links.
        poll_interval: Seconds between two looks.
    """

    def __init__(
        self,
        headless: bool = True,
        credentials: Optional[Tuple[str, str]] = None,
        poll_attempts: int = FILES_POLL_ATTEMPTS,
        poll_interval: float = FILES_POLL_INTERVAL,
    ):
        self.headless = headless
        self.credentials = credentials
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self._playwright = None
        self._browser = None
        self._context = None

    async def open(self):
        """Launch the browser and log in. Failures here are fatal for the run.

        Whatever was started before the failure is shut down before re-raising.
        """
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(user_agent=USER_AGENT)
            if self.credentials:
                await self.login(*self.credentials)
        except BaseException:
            await self.close()
            raise

    async def login(self, username: str, password: str):
        """Fill in Wikidot's login popup: username, password, submit."""
        page = await self._context.new_page()
        try:
            await page.goto(WIKIDOT_LOGIN_URL)
            fields = await page.query_selector_all("input")
            if len(fields) < 2:
                raise RuntimeError(f"Wikidot login form not found at {WIKIDOT_LOGIN_URL}")
            await fields[0].fill(username)
            await fields[1].fill(password)
            await page.click("button")
            await page.wait_for_load_state()
        finally:
            await page.close()

    async def fetch(self, url: str) -> Optional[str]:
        page = None
        try:
            page = await self._context.new_page()
            await page.goto(url)
            await page.evaluate(FILES_CLICK_SCRIPT)

            for _ in range(self.poll_attempts):
                await asyncio.sleep(self.poll_interval)
                if await page.query_selector_all(ACTION_AREA_LINKS):
                    break
            else:
                logger.warning(
                    "No action area found for %s. Your login attempt might have been unsuccessful.", url
                )

            await page.wait_for_load_state()
            return await page.content()
        except PlaywrightError as e:
            logger.warning("Couldn't download %s with the browser. Cause: %s.", url, e)
            return None
        finally:
            if page is not None:
                try:
                    await page.close()
                except PlaywrightError as e:
                    logger.warning("Failed to close the tab of %s: %s", url, e)

    async def close(self):
        """Clear cookies and shut everything down, whatever happened before."""
        if self._context is not None:
            try:
                await self._context.clear_cookies()
            except PlaywrightError as e:
                logger.warning("Browser cookies clearing failed: %s", e)
            try:
                await self._context.close()
            except PlaywrightError as e:
                logger.warning("Failed to close the browser context: %s", e)
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning("Failed to close the browser: %s", e)
        if self._playwright is not None:
            await self._playwright.stop()
        self._context = self._browser = self._playwright = None
