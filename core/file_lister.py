"""
File Lister — Lists the attached files of the pages shown by a ListPages module.

The site has to host a page whose ListPages module renders links to the pages
of interest inside a <div class="ssa-list-files">, one <p><a href> each. The
listing is paginated by Wikidot:

    <site><location>          -> ".pager" first child, e.g. "page 1 of 7"
    <site><location>/p/1..7   -> div.ssa-list-files p a[href]   (HTTP)
    <site><page>              -> table.page-files             (browser)

Output, one entry per page that has at least one file:

    {"url": "scp-173", "total size": 12000, "files": [{name, file_type, size}]}

Pipeline context:
    Used by ListPagesOrchestrator.run_list_files(). Shares the requests.Session
    of the orchestrator and opens its own browser.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from config.settings import LISTING_RETRY_DELAY, PAGE_MAX_RETRIES

from .document_fetcher import BrowserDocumentFetcher, get_text
from .enrichment import gather_bounded
from .errors import RetryExhaustedError
from .page_parser import parse_document, parse_file_list
from .retry import retry_with_backoff_async

logger = logging.getLogger(__name__)

PAGER_SELECTOR = ".pager"
LIST_LINKS_SELECTOR = "div.ssa-list-files p a"


def parse_page_count(html: str) -> int:
    """Read the number of listing pages from the Wikidot pager ("page 1 of N")."""
    pager = parse_document(html).select_one(PAGER_SELECTOR)
    if pager is None:
        raise ValueError("Pager not found on the page where ListPages should be.")
    indicator = pager.find(True)
    if indicator is None:
        raise ValueError("Pager has no element children.")
    words = indicator.decode_contents().split(" ")
    try:
        return int(words[-1])
    except ValueError as e:
        raise ValueError(f"Could not parse the number of pages from the pager: {indicator}") from e


def parse_listed_pages(html: str) -> List[str]:
    """Return the page names linked from one listing page (leading "/" removed)."""
    doc = parse_document(html)
    if doc.select_one("div.ssa-list-files p") is None:
        raise ValueError(
            "Page list not found. Have you put the ListPages inside a div with the ssa-list-files class?"
        )
    return [link["href"][1:] for link in doc.select(LIST_LINKS_SELECTOR) if link.get("href")]


class FileLister:
    """Collects the file listings of every page linked from a ListPages module.

    Attributes:
        site: Site base URL, with trailing slash.
        location: Unix name of the page holding the ListPages module.
        session: requests.Session used for the listing pages.
        threads: Maximum number of concurrent downloads.
        headless: Hide the browser window.
        credentials: (username, password) for the browser login, or None.
        verbose: Print every page downloaded.
    """

    def __init__(
        self,
        site: str,
        location: str,
        session: requests.Session,
        threads: int = 8,
        headless: bool = True,
        credentials=None,
        verbose: bool = False,
        fetcher: Optional[BrowserDocumentFetcher] = None,
        sleep=asyncio.sleep,
    ):
        self.site = site
        self.location = location
        self.session = session
        self.threads = threads
        self.headless = headless
        self.credentials = credentials
        self.verbose = verbose
        self.fetcher = fetcher or BrowserDocumentFetcher(headless=headless, credentials=credentials)
        self._sleep = sleep

    @property
    def listing_url(self) -> str:
        return self.site + self.location

    def list_files(self) -> List[Dict[str, Any]]:
        return asyncio.run(self.list_files_async())

    async def list_files_async(self) -> List[Dict[str, Any]]:
        first_page = await self._download(self.listing_url)
        page_count = parse_page_count(first_page)

        listing_urls = [f"{self.listing_url}/p/{n}" for n in range(1, page_count + 1)]
        per_page = await gather_bounded((self._listed_pages(url) for url in listing_urls), self.threads)
        pages = [page for names in per_page for page in names]
        print(f"  {len(pages)} pages found.")

        async with self.fetcher:
            listings = await gather_bounded((self._page_files(page) for page in pages), self.threads)

        results = []
        for page, files in zip(pages, listings):
            if files:
                results.append({
                    "url": page,
                    "total size": sum(f["size"] for f in files),
                    "files": files,
                })
        return results

    async def _download(self, url: str) -> str:
        return await retry_with_backoff_async(
            lambda: asyncio.to_thread(get_text, self.session, url),
            max_retries=PAGE_MAX_RETRIES,
            delay=LISTING_RETRY_DELAY,
            retry_on=(requests.RequestException,),
            sleep=self._sleep,
            description=f"Download of {url}",
        )

    async def _listed_pages(self, url: str) -> List[str]:
        try:
            html = await self._download(url)
        except RetryExhaustedError as e:
            logger.warning("Couldn't download page %s. Gave up retrying: %s", url, e)
            return []
        return parse_listed_pages(html)

    async def _page_files(self, page: str) -> List[Dict[str, Any]]:
        if self.verbose:
            print(f"  Downloading {page}")
        html = await self.fetcher.fetch(self.site + page)
        if html is None:
            return []
        return parse_file_list(parse_document(html))
