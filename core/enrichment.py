"""
Enrichment Pipeline — Adds data that the Crom listing does not carry.

For each listed record, and only for what was requested:

  1. FRAGMENT SOURCES (gather_fragments_sources)
     Long Wikidot pages are split into "fragment:" child pages; the parent's
     own source is then just an include list. For a record that exposes
     wikidotInfo.source and has fragment children, each fragment's source is
     queried from Crom (at most `threads` at a time, waiting on the event loop
     rather than in a worker thread), the texts are joined with "\n" (children reversed to
     reading order) and written back into wikidotInfo.source. Fragments never
     have fragments of their own; one that does is rejected.

  2. DOCUMENT FETCH (content, files or download_html)
     The rendered page is downloaded through the DocumentFetcher (plain HTTP,
     or the shared browser when files are needed). A fragmented page is
     downloaded fragment by fragment and the documents are concatenated in
     the same order. With download_html, the raw HTML is saved to disk.

  3. EXTRACTION
     "content" <- parse_content(), "files" <- parse_file_list().

Each record is one unit of work. Units run concurrently, at most `threads` at
a time, and come back in input order. A unit that fails only degrades its own
record ("content" == "", "files" == [], original source kept) and logs a
warning; it never cancels its siblings.

Pipeline context:
    Step 2 of the orchestrator pipeline, between PageWalker (Step 1) and the
    source filter / projection (Step 3). Records are mutated in place.
"""

import asyncio
import logging
import os
from typing import Any, Awaitable, Dict, Iterable, List, Optional

from .crom_client import CromClient
from .crom_queries import build_fragment_source_query
from .document_fetcher import DocumentFetcher
from .errors import CromContractError, CromError
from .page_parser import parse_content, parse_document, parse_file_list
from .records import get_path, has_path, list_fragment_children, record_url

logger = logging.getLogger(__name__)


async def gather_bounded(coroutines: Iterable[Awaitable[Any]], limit: int) -> List[Any]:
    """Run coroutines with at most `limit` in flight; results keep input order."""
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run(coroutine):
        async with semaphore:
            return await coroutine

    return list(await asyncio.gather(*(_run(c) for c in coroutines)))


class EnrichmentPipeline:
    """Fetches fragment sources, page contents and file listings for records.

    Attributes:
        client: CromClient used for fragment source queries.
        fetcher: DocumentFetcher used to download rendered pages (None if no
            document is needed).
        threads: Maximum number of records processed concurrently.
        gather_fragments_sources: Rebuild the source of fragmented pages.
        content: Extract the main text into "content".
        files: Extract the attached files into "files".
        html_folder: Folder where the raw HTML is saved, or None.
    """

    def __init__(
        self,
        client: CromClient,
        fetcher: Optional[DocumentFetcher] = None,
        threads: int = 8,
        gather_fragments_sources: bool = False,
        content: bool = False,
        files: bool = False,
        html_folder: Optional[str] = None,
    ):
        self.client = client
        self.fetcher = fetcher
        self.threads = threads
        self.gather_fragments_sources = gather_fragments_sources
        self.content = content
        self.files = files
        self.html_folder = html_folder

    @property
    def needs_documents(self) -> bool:
        return self.content or self.files or bool(self.html_folder)

    def enrich(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Enrich records in place and return them (same list, same order)."""
        return asyncio.run(self.enrich_async(records))

    async def enrich_async(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        gather_sources = self.gather_fragments_sources and any(
            has_path(record, "wikidotInfo", "source") for record in records
        )
        if not gather_sources and not self.needs_documents:
            return records

        units = (self._enrich_record(record, gather_sources) for record in records)
        if not self.needs_documents:
            await gather_bounded(units, self.threads)
            return records

        if self.fetcher is None:
            raise ValueError("A DocumentFetcher is required to download pages")
        # The browser (if any) is opened once here and always closed
        async with self.fetcher:
            await gather_bounded(units, self.threads)
        return records

    async def _enrich_record(self, record: Dict[str, Any], gather_sources: bool):
        url = record_url(record)
        try:
            if gather_sources:
                await self._gather_fragment_sources(record)
            if self.needs_documents:
                html = await self.download_record(record)
                if self.html_folder:
                    await asyncio.to_thread(self._save_html, record, html)
                if self.content or self.files:
                    await asyncio.to_thread(self._extract, record, html)
        except Exception as e:
            logger.warning("Enrichment of %s failed: %s", url, e)
            self._set_defaults(record)

    # -- fragment sources ---------------------------------------------------

    async def _gather_fragment_sources(self, record: Dict[str, Any]):
        if not has_path(record, "wikidotInfo", "source"):
            return
        fragments = list_fragment_children(record)
        if not fragments:
            return

        try:
            sources = await gather_bounded((self.fragment_source(f) for f in fragments), self.threads)
        except CromError as e:
            logger.warning("Could not gather the fragment sources of %s, keeping its own source: %s",
                           record_url(record), e)
            return

        record["wikidotInfo"]["source"] = "\n".join(sources)

    async def fragment_source(self, fragment: Dict[str, Any]) -> str:
        """Query Crom for the source text of one fragment page."""
        if list_fragment_children(fragment):
            raise CromContractError(f"Nested fragments are not supported: {fragment['url']}")

        response = await self.client.query_async(build_fragment_source_query(fragment["url"]))
        source = get_path(response, "data", "page", "wikidotInfo", "source")
        if not isinstance(source, str):
            raise CromContractError(
                f"Error in JSON response from Crom while querying a fragment {fragment['url']}: {response}"
            )
        return source

    # -- documents ----------------------------------------------------------

    async def download_record(self, record: Dict[str, Any]) -> str:
        """Download the rendered page (or its fragments) and return the joined HTML."""
        fragments = list_fragment_children(record)
        urls = [fragment["url"] for fragment in fragments]
        if not urls:
            url = record.get("url")
            if not isinstance(url, str):
                logger.warning("Record has no url, cannot download it: %s", record)
                return ""
            urls = [url]

        title = get_path(record, "wikidotInfo", "title")
        print(f"  Downloading webpage(s) of {title if title else urls[0]}")

        htmls = await gather_bounded((self.fetcher.fetch(url) for url in urls), self.threads)
        if any(html is None for html in htmls):
            logger.warning("Some page(s) of %s could not be downloaded.", record_url(record))
        return "\n".join(html or "" for html in htmls)

    def _save_html(self, record: Dict[str, Any], html: str):
        page_name = record_url(record).rstrip("/").split("/")[-1]
        path = os.path.join(self.html_folder, f"{page_name}.html")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(html)
        except OSError as e:
            logger.warning("Could not write file %s: %s", path, e)

    def _extract(self, record: Dict[str, Any], html: str):
        doc = parse_document(html)
        if self.content:
            record["content"] = parse_content(doc) or ""
        if self.files:
            record["files"] = parse_file_list(doc)

    def _set_defaults(self, record: Dict[str, Any]):
        if self.content:
            record.setdefault("content", "")
        if self.files:
            record.setdefault("files", [])
