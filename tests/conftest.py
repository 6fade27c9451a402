"""Shared fakes: an in-memory Crom endpoint and a scripted document fetcher."""

import asyncio
import re
from unittest.mock import MagicMock

import pytest

from core.crom_queries import RATE_LIMIT_QUERY
from core.document_fetcher import DocumentFetcher


def make_response(body):
    response = MagicMock()
    response.json.return_value = body
    response.raise_for_status.return_value = None
    return response


def connection(nodes, cursor=None, has_next=False, author=False):
    conn = {
        "edges": [{"node": node} for node in nodes],
        "pageInfo": {"endCursor": cursor, "hasNextPage": has_next},
    }
    if author:
        return {"data": {"user": {"attributedPages": conn}}}
    return {"data": {"pages": conn}}


class FakeCrom:
    """Answers rate limit probes, listing queries and fragment source queries.

    rate_limits and pages are consumed in order; an Exception instance is
    raised instead of being returned. Probes default to a healthy quota.
    """

    def __init__(self, pages=(), rate_limits=(), fragment_sources=None):
        self.pages = list(pages)
        self.rate_limits = list(rate_limits)
        self.fragment_sources = fragment_sources or {}
        self.probes = 0
        self.queries = []
        self.session = MagicMock()
        self.session.post.side_effect = self.post

    def post(self, url, **kwargs):
        query = kwargs["json"]["query"]
        if query == RATE_LIMIT_QUERY:
            self.probes += 1
            body = self.rate_limits.pop(0) if self.rate_limits else {"data": {"rateLimit": {"remaining": 100}}}
        elif query.startswith("query { page(url:"):
            fragment_url = re.search(r'page\(url: "([^"]+)"\)', query).group(1)
            source = self.fragment_sources[fragment_url]
            body = source if isinstance(source, Exception) else {
                "data": {"page": {"wikidotInfo": {"source": source}}}
            }
        else:
            self.queries.append(query)
            body = self.pages.pop(0)

        if isinstance(body, Exception):
            raise body
        return make_response(body)


class FakeFetcher(DocumentFetcher):
    """Serves canned HTML; a url mapped to an Exception raises it."""

    def __init__(self, documents, delays=None):
        self.documents = documents
        self.delays = delays or {}
        self.opened = False
        self.closed = False
        self.fetched = []

    async def open(self):
        self.opened = True

    async def close(self):
        self.closed = True

    async def fetch(self, url):
        self.fetched.append(url)
        await asyncio.sleep(self.delays.get(url, 0))
        document = self.documents.get(url)
        if isinstance(document, Exception):
            raise document
        return document


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeps():
    return SleepRecorder()


def page_html(text):
    return f'<html><body><div id="page-content"><p>{text}</p></div></body></html>'
