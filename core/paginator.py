"""
Page Walker — Cursor pagination over the Crom page listing.

Crom returns the listing as a Relay-style connection. The walker starts
without a cursor, then follows pageInfo.endCursor while pageInfo.hasNextPage
is true:

    Fetching(None) -> Fetching("c1") -> Fetching("c2") -> Done

Pages are fetched strictly one at a time: each request re-checks the rate
limit, and every cursor depends on the previous response.

Any missing connection, edges, node or pageInfo means Crom's schema no longer
matches what the harvester expects; CromContractError is raised with the raw
response and nothing is returned.
"""

import json
from typing import Any, Dict, List, Optional

from .crom_client import CromClient
from .crom_queries import build_pages_query
from .errors import CromContractError
from .records import get_path, record_url


class PageWalker:
    """Collects every page record of a Crom listing, in service order.

    Attributes:
        client: The CromClient used for every page.
        site: Site base URL the listing is restricted to.
        requested_fields: Rendered FieldTree selection.
        tag_filter: Tag filter clause (see build_tag_filter), or None.
        author: Restrict to pages attributed to this user, or None.
        verbose: Print each listed url.
    """

    def __init__(
        self,
        client: CromClient,
        site: str,
        requested_fields: str,
        tag_filter: Optional[str] = None,
        author: Optional[str] = None,
        verbose: bool = False,
    ):
        self.client = client
        self.site = site
        self.requested_fields = requested_fields
        self.tag_filter = tag_filter
        self.author = author
        self.verbose = verbose
        self.pages_fetched = 0

    def walk(self) -> List[Dict[str, Any]]:
        """Fetch every page of the listing.

        Returns:
            The node of every edge, pages concatenated in order.

        Raises:
            CromContractError: If a response does not have the connection shape.
            RetryExhaustedError: If a page cannot be fetched.
        """
        records: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            connection = self._fetch_connection(cursor)
            self.pages_fetched += 1
            records.extend(self._extract_nodes(connection))

            page_info = connection.get("pageInfo")
            if not isinstance(page_info, dict):
                raise CromContractError(f"No pageInfo in Crom response: {json.dumps(connection)}")

            if not page_info.get("hasNextPage"):
                break

            cursor = page_info.get("endCursor")
            if not isinstance(cursor, str):
                raise CromContractError(
                    f"No endCursor even though hasNextPage is true: {json.dumps(page_info)}"
                )
            print(f"  Fetching data from Crom... page {self.pages_fetched + 1}", end="\r", flush=True)

        print(f"  Download finished: {self.pages_fetched} listing page(s).")
        return records

    def _fetch_connection(self, cursor: Optional[str]) -> Dict[str, Any]:
        query = build_pages_query(
            self.site,
            self.requested_fields,
            tag_filter=self.tag_filter,
            author=self.author,
            after=cursor,
        )
        response = self.client.query(query)

        # The connection lives under a different key when querying a specific user
        if self.author is None:
            connection = get_path(response, "data", "pages")
        else:
            connection = get_path(response, "data", "user", "attributedPages")

        if not isinstance(connection, dict):
            raise CromContractError(
                f"Error in JSON response from Crom: {json.dumps(response)}\nQuery: {query}"
            )
        return connection

    def _extract_nodes(self, connection: Dict[str, Any]) -> List[Dict[str, Any]]:
        edges = connection.get("edges")
        if not isinstance(edges, list):
            raise CromContractError(f"No edges in Crom response: {json.dumps(connection)}")

        nodes = []
        for edge in edges:
            node = edge.get("node") if isinstance(edge, dict) else None
            if not isinstance(node, dict):
                raise CromContractError(f"Edge without node in Crom response: {json.dumps(connection)}")
            if self.verbose:
                print(f"    {record_url(node)}")
            nodes.append(node)
        return nodes
