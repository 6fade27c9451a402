"""
Crom Query Definitions — The GraphQL documents sent to the Crom API.

Crom (https://api.crom.avn.sh/graphql) indexes the SCP Wikidot sites. The
harvester only needs three kinds of requests:

  RATE_LIMIT_QUERY
      The cheap quota probe sent before every substantive request. The
      response carries data.rateLimit.remaining.

  build_pages_query()
      One page of the listing. Without an author the connection is
      data.pages; with an author it is data.user.attributedPages. Both share
      the same shape:

          {
            "edges": [ { "node": { ...requested fields... } } ],
            "pageInfo": { "endCursor": "...", "hasNextPage": true }
          }

  build_fragment_source_query()
      The source text of one fragment page: data.page.wikidotInfo.source.

Filters are plain string templates. Tags become nested _and/_or clauses:

    all_tags=["scp", "euclid"]  ->  { _and: [{ tags: { eq: "euclid" } }, { tags: { eq: "scp" } }] }

String literals are JSON-encoded, which is also valid GraphQL string syntax.
"""

import json
from typing import Iterable, Optional

RATE_LIMIT_QUERY = "query {rateLimit{remaining, resetAt}}"


def _literal(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _fold_tags(tags: Iterable[str], operation: str) -> str:
    clause = ""
    for tag in tags:
        tag_filter = f"{{ tags: {{ eq: {_literal(tag)} }} }}"
        clause = tag_filter if not clause else f"{{ _{operation}: [{tag_filter}, {clause}] }}"
    return clause


def build_tag_filter(all_tags: Iterable[str] = (), one_of_tags: Iterable[str] = ()) -> Optional[str]:
    """Build the wikidotInfo filter clause for the tag criteria.

    Args:
        all_tags: Every tag must be present (_and).
        one_of_tags: At least one tag must be present (_or).

    Returns:
        The filter clause, or None when no tag criteria were given.
    """
    filter_and = _fold_tags(all_tags, "and")
    filter_or = _fold_tags(one_of_tags, "or")

    if filter_and and filter_or:
        return f"{{ _and: [ {filter_and}, {filter_or} ] }}"
    return filter_and or filter_or or None


def build_pages_query(
    site: str,
    requested_fields: str,
    tag_filter: Optional[str] = None,
    author: Optional[str] = None,
    after: Optional[str] = None,
) -> str:
    """Build the query for one page of the listing.

    Args:
        site: Site base URL; only pages whose url starts with it are listed.
        requested_fields: Rendered FieldTree selection for each node.
        tag_filter: Output of build_tag_filter(), or None.
        author: Wikidot user name, switches to user.attributedPages.
        after: Cursor of the previous page, None for the first request.
    """
    query_body = (
        f"edges {{ node {{ {requested_fields} }} }}, "
        "pageInfo { endCursor, hasNextPage }"
    )
    wikidot_info_filter = f"wikidotInfo: {tag_filter}," if tag_filter else ""
    after_clause = f"after: {_literal(after)}," if after is not None else ""
    arguments = f"{after_clause} filter: {{ {wikidot_info_filter} url: {{ startsWith: {_literal(site)} }} }}"

    if author is None:
        return f"query {{ pages({arguments}) {{ {query_body} }} }}"
    return (
        f"query {{ user(name: {_literal(author)}) {{ "
        f"attributedPages({arguments}) {{ {query_body} }} }} }}"
    )


def build_fragment_source_query(fragment_url: str) -> str:
    """Build the query returning the source text of one fragment page."""
    return f"query {{ page(url: {_literal(fragment_url)}) {{ wikidotInfo {{ source }} }} }}"
