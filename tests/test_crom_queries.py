"""Tests for core.crom_queries."""

from core.crom_queries import build_fragment_source_query, build_pages_query, build_tag_filter


def test_no_tags_no_filter():
    assert build_tag_filter() is None
    assert build_tag_filter([], []) is None


def test_single_tag():
    assert build_tag_filter(["scp"]) == '{ tags: { eq: "scp" } }'


def test_all_tags_fold_with_and():
    assert build_tag_filter(["scp", "euclid"]) == (
        '{ _and: [{ tags: { eq: "euclid" } }, { tags: { eq: "scp" } }] }'
    )


def test_one_of_tags_fold_with_or():
    assert build_tag_filter([], ["keter", "safe"]) == (
        '{ _or: [{ tags: { eq: "safe" } }, { tags: { eq: "keter" } }] }'
    )


def test_both_tag_kinds_are_combined():
    assert build_tag_filter(["scp"], ["keter"]) == (
        '{ _and: [ { tags: { eq: "scp" } }, { tags: { eq: "keter" } } ] }'
    )


def test_tags_are_escaped():
    assert build_tag_filter(['a"b']) == '{ tags: { eq: "a\\"b" } }'


def test_pages_query_first_page():
    query = build_pages_query("http://s.wikidot.com/", "url,")
    assert query.startswith("query { pages(")
    assert 'url: { startsWith: "http://s.wikidot.com/" }' in query
    assert "edges { node { url, } }" in query
    assert "pageInfo { endCursor, hasNextPage }" in query
    assert "after" not in query
    assert "wikidotInfo:" not in query


def test_pages_query_with_cursor_and_tags():
    query = build_pages_query("http://s/", "url,", tag_filter='{ tags: { eq: "x" } }', after="abc")
    assert 'after: "abc",' in query
    assert 'wikidotInfo: { tags: { eq: "x" } },' in query


def test_author_query_uses_attributed_pages():
    query = build_pages_query("http://s/", "url,", author="Alice")
    assert query.startswith('query { user(name: "Alice") { attributedPages(')


def test_fragment_source_query():
    query = build_fragment_source_query("http://s/fragment:a-1")
    assert query == 'query { page(url: "http://s/fragment:a-1") { wikidotInfo { source } } }'
