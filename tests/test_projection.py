"""Tests for core.projection: source filter and output projection."""

import pytest

from core.errors import ConfigurationError
from core.field_tree import FieldTree
from core.projection import SourceFilter, project_record, project_records


def _with_source(*sources):
    return [{"url": f"http://s/{i}", "wikidotInfo": {"source": source}} for i, source in enumerate(sources)]


def _sources(records):
    return [r["wikidotInfo"]["source"] for r in records]


def test_all_patterns_must_match_by_default():
    records = _with_source("foo bar", "foo", "bar")
    kept = SourceFilter(["foo", "bar"]).apply(records)
    assert _sources(kept) == ["foo bar"]


def test_any_pattern_with_match_any():
    records = _with_source("foo bar", "foo", "bar", "baz")
    kept = SourceFilter(["foo", "bar"], match_any=True).apply(records)
    assert _sources(kept) == ["foo bar", "foo", "bar"]


def test_ignore_case():
    records = _with_source("Foo", "bar")
    assert _sources(SourceFilter(["FOO"]).apply(records)) == []
    assert _sources(SourceFilter(["FOO"], ignore_case=True).apply(records)) == ["Foo"]


def test_patterns_are_regexes():
    records = _with_source("[[module ListPages]]", "[[include x]]")
    kept = SourceFilter([r"\[\[module\s+ListPages"]).apply(records)
    assert _sources(kept) == ["[[module ListPages]]"]


def test_no_patterns_keeps_everything():
    records = _with_source("a", None)
    assert SourceFilter().apply(records) == records


def test_null_source_is_dropped_with_warning(caplog):
    records = _with_source("foo", None)
    kept = SourceFilter(["foo"]).apply(records)
    assert _sources(kept) == ["foo"]
    assert "source is null" in caplog.text


def test_record_without_source_key_is_kept():
    records = [{"url": "http://s/a", "wikidotInfo": {"title": "A"}}] + _with_source("nope")
    kept = SourceFilter(["foo"]).apply(records)
    assert kept == records[:1]


def test_check_exposes_source_fails_fast():
    records = [{"url": "http://s/a"}, {"url": "http://s/b"}]
    with pytest.raises(ConfigurationError):
        SourceFilter(["foo"]).check_exposes_source(records)


def test_check_exposes_source_accepts_valid_listings():
    SourceFilter(["foo"]).check_exposes_source(_with_source("foo"))
    SourceFilter(["foo"]).check_exposes_source([])
    SourceFilter().check_exposes_source([{"url": "http://s/a"}])


def test_project_record_keeps_requested_fields():
    record = {
        "url": "http://s/a",
        "content": "text",
        "wikidotInfo": {"title": "A", "rating": 12, "source": "src"},
    }
    tree = FieldTree.from_paths(["url", "wikidotInfo.title"])
    assert project_record(record, tree) == {"url": "http://s/a", "wikidotInfo": {"title": "A"}}


def test_project_record_into_lists():
    record = {"url": "u", "files": [{"name": "a.png", "size": 3}, {"name": "b.png", "size": 4}]}
    tree = FieldTree.from_paths(["files.name"])
    assert project_record(record, tree) == {"files": [{"name": "a.png"}, {"name": "b.png"}]}


def test_leaf_keeps_whole_subtree():
    record = {"wikidotInfo": {"title": "A", "rating": 1}}
    assert project_record(record, FieldTree.from_paths(["wikidotInfo"])) == record


def test_empty_tree_keeps_records_untouched():
    records = _with_source("a", "b")
    assert project_records(records, FieldTree()) == records
