"""Tests for core.field_tree.FieldTree."""

import itertools

from core.field_tree import Branch, FieldTree, Leaf


def test_render_simple_selection():
    tree = FieldTree.from_paths(["url", "wikidotInfo.title"])
    assert tree.render() == "url,wikidotInfo { title, },"


def test_render_nested_selection():
    tree = FieldTree.from_paths(["wikidotInfo.createdBy.name", "wikidotInfo.rating"])
    assert tree.render() == "wikidotInfo { createdBy { name, },rating, },"


def test_render_is_independent_of_insertion_order():
    paths = ["url", "wikidotInfo.title", "wikidotInfo.tags", "wikidotInfo.createdBy.name"]
    renders = {FieldTree.from_paths(p).render() for p in itertools.permutations(paths)}
    assert len(renders) == 1


def test_leaf_then_branch_merges_into_branch():
    tree = FieldTree.from_paths(["wikidotInfo", "wikidotInfo.title"])
    assert isinstance(tree.get("wikidotInfo"), Branch)
    assert tree.render() == "wikidotInfo { title, },"


def test_branch_then_leaf_keeps_branch():
    tree = FieldTree.from_paths(["wikidotInfo.title", "wikidotInfo"])
    assert isinstance(tree.get("wikidotInfo"), Branch)
    assert "title" in tree.get("wikidotInfo").children


def test_duplicate_leaf_is_noop():
    tree = FieldTree.from_paths(["url", "url"])
    assert len(tree) == 1
    assert tree.get("url") == Leaf("url")


def test_siblings_share_branch():
    tree = FieldTree.from_paths(["wikidotInfo.title", "wikidotInfo.rating"])
    assert len(tree) == 1
    assert len(tree.get("wikidotInfo").children) == 2


def test_empty_path_inserts_sentinel():
    tree = FieldTree()
    tree.insert([])
    assert "" in tree
    assert tree.render() == ""
    assert not tree.is_empty()


def test_new_tree_is_empty():
    assert FieldTree().is_empty()
    assert FieldTree.from_paths([]).render() == ""
