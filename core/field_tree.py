"""
Field Tree — Turns dotted field paths into a GraphQL selection set.

The user asks for fields as a flat list of dotted paths:

    ["url", "wikidotInfo.title", "wikidotInfo.tags", "wikidotInfo.createdBy.name"]

FieldTree merges them into a forest that shares common prefixes:

    url
    wikidotInfo
      ├── createdBy
      │     └── name
      ├── tags
      └── title

and render() writes it back in GraphQL selection syntax:

    url,wikidotInfo { createdBy { name, },tags,title, },

Crom tolerates the trailing commas. Siblings are rendered in name order so the
result does not depend on the order the paths were given in.

The same structure is reused as the output projection tree (see projection.py).
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Union


@dataclass(frozen=True)
class Leaf:
    """A scalar field selection (or the empty sentinel when name is "")."""

    name: str

    def render(self) -> str:
        if not self.name:
            return ""
        return f"{self.name},"


@dataclass
class Branch:
    """An object field selection with its own sub-selection."""

    name: str
    children: "FieldTree" = field(default_factory=lambda: FieldTree())

    def render(self) -> str:
        return f"{self.name} {{ {self.children.render()} }},"


FieldNode = Union[Leaf, Branch]

EMPTY_NODE = Leaf("")


class FieldTree:
    """A forest of Leaf/Branch nodes, unique by name among siblings."""

    def __init__(self):
        self._nodes: Dict[str, FieldNode] = {}

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "FieldTree":
        """Build a tree from dotted paths such as "wikidotInfo.title"."""
        tree = cls()
        for path in paths:
            tree.insert(path.split("."))
        return tree

    def insert(self, path: Sequence[str]) -> None:
        """Merge one field path into the forest.

        A zero-length path stores the empty sentinel node. A Leaf and a Branch
        with the same name merge into the Branch; inserting a Leaf twice is a
        no-op.
        """
        if not path:
            self._nodes.setdefault(EMPTY_NODE.name, EMPTY_NODE)
            return

        head, rest = path[0], path[1:]
        existing = self._nodes.get(head)

        if not rest:
            if existing is None:
                self._nodes[head] = Leaf(head)
            return

        if not isinstance(existing, Branch):
            existing = Branch(head)
            self._nodes[head] = existing
        existing.children.insert(rest)

    def get(self, name: str) -> Optional[FieldNode]:
        return self._nodes.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def __iter__(self):
        return iter(self._nodes[name] for name in sorted(self._nodes))

    def __len__(self) -> int:
        return len(self._nodes)

    def is_empty(self) -> bool:
        return not self._nodes

    def render(self) -> str:
        """Render the forest as a GraphQL selection body."""
        return "".join(node.render() for node in self)

    def __repr__(self) -> str:
        return f"FieldTree({self.render()!r})"
