"""
Projection — Post-hoc source filtering and output field selection.

SourceFilter
    Keeps the records whose wikidotInfo.source matches the user's regexes:
    all of them by default, any of them with match_any. The source seen here
    is the one rewritten by fragment gathering, if that ran.

      record without a source key   -> kept
      source is null / not a string -> warning (Crom data problem), dropped
      no patterns                   -> everything kept

    check_exposes_source() runs right after the listing, before any page is
    downloaded: asking for a source filter while no record carries a source
    is a configuration error, not an empty result.

project_record()
    Keeps only the keys named in a FieldTree built from the output field
    list, recursing into objects (and lists of objects) under Branch nodes.
    An empty tree keeps the record untouched.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List

from .errors import ConfigurationError
from .field_tree import Branch, FieldTree
from .records import get_path, has_path

logger = logging.getLogger(__name__)


class SourceFilter:
    """Regex filter over wikidotInfo.source.

    Attributes:
        patterns: Compiled regexes.
        match_any: Keep a record when any pattern matches instead of all.
    """

    def __init__(self, patterns: Iterable[str] = (), match_any: bool = False, ignore_case: bool = False):
        flags = re.IGNORECASE if ignore_case else 0
        self.patterns = [re.compile(pattern, flags) for pattern in patterns]
        self.match_any = match_any

    def check_exposes_source(self, records: List[Dict[str, Any]]):
        """Raise ConfigurationError if patterns were given but no record has a source."""
        if self.patterns and records and not any(has_path(r, "wikidotInfo", "source") for r in records):
            raise ConfigurationError(
                "Source not found in any page but --source-contains specified. "
                "Request wikidotInfo.source in --info."
            )

    def matches(self, source: str) -> bool:
        results = (pattern.search(source) is not None for pattern in self.patterns)
        return any(results) if self.match_any else all(results)

    def keep(self, record: Dict[str, Any]) -> bool:
        if not self.patterns or not has_path(record, "wikidotInfo", "source"):
            return True

        source = get_path(record, "wikidotInfo", "source")
        if not isinstance(source, str):
            logger.warning("[Crom problem] source is null. JSON: %s", json.dumps(record))
            return False
        return self.matches(source)

    def apply(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [record for record in records if self.keep(record)]


def _project_value(value: Any, node) -> Any:
    if not isinstance(node, Branch):
        return value
    if isinstance(value, dict):
        return project_record(value, node.children)
    if isinstance(value, list):
        return [project_record(item, node.children) if isinstance(item, dict) else item for item in value]
    return value


def project_record(record: Dict[str, Any], tree: FieldTree) -> Dict[str, Any]:
    """Return a copy of record reduced to the keys present in tree."""
    if tree.is_empty():
        return record
    projected = {}
    for key, value in record.items():
        node = tree.get(key)
        if node is not None:
            projected[key] = _project_value(value, node)
    return projected


def project_records(records: List[Dict[str, Any]], tree: FieldTree) -> List[Dict[str, Any]]:
    return [project_record(record, tree) for record in records]
