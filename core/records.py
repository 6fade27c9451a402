"""
Record helpers — Name-based access into schemaless Crom records.

Records are the plain dicts decoded from Crom JSON. Their shape depends on the
fields the user requested, so every access is a lookup that may come back
empty rather than an attribute on a fixed schema.
"""

from typing import Any, Dict, List

MISSING = object()


def get_path(value: Any, *keys: str, default: Any = None) -> Any:
    """Follow keys through nested dicts, returning default when a step is absent."""
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value


def has_path(value: Any, *keys: str) -> bool:
    """True if every key exists, even when the final value is null."""
    return get_path(value, *keys, default=MISSING) is not MISSING


def record_url(record: Dict[str, Any]) -> str:
    url = record.get("url")
    return url if isinstance(url, str) else "<no url>"


def list_fragment_children(record: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the fragment children of a record, in assembly order.

    Fragments are the children whose url contains "fragment:". Crom lists them
    newest first, so they are reversed to rebuild the page in reading order.
    """
    children = get_path(record, "wikidotInfo", "children")
    if not isinstance(children, list):
        return []
    fragments = [
        child for child in children
        if isinstance(child, dict) and isinstance(child.get("url"), str) and "fragment:" in child["url"]
    ]
    fragments.reverse()
    return fragments
