"""
Output Writer — Serializes the final records to a file or to stdout.

Supported formats:
  json   Pretty-printed JSON array (UTF-8, not ASCII-escaped).
  yaml   YAML sequence (PyYAML safe_dump, keys in Crom's order).
  txm    The TXM corpus export: one <ecrit> element per page inside <SCP>,

             <?xml version="1.0"?>
             <SCP>
             <ecrit title="..." rating="12" date="2024-01-31" time="13:05" hour="13"
                    year="2024" month="01" weekday="Wednesday" author="..." tags="a,b">
             ...page content...
             </ecrit>
             </SCP>

         It needs content, wikidotInfo.{title,rating,tags,createdAt,createdBy.name}
         on every record (the --txm flag requests exactly those).

The whole document is rendered in memory before the destination is opened,
so a serialization error never leaves a truncated file behind.

Pipeline context:
    Last step of the orchestrator pipeline, only reached when every earlier
    step succeeded.
"""

import json
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, TextIO
from xml.sax.saxutils import escape

import yaml

from .records import get_path

STDOUT = "-"
FORMATS = ("json", "yaml", "txm")

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def xml_escape(text: str) -> str:
    return escape(text, _XML_ENTITIES)


def _required(record: Dict[str, Any], *keys: str) -> Any:
    value = get_path(record, *keys)
    if value is None:
        raise ValueError(f"No {'.'.join(keys)} in data: {json.dumps(record)}")
    return value


def render_txm_record(record: Dict[str, Any]) -> str:
    """Render one page as a TXM <ecrit> element."""
    content = _required(record, "content")
    title = _required(record, "wikidotInfo", "title")
    rating = _required(record, "wikidotInfo", "rating")
    tags = _required(record, "wikidotInfo", "tags")
    if not isinstance(tags, list):
        raise ValueError(f"tags is no array: {json.dumps(record)}")
    author = _required(record, "wikidotInfo", "createdBy", "name")
    try:
        date = datetime.fromisoformat(_required(record, "wikidotInfo", "createdAt"))
    except (TypeError, ValueError) as e:
        raise ValueError(f"date bad format: {json.dumps(record)}") from e

    attributes = {
        "title": xml_escape(str(title)),
        "rating": str(rating),
        "date": date.strftime("%Y-%m-%d"),
        "time": date.strftime("%H:%M"),
        "hour": date.strftime("%H"),
        "year": date.strftime("%Y"),
        "month": date.strftime("%m"),
        "weekday": date.strftime("%A"),
        "author": xml_escape(str(author)),
        "tags": xml_escape(",".join(str(tag) for tag in tags)),
    }
    rendered = " ".join(f'{name}="{value}"' for name, value in attributes.items())
    return f"<ecrit {rendered}>\n{xml_escape(str(content))}\n</ecrit>"


def render_records(records: List[Any], output_format: str) -> str:
    """Serialize records in the given format."""
    if output_format == "json":
        return json.dumps(records, indent=2, ensure_ascii=False)
    if output_format == "yaml":
        return yaml.safe_dump(records, sort_keys=False, allow_unicode=True)
    if output_format == "txm":
        body = "\n".join(render_txm_record(record) for record in records)
        return f'<?xml version="1.0"?>\n<SCP>\n{body}\n</SCP>'
    raise ValueError(f"Unknown output format: {output_format}. Must be one of: {FORMATS}")


class OutputWriter:
    """Writes the result of a run to its destination.

    Attributes:
        path: Output file path, or "-" for stdout.
        output_format: One of FORMATS.
        stream: Stream used for "-" (sys.stdout when None).
    """

    def __init__(self, path: str = STDOUT, output_format: str = "yaml", stream: Optional[TextIO] = None):
        if output_format not in FORMATS:
            raise ValueError(f"Unknown output format: {output_format}. Must be one of: {FORMATS}")
        self.path = path
        self.output_format = output_format
        self.stream = stream

    @property
    def to_stdout(self) -> bool:
        return self.path == STDOUT

    def write(self, records: List[Any]) -> str:
        """Serialize and write records.

        Returns:
            A human-readable description of the destination.

        Raises:
            ValueError: If a record cannot be rendered in the chosen format.
            OSError: If the destination cannot be written.
        """
        document = render_records(records, self.output_format)
        if self.to_stdout:
            stream = self.stream or sys.stdout
            stream.write(document)
            stream.write("\n")
            stream.flush()
            return "stdout"

        with open(self.path, "w", encoding="utf-8") as f:
            f.write(document)
        return self.path
