"""
Page Parser — Extracts the main text and the attached files of a Wikidot page.

Input is the rendered HTML of one page, or of several fragment pages joined
with newlines. Output:

  parse_content()    Text of every #page-content block, after removing the
                     rating widget (.creditRate), code boxes (.code) and the
                     wikiwalk footer (.footer-wikiwalk-nav). Noise is removed
                     by deleting the serialized HTML of those elements from
                     the serialized container, then taking the remaining text.

  parse_file_list()  Rows of the "table.page-files" listing that the browser
                     reveals with WIKIDOT.page.listeners.filesClick():

                         [{"name": "image.png", "file_type": "image/png", "size": 1500}]

  parse_file_size()  "1.5 kB" -> 1500. Units: Bytes, kB (x1000), MB (x10^7,
                     as Wikidot's listing is interpreted). Unknown or missing
                     units count as bytes, unparsable numbers as 0; both warn.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

HTML_PARSER = "html.parser"

CONTENT_SELECTOR = "#page-content"
NOISE_SELECTORS = (".creditRate", ".code", ".footer-wikiwalk-nav")
FILE_TABLE_SELECTOR = "table.page-files tbody"

SIZE_UNITS = {
    "Bytes": 1,
    "kB": 1000,
    "MB": 10000000,
}


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, HTML_PARSER)


def _strip_noise(container: Tag) -> str:
    html = str(container)
    for selector in NOISE_SELECTORS:
        for element in container.select(selector):
            html = html.replace(str(element), "")
    return BeautifulSoup(html, HTML_PARSER).get_text()


def parse_content(doc: BeautifulSoup) -> Optional[str]:
    """Return the main text of the page, or None if there is no #page-content."""
    containers = doc.select(CONTENT_SELECTOR)
    if not containers:
        logger.warning("#page-content not found.")
        return None
    return "\n".join(_strip_noise(container) for container in containers)


def parse_file_size(text: str) -> int:
    """Convert a Wikidot file size such as "2 MB" into a byte count."""
    parts = text.split(" ")
    try:
        number = float(parts[0])
        if not math.isfinite(number):
            raise ValueError("not a finite number")
    except ValueError as e:
        logger.warning("Can't parse size: %s: %s.", text, e)
        return 0

    if len(parts) < 2:
        logger.warning("No unit found: %s", text)
        multiplier = 1
    elif parts[1] in SIZE_UNITS:
        multiplier = SIZE_UNITS[parts[1]]
    else:
        logger.warning("Unknown unit %s.", parts[1])
        multiplier = 1

    return int(number * multiplier + 0.5)


def _first_child_html(cell: Optional[Tag]) -> str:
    if cell is None:
        return ""
    child = cell.find(True, recursive=False)
    return child.decode_contents() if child is not None else ""


def parse_file_list(doc: BeautifulSoup) -> List[Dict[str, Any]]:
    """Return the attached files listed on the page (empty if there are none)."""
    files = []
    for body in doc.select(FILE_TABLE_SELECTOR):
        for row in body.find_all("tr", recursive=False):
            cells = row.find_all(True, recursive=False)
            files.append({
                "name": _first_child_html(cells[0] if len(cells) > 0 else None),
                "file_type": _first_child_html(cells[1] if len(cells) > 1 else None),
                "size": parse_file_size(cells[2].decode_contents().strip()) if len(cells) > 2 else 0,
            })
    return files
