"""
List-pages options — The single, immutable description of a harvesting run.

run.py builds one ListPagesOptions from the parsed CLI arguments, calls
apply_inferences() once, validates it, and hands the result to the
orchestrator. Nothing downstream mutates it.

Inferences (mirroring what the flags imply about the Crom query):
  --txm                       Replaces --info with TXM_FIELDS and turns on --content.
  --content, --files,
  --download-html             Need "url" to locate the rendered page.
  --source-contains,
  --gather-fragments-sources  Need "wikidotInfo.source".
  --gather-fragments-sources  Needs "wikidotInfo.children.url" to find fragments.
"""

import dataclasses
import os
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

DEFAULT_INFO = ("url", "wikidotInfo.title")

TXM_FIELDS = (
    "url",
    "wikidotInfo.title",
    "wikidotInfo.rating",
    "wikidotInfo.tags",
    "wikidotInfo.children.url",
    "wikidotInfo.createdAt",
    "wikidotInfo.createdBy.name",
)

SOURCE_FIELD = "wikidotInfo.source"
CHILDREN_URL_FIELD = "wikidotInfo.children.url"


@dataclass(frozen=True)
class ListPagesOptions:
    """Parameters of the list-pages run.

    Attributes:
        info: Dotted Crom field paths requested for every page.
        all_tags: Pages must carry every one of these tags.
        one_of_tags: Pages must carry at least one of these tags.
        author: Restrict to pages attributed to this Wikidot user.
        content: Download each page and extract its main text into "content".
        download_html: Existing folder where the raw HTML of each page is saved.
        gather_fragments_sources: Replace the source of fragmented pages by the
            concatenated sources of their fragments.
        source_contains: Regexes the page source must match.
        source_contains_one: Keep pages matching any regex instead of all.
        source_contains_ignore_case: Compile the regexes case-insensitively.
        txm: Produce the fixed TXM XML export.
        files: List the attached files of each page (requires a browser).
        output_fields: Dotted paths kept in the output (empty keeps everything).
    """

    info: Tuple[str, ...] = DEFAULT_INFO
    all_tags: Tuple[str, ...] = ()
    one_of_tags: Tuple[str, ...] = ()
    author: Optional[str] = None
    content: bool = False
    download_html: Optional[str] = None
    gather_fragments_sources: bool = False
    source_contains: Tuple[str, ...] = ()
    source_contains_one: bool = False
    source_contains_ignore_case: bool = False
    txm: bool = False
    files: bool = False
    output_fields: Tuple[str, ...] = ()

    def apply_inferences(self) -> "ListPagesOptions":
        """Return a copy with the fields implied by the other flags added to info."""
        if self.txm:
            return dataclasses.replace(self, info=TXM_FIELDS, content=True, source_contains=())

        info = list(self.info)

        def _require(field_path: str):
            if field_path not in info:
                info.append(field_path)

        if self.content or self.files or self.download_html:
            _require("url")
        if self.source_contains or self.gather_fragments_sources:
            _require(SOURCE_FIELD)
        if self.gather_fragments_sources:
            _require(CHILDREN_URL_FIELD)

        return dataclasses.replace(self, info=tuple(info))

    def validate(self) -> List[str]:
        """Check the options for inconsistencies before any network activity.

        Returns:
            A list of human-readable error messages (empty if valid).
        """
        errors = []
        if not self.info:
            errors.append("--info needs at least one field")
        if any(not field_path for field_path in self.info):
            errors.append("--info contains an empty field path")

        for pattern in self.source_contains:
            try:
                re.compile(pattern)
            except re.error as e:
                errors.append(f"Bad regex in --source-contains: {pattern!r} ({e})")

        if self.source_contains and SOURCE_FIELD not in self.info:
            errors.append(f"--source-contains filters on {SOURCE_FIELD}, which is not requested in --info")

        if (self.source_contains_one or self.source_contains_ignore_case) and not self.source_contains:
            errors.append("--source-contains-one and --source-contains-ignore-case require --source-contains")

        if self.download_html and not os.path.isdir(self.download_html):
            errors.append("--download-html: path given isn't a folder path or it doesn't exist")

        return errors

    @property
    def needs_documents(self) -> bool:
        """True if the rendered pages have to be downloaded."""
        return self.content or self.files or bool(self.download_html)
