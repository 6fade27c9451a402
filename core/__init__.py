"""
Core package — The harvesting pipeline modules.

This package contains all the modules that implement the 4-step list-pages
pipeline and the list-files command. Each module handles one concern:

  orchestrator.py      Pipeline coordination (Steps 1-4)
  crom_client.py       HTTP communication with Crom, rate limit, retries (Steps 1-2)
  crom_queries.py      GraphQL query builders (Steps 1-2)
  field_tree.py        Dotted field paths -> GraphQL selection / projection tree
  paginator.py         Cursor pagination over the page listing (Step 1)
  enrichment.py        Fragment sources, page downloads, extraction (Step 2)
  document_fetcher.py  HTTP and headless-browser page downloads (Step 2)
  page_parser.py       Content and file table extraction (Step 2)
  projection.py        Source filter and output projection (Step 3)
  output_writer.py     JSON / YAML / TXM serialization (Step 4)
  file_lister.py       Files attached to the pages of a ListPages module
"""

from .orchestrator import ListPagesOrchestrator
from .crom_client import CromClient, RateLimiter
from .crom_queries import build_fragment_source_query, build_pages_query, build_tag_filter
from .field_tree import Branch, FieldTree, Leaf
from .paginator import PageWalker
from .enrichment import EnrichmentPipeline, gather_bounded
from .document_fetcher import BrowserDocumentFetcher, DocumentFetcher, HttpDocumentFetcher
from .page_parser import parse_content, parse_file_list, parse_file_size
from .projection import SourceFilter, project_record, project_records
from .output_writer import OutputWriter
from .file_lister import FileLister
from .errors import (
    ConfigurationError,
    CromContractError,
    CromError,
    CromQueryError,
    RetryExhaustedError,
)
