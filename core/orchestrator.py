"""
List-pages Orchestrator — Pipeline coordination for the Crom page harvester.

This module ties together all other modules (CromClient, PageWalker,
EnrichmentPipeline, SourceFilter, OutputWriter) into a sequential 4-step
workflow:

  Step 1: LIST PAGES
      Builds the GraphQL selection from the requested fields (FieldTree) and
      the tag filter, then walks every page of the Crom listing for the site
      (or for the pages attributed to --author). Fails fast if a source filter
      was asked for but no record carries a source.

  Step 2: ENRICHMENT (only when requested)
      Gathers the sources of fragmented pages and downloads the rendered
      pages to extract their content and attached files, or to save the raw
      HTML. Plain HTTP is used unless files are requested, in which case one
      logged-in headless browser is shared by the whole run.

  Step 3: FILTER AND PROJECT
      Drops the records whose source does not match the --source-contains
      regexes, then keeps only the --output-fields of each record.

  Step 4: WRITE OUTPUT
      Serializes the records as JSON, YAML or TXM to the output file or to
      stdout. Nothing is written if an earlier step failed.

When the output goes to stdout, progress messages are sent to stderr so that
the document can be piped.

Configuration:
    Settings are loaded from environment variables (typically via .env file)
    and can be overridden by CLI flags in run.py.
    Required: WIKIDOT_SITE (or --site / --branch).
    See config/settings.py for defaults.

Typical usage:
    orchestrator = ListPagesOrchestrator(env_file="./.env")
    if orchestrator.validate_config():
        results = orchestrator.run(options)
        orchestrator.print_summary(results)
"""

import contextlib
import getpass
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from config import DEFAULT_SETTINGS, ListPagesOptions
from config.settings import OUTPUT_FORMATS

from .crom_client import CromClient
from .crom_queries import build_tag_filter
from .document_fetcher import BrowserDocumentFetcher, DocumentFetcher, HttpDocumentFetcher
from .enrichment import EnrichmentPipeline
from .field_tree import FieldTree
from .file_lister import FileLister
from .output_writer import STDOUT, OutputWriter
from .paginator import PageWalker
from .projection import SourceFilter, project_records


def _env_flag(name: str) -> bool:
    return os.getenv(name, str(DEFAULT_SETTINGS[name])).lower() == "true"


def _banner(title: str):
    print(f"\n{'='*60}")
    print(title)
    print("="*60)


class ListPagesOrchestrator:
    """Orchestrates the Crom listing, enrichment and output pipeline.

    Attributes:
        site: Base URL of the Wikidot site, with trailing slash.
        api_url: Crom GraphQL endpoint.
        threads: Maximum number of records enriched concurrently.
        verbose: Print every query, response and listed url.
        output_format: "json" or "yaml" (TXM is selected by the options).
        output_path: Output file, or "-" for stdout.
        headless: Hide the browser window.
        username: Wikidot username for the browser login (prompted if empty).
        password: Wikidot password for the browser login (prompted if empty).
    """

    def __init__(self, env_file: str = "./.env"):
        """Initialize the orchestrator by loading configuration from environment.

        Args:
            env_file: Path to a .env file. If the file exists, it is loaded via
                      python-dotenv. Otherwise, falls back to system environment.
        """
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path)
            print(f"Loaded configuration from: {env_file}", file=sys.stderr)
        else:
            print(f"Warning: {env_file} not found, using defaults/environment", file=sys.stderr)

        self.site = os.getenv("WIKIDOT_SITE", DEFAULT_SETTINGS["WIKIDOT_SITE"])
        self.api_url = os.getenv("CROM_API_URL", DEFAULT_SETTINGS["CROM_API_URL"])

        threads = os.getenv("THREADS", str(DEFAULT_SETTINGS["THREADS"]))
        self.threads = int(threads) if threads.lstrip("-").isdigit() else 0

        self.verbose = _env_flag("VERBOSE")
        self.output_format = os.getenv("OUTPUT_FORMAT", DEFAULT_SETTINGS["OUTPUT_FORMAT"]).lower()
        self.output_path = STDOUT
        self.headless = _env_flag("HEADLESS")

        # Only needed when files are listed through the browser
        self.username = os.getenv("WIKIDOT_USERNAME", "")
        self.password = os.getenv("WIKIDOT_PASSWORD", "")

    def validate_config(self) -> bool:
        """Validate that all required configuration values are present.

        Checks:
            - WIKIDOT_SITE is set
            - THREADS is a positive integer
            - OUTPUT_FORMAT is a known format

        Returns:
            True if the configuration is usable, False otherwise.
            Prints specific error messages for each problem.
        """
        errors = []
        if not self.site:
            errors.append("WIKIDOT_SITE is required (or use --site / --branch)")
        elif not self.site.endswith("/"):
            errors.append("WIKIDOT_SITE must end with a slash")
        if self.threads < 1:
            errors.append("THREADS must be a positive integer")
        if self.output_format not in OUTPUT_FORMATS:
            errors.append(f"OUTPUT_FORMAT must be one of: {', '.join(OUTPUT_FORMATS)}")

        if errors:
            print("\nConfiguration Errors:", file=sys.stderr)
            for err in errors:
                print(f"  - {err}", file=sys.stderr)
            return False
        return True

    def credentials(self) -> Tuple[str, str]:
        """Wikidot credentials from the environment, asking for missing ones."""
        username = self.username or input("Wikidot username: ")
        password = self.password or getpass.getpass("Wikidot password: ")
        return username, password

    def _progress(self):
        """Redirect progress messages to stderr when the document goes to stdout."""
        if self.output_path == STDOUT:
            return contextlib.redirect_stdout(sys.stderr)
        return contextlib.nullcontext()

    def _writer(self, output_format: str) -> OutputWriter:
        return OutputWriter(self.output_path, output_format, stream=sys.stdout)

    def run(self, options: ListPagesOptions, client: Optional[CromClient] = None,
            fetcher: Optional[DocumentFetcher] = None) -> Dict[str, Any]:
        """Execute the 4-step list-pages pipeline.

        Args:
            options: Validated options, with inferences applied.
            client: CromClient to use (a new one is created when None).
            fetcher: DocumentFetcher to use for the pages (chosen from the
                options when None).

        Returns:
            A dict containing:
                - started_at/completed_at: ISO timestamps
                - command: "list-pages"
                - config: Site and requested fields
                - success: True if all steps completed without error
                - summary: Record counts
                - output: Where the records were written
                - error: Error message (if success=False)
        """
        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "command": "list-pages",
            "config": {
                "site": self.site,
                "info": list(options.info),
                "threads": self.threads,
            },
            "success": False,
        }
        output_format = "txm" if options.txm else self.output_format
        writer = self._writer(output_format)
        client = client or CromClient(self.api_url, self.verbose)

        with self._progress():
            try:
                # Step 1: Walk the Crom listing
                _banner("STEP 1: LIST PAGES")
                requested_fields = FieldTree.from_paths(options.info).render()
                walker = PageWalker(
                    client,
                    self.site,
                    requested_fields,
                    tag_filter=build_tag_filter(options.all_tags, options.one_of_tags),
                    author=options.author,
                    verbose=self.verbose,
                )
                records = walker.walk()
                print(f"  Pages listed: {len(records)}")

                source_filter = SourceFilter(
                    options.source_contains,
                    match_any=options.source_contains_one,
                    ignore_case=options.source_contains_ignore_case,
                )
                source_filter.check_exposes_source(records)

                # Step 2: Fragment sources and rendered pages
                pipeline = EnrichmentPipeline(
                    client,
                    fetcher=None,
                    threads=self.threads,
                    gather_fragments_sources=options.gather_fragments_sources,
                    content=options.content,
                    files=options.files,
                    html_folder=options.download_html,
                )
                if options.gather_fragments_sources or pipeline.needs_documents:
                    _banner("STEP 2: ENRICHMENT")
                    if pipeline.needs_documents:
                        pipeline.fetcher = fetcher or self._make_fetcher(options, client)
                    pipeline.enrich(records)
                    print(f"  Pages enriched: {len(records)}")

                # Step 3: Source filter and output projection
                _banner("STEP 3: FILTER AND PROJECT")
                kept = source_filter.apply(records)
                if source_filter.patterns:
                    print(f"  Pages matching the source filter: {len(kept)}/{len(records)}")
                kept = project_records(kept, FieldTree.from_paths(options.output_fields))

                # Step 4: Serialize
                _banner("STEP 4: WRITE OUTPUT")
                destination = writer.write(kept)
                print(f"  Results written to {destination}")

                results["success"] = True
                results["output"] = destination
                results["summary"] = {
                    "listing_pages": walker.pages_fetched,
                    "pages_listed": len(records),
                    "pages_written": len(kept),
                }

            except Exception as e:
                results["error"] = str(e)
                print(f"\n  ERROR: {e}")
                if self.verbose:
                    import traceback
                    traceback.print_exc()

        results["completed_at"] = datetime.now(timezone.utc).isoformat()
        return results

    def _make_fetcher(self, options: ListPagesOptions, client: CromClient) -> DocumentFetcher:
        if options.files:
            return BrowserDocumentFetcher(headless=self.headless, credentials=self.credentials())
        return HttpDocumentFetcher(client.session)

    def run_list_files(self, location: str, lister: Optional[FileLister] = None) -> Dict[str, Any]:
        """List the attached files of the pages shown by a ListPages module.

        Args:
            location: Unix name of the page holding the ListPages module.
            lister: FileLister to use (a new one is created when None).

        Returns:
            A results dict shaped like the one of run().
        """
        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "command": "list-files",
            "config": {"site": self.site, "location": location},
            "success": False,
        }
        writer = self._writer(self.output_format)

        with self._progress():
            try:
                _banner("STEP 1: LIST FILES")
                if lister is None:
                    client = CromClient(self.api_url, self.verbose)
                    lister = FileLister(
                        self.site,
                        location,
                        client.session,
                        threads=self.threads,
                        headless=self.headless,
                        credentials=self.credentials(),
                        verbose=self.verbose,
                    )
                entries = lister.list_files()
                print(f"  Pages with files: {len(entries)}")

                _banner("STEP 2: WRITE OUTPUT")
                destination = writer.write(entries)
                print(f"  Results written to {destination}")

                results["success"] = True
                results["output"] = destination
                results["summary"] = {
                    "pages_with_files": len(entries),
                    "files": sum(len(entry["files"]) for entry in entries),
                }

            except Exception as e:
                results["error"] = str(e)
                print(f"\n  ERROR: {e}")
                if self.verbose:
                    import traceback
                    traceback.print_exc()

        results["completed_at"] = datetime.now(timezone.utc).isoformat()
        return results

    def print_summary(self, results: Dict):
        """Print a human-readable execution summary (to stderr).

        Args:
            results: The dict returned by run() or run_list_files().
        """
        out = sys.stderr
        print(f"\n{'='*60}", file=out)
        print("HARVEST COMPLETE", file=out)
        print("="*60, file=out)
        print(f"Status: {'SUCCESS' if results.get('success') else 'FAILED'}", file=out)

        summary = results.get("summary", {})
        for key, value in summary.items():
            print(f"{key.replace('_', ' ').capitalize()}: {value}", file=out)

        if results.get("output"):
            print(f"Output: {results['output']}", file=out)
        if results.get("error"):
            print(f"Error: {results['error']}", file=out)
