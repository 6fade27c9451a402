#!/usr/bin/env python3
"""
Crom Page Harvester — Entry Point.

This is the main script that users run to list the pages of a Wikidot site
through the Crom GraphQL API, optionally enriched with the page contents,
the sources of fragmented pages and the attached files.

The list-pages pipeline (managed by ListPagesOrchestrator) performs 4 steps:
  1. Walk the Crom listing for the requested fields, tags and author
  2. Optionally gather fragment sources and download the rendered pages
  3. Filter on the page source and keep the requested output fields
  4. Write the records as JSON, YAML or TXM

Usage:
    python run.py --branch en list-pages                       # url + title of every page
    python run.py -b fr list-pages -T scp -t keter euclide     # tag filters
    python run.py -s http://mysite.wikidot.com/ list-pages --info url wikidotInfo.rating
    python run.py -b en -o pages.json --format json list-pages --content
    python run.py -b en list-pages --source-contains "\\[\\[module" --gather-fragments-sources
    python run.py -b fr -o corpus.xml list-pages --txm -T conte
    python run.py -b en list-files ssa-files-listing           # files of a ListPages module
    python run.py --version                                    # Show version
    python run.py --env /path list-pages                       # Use alternate .env file
"""

import argparse
import logging
import sys

from config import BRANCH_URLS, OUTPUT_FORMATS, ListPagesOptions
from config.options import DEFAULT_INFO
from core import ListPagesOrchestrator

VERSION = "0.3.0"


def _split_fields(values):
    """Accept field lists separated by spaces (several arguments) or commas."""
    fields = []
    for value in values or ():
        fields.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(fields)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crom Page Harvester - List and download the pages of a Wikidot site through Crom"
    )
    parser.add_argument("--env", "-e", default="./.env", help="Path to .env file")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--branch", "-b", type=str.lower, choices=sorted(BRANCH_URLS),
                        help="SCP branch to harvest (shortcut for --site)")
    target.add_argument("--site", "-s", help='Wikidot site to harvest. Don\'t forget the "/" at the end.')
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print Crom queries and their responses")
    parser.add_argument("--threads", type=int, help="Maximum number of pages processed concurrently")
    parser.add_argument("--output", "-o", help='Output file ("-" for the console, the default)')
    parser.add_argument("--format", dest="output_format", type=str.lower, choices=OUTPUT_FORMATS,
                        help="Format of the output")
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command")

    list_pages = subparsers.add_parser("list-pages", help="List the pages of the site with Crom")
    list_pages.add_argument("--info", "-i", nargs="+", default=list(DEFAULT_INFO), metavar="FIELD",
                            help="Information requested from Crom, separated by spaces or commas")
    list_pages.add_argument("--all-tags", "-T", nargs="+", default=[], metavar="TAG",
                            help="Pages must include all following tags")
    list_pages.add_argument("--one-of-tags", "-t", nargs="+", default=[], metavar="TAG",
                            help="Pages must include one of the following tags")
    list_pages.add_argument("--author", "-a", help="Searches within the pages attributed to the given author")
    list_pages.add_argument("--content", action="store_true",
                            help="Downloads the contents of each page from the HTML page")
    list_pages.add_argument("--download-html", metavar="FOLDER",
                            help="Downloads the full HTML of each page and stores it in the given folder")
    list_pages.add_argument("--gather-fragments-sources", action="store_true",
                            help="Downloads the sources of fragmented pages")
    list_pages.add_argument("--source-contains", nargs="+", default=[], metavar="REGEX",
                            help="Removes all pages whose source does not match all given regexes")
    list_pages.add_argument("--source-contains-one", action="store_true",
                            help="Keeps the pages matching one of the regexes instead of all")
    list_pages.add_argument("--source-contains-ignore-case", action="store_true",
                            help="Ignores case for --source-contains")
    list_pages.add_argument("--txm", action="store_true",
                            help="Scrapes the website for analysis with TXM. Disables --source-contains")
    list_pages.add_argument("--files", "-f", action="store_true",
                            help="[REQUIRES CHROMIUM] Lists the files of listed pages")
    list_pages.add_argument("--output-fields", nargs="+", default=[], metavar="FIELD",
                            help="Keeps only these fields in the output (everything by default)")

    list_files = subparsers.add_parser("list-files", help="List the files of the pages shown by a ListPages module")
    list_files.add_argument("listpages_location", metavar="LISTPAGES_LOCATION",
                            help="Unix name of the page where the ListPages module is located")
    list_files.add_argument("--no-headless", action="store_true", help="Shows the browser")

    return parser


def build_options(args) -> ListPagesOptions:
    """Turn parsed list-pages arguments into options with inferences applied."""
    options = ListPagesOptions(
        info=_split_fields(args.info),
        all_tags=tuple(args.all_tags),
        one_of_tags=tuple(args.one_of_tags),
        author=args.author,
        content=args.content,
        download_html=args.download_html,
        gather_fragments_sources=args.gather_fragments_sources,
        source_contains=tuple(args.source_contains),
        source_contains_one=args.source_contains_one,
        source_contains_ignore_case=args.source_contains_ignore_case,
        txm=args.txm,
        files=args.files,
        output_fields=_split_fields(args.output_fields),
    )
    return options.apply_inferences()


def apply_overrides(orchestrator: ListPagesOrchestrator, args):
    """Apply CLI overrides on top of .env values."""
    if args.branch:
        orchestrator.site = BRANCH_URLS[args.branch]
    elif args.site:
        orchestrator.site = args.site
    if args.verbose:
        orchestrator.verbose = True
    if args.threads is not None:
        orchestrator.threads = args.threads
    if args.output:
        orchestrator.output_path = args.output
    if args.output_format:
        orchestrator.output_format = args.output_format
    if getattr(args, "no_headless", False):
        orchestrator.headless = False


def main(argv=None):
    """Parse CLI arguments and run the requested command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"crom-page-harvester {VERSION}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Initialize the orchestrator (loads .env and builds internal config)
    orchestrator = ListPagesOrchestrator(env_file=args.env)
    apply_overrides(orchestrator, args)

    # Print header
    print(f"\n{'='*60}", file=sys.stderr)
    print(f"CROM PAGE HARVESTER v{VERSION}", file=sys.stderr)
    print("="*60, file=sys.stderr)
    print(f"Site: {orchestrator.site}", file=sys.stderr)
    print(f"Command: {args.command}", file=sys.stderr)

    # Validate required configuration before proceeding
    if not orchestrator.validate_config():
        sys.exit(1)

    if args.command == "list-pages":
        options = build_options(args)
        errors = options.validate()
        if errors:
            print("\nOption Errors:", file=sys.stderr)
            for err in errors:
                print(f"  - {err}", file=sys.stderr)
            sys.exit(1)
        results = orchestrator.run(options)
    else:
        results = orchestrator.run_list_files(args.listpages_location)

    # Print final summary
    orchestrator.print_summary(results)

    # Exit with error code if the harvest failed
    if not results.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
