"""
Settings — Default configuration values for the Crom page harvester.

This module provides the DEFAULT_SETTINGS dict that the orchestrator uses as
fallback values when environment variables are not set. The actual configuration
is loaded from .env at runtime; these defaults ensure the harvester works out of
the box against the public Crom API.

Configuration precedence (highest to lowest):
  1. CLI flags (--site, --threads, --verbose, --format, ...)
  2. Environment variables (from .env file)
  3. DEFAULT_SETTINGS (this file)

Settings reference:
  WIKIDOT_SITE      Base URL of the Wikidot site, with trailing slash
  CROM_API_URL      GraphQL endpoint of the Crom API
  THREADS           Maximum number of concurrent enrichment units
  VERBOSE           Print every Crom query and response
  OUTPUT_FORMAT     json or yaml
  HEADLESS          Run the browser without a window (files listing only)
"""

CROM_API_URL = "https://api.crom.avn.sh/graphql"

USER_AGENT = "ScpScriptAnthology/1.0"

# Wikidot branches that can be selected with --branch instead of --site
BRANCH_URLS = {
    "fr": "http://fondationscp.wikidot.com/",
    "en": "http://scp-wiki.wikidot.com/",
    "int": "http://scp-int.wikidot.com/",
}

OUTPUT_FORMATS = ("json", "yaml")

DEFAULT_SETTINGS = {
    "WIKIDOT_SITE": "",
    "CROM_API_URL": CROM_API_URL,
    "THREADS": 8,
    "VERBOSE": False,
    "OUTPUT_FORMAT": "yaml",
    "HEADLESS": True,
}

# Crom query retry policy (retries after the first attempt, seconds between attempts)
CROM_MAX_RETRIES = 5
CROM_RETRY_DELAY = 10

# Rate limit probe waits
RATE_LIMIT_EXHAUSTED_WAIT = 300
RATE_LIMIT_FLOODED_WAIT = 15

# Rendered page downloads
PAGE_MAX_RETRIES = 5
PAGE_RETRY_DELAY = 5
LISTING_RETRY_DELAY = 2
REQUEST_TIMEOUT = 30

# Browser file-list polling: FILES_POLL_ATTEMPTS x FILES_POLL_INTERVAL seconds
FILES_POLL_ATTEMPTS = 30
FILES_POLL_INTERVAL = 0.05

WIKIDOT_LOGIN_URL = "https://www.wikidot.com/default--flow/login__LoginPopupScreen"
