"""
Crom API Client — Rate-limited, retrying access to the Crom GraphQL API.

This module is responsible for all HTTP communication with Crom. Every
substantive request is preceded by a quota probe, and the whole
"probe + request + parse" sequence is retried as one unit.

Request flow for CromClient.query():

    retry_with_backoff (5 retries, 10 s apart)
      └── attempt
            ├── RateLimiter.await_capacity()
            │     POST {"query": "query {rateLimit{remaining, resetAt}}"}
            │       remaining == 0        -> sleep 5 minutes, probe again
            │       remaining > 0         -> go on
            │       no remaining + errors -> sleep 15 s, probe again
            │       no remaining, no errors -> CromContractError (fatal)
            ├── POST {"query": request}
            └── response "errors" non-empty -> CromQueryError (retried)

Transport errors, non-JSON bodies and Crom-reported errors are retried the
same way; they only differ in the warning printed. Contract violations are
never retried. The quota is never cached: other processes may be consuming
it concurrently.

query_async() follows the same flow for callers running inside the event
loop: waits and retry delays are asyncio sleeps, so a backing-off query never
holds a worker thread that page downloads need.

Pipeline context:
    Used by PageWalker for the listing (Step 1) and by EnrichmentPipeline for
    fragment sources (Step 2). A single requests.Session is shared by both.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

import requests

from config.settings import (
    CROM_API_URL,
    CROM_MAX_RETRIES,
    CROM_RETRY_DELAY,
    RATE_LIMIT_EXHAUSTED_WAIT,
    RATE_LIMIT_FLOODED_WAIT,
    REQUEST_TIMEOUT,
    USER_AGENT,
)

from .crom_queries import RATE_LIMIT_QUERY
from .errors import CromContractError, CromQueryError
from .records import get_path
from .retry import retry_with_backoff, retry_with_backoff_async

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (requests.RequestException, ValueError, CromQueryError)


def _post_json(session: requests.Session, url: str, query: str) -> Dict[str, Any]:
    response = session.post(
        url,
        json={"query": query},
        headers={"User-Agent": USER_AGENT},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"Crom response is not a JSON object: {body!r}")
    return body


class RateLimiter:
    """Blocks until the Crom quota allows another request.

    Attributes:
        session: Shared requests.Session.
        api_url: Crom GraphQL endpoint.
        verbose: If True, print each probe response.
    """

    def __init__(
        self,
        session: requests.Session,
        api_url: str = CROM_API_URL,
        verbose: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = CROM_MAX_RETRIES,
        retry_delay: float = CROM_RETRY_DELAY,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.api_url = api_url
        self.verbose = verbose
        self._sleep = sleep
        self._async_sleep = async_sleep
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    def probe(self) -> Dict[str, Any]:
        """Send one quota probe through the retry wrapper and return the raw JSON."""
        return retry_with_backoff(
            lambda: _post_json(self.session, self.api_url, RATE_LIMIT_QUERY),
            max_retries=self._max_retries,
            delay=self._retry_delay,
            retry_on=(requests.RequestException, ValueError),
            sleep=self._sleep,
            description="Crom rate limit probe",
        )

    def _next_step(self, response: Dict[str, Any]) -> Tuple[Optional[int], float]:
        """Interpret one probe: (remaining, 0) when capacity is available, else (None, seconds to wait).

        Raises:
            CromContractError: If the probe has neither rateLimit.remaining nor errors.
        """
        if self.verbose:
            print(f"  Rate limit: {json.dumps(response)}")

        remaining = get_path(response, "data", "rateLimit", "remaining")
        errors = response.get("errors")

        if isinstance(remaining, int) and not isinstance(remaining, bool):
            if remaining == 0:
                print(f"Rate limited by Crom. Waiting {RATE_LIMIT_EXHAUSTED_WAIT // 60} minutes.")
                return None, RATE_LIMIT_EXHAUSTED_WAIT
            return remaining, 0

        if errors:
            logger.warning(
                "Crom might be flooded! Waiting %s seconds. %s",
                RATE_LIMIT_FLOODED_WAIT,
                json.dumps(errors),
            )
            return None, RATE_LIMIT_FLOODED_WAIT

        raise CromContractError(
            f"No rate limit nor errors found in Crom response: {json.dumps(response)}"
        )

    def await_capacity(self) -> int:
        """Return once Crom reports a non-zero remaining quota.

        Returns:
            The remaining quota observed by the last probe.

        Raises:
            CromContractError: If a probe has neither rateLimit.remaining nor errors.
            RetryExhaustedError: If a probe cannot be sent at all.
        """
        while True:
            remaining, wait = self._next_step(self.probe())
            if remaining is not None:
                return remaining
            self._sleep(wait)

    async def probe_async(self) -> Dict[str, Any]:
        return await retry_with_backoff_async(
            lambda: asyncio.to_thread(_post_json, self.session, self.api_url, RATE_LIMIT_QUERY),
            max_retries=self._max_retries,
            delay=self._retry_delay,
            retry_on=(requests.RequestException, ValueError),
            sleep=self._async_sleep,
            description="Crom rate limit probe",
        )

    async def await_capacity_async(self) -> int:
        """Coroutine version of await_capacity(); waiting does not hold a worker thread."""
        while True:
            remaining, wait = self._next_step(await self.probe_async())
            if remaining is not None:
                return remaining
            await self._async_sleep(wait)


class CromClient:
    """Client for the Crom GraphQL API.

    All calls go through one requests.Session and one RateLimiter.

    Attributes:
        api_url: Crom GraphQL endpoint.
        verbose: If True, print raw queries and responses.
        rate_limiter: Probe run before each attempt.
    """

    def __init__(
        self,
        api_url: str = CROM_API_URL,
        verbose: bool = False,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = CROM_MAX_RETRIES,
        retry_delay: float = CROM_RETRY_DELAY,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_url = api_url
        self.verbose = verbose
        self._session = session or requests.Session()
        self._sleep = sleep
        self._async_sleep = async_sleep
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.rate_limiter = RateLimiter(
            self._session, api_url, verbose, sleep, max_retries, retry_delay, async_sleep
        )

    def query(self, request: str) -> Dict[str, Any]:
        """Execute a GraphQL query, waiting for quota and retrying transient failures.

        Args:
            request: The GraphQL query string.

        Returns:
            The whole JSON response (with its "data" key).

        Raises:
            RetryExhaustedError: If all attempts failed.
            CromContractError: If the rate limit probe violated the expected shape.
        """
        if self.verbose:
            print(f"Query: {request}")

        def _attempt():
            self.rate_limiter.await_capacity()
            body = _post_json(self._session, self.api_url, request)
            if body.get("errors"):
                raise CromQueryError(json.dumps(body["errors"]))
            return body

        response = retry_with_backoff(
            _attempt,
            max_retries=self._max_retries,
            delay=self._retry_delay,
            retry_on=TRANSIENT_ERRORS,
            sleep=self._sleep,
            description="Crom query",
        )

        if self.verbose:
            print(f"Response: {json.dumps(response)}")
        return response

    async def query_async(self, request: str) -> Dict[str, Any]:
        """Coroutine version of query().

        Rate limit waits and retry delays are asyncio sleeps; only the HTTP
        round trips run in worker threads.
        """
        if self.verbose:
            print(f"Query: {request}")

        async def _attempt():
            await self.rate_limiter.await_capacity_async()
            body = await asyncio.to_thread(_post_json, self._session, self.api_url, request)
            if body.get("errors"):
                raise CromQueryError(json.dumps(body["errors"]))
            return body

        response = await retry_with_backoff_async(
            _attempt,
            max_retries=self._max_retries,
            delay=self._retry_delay,
            retry_on=TRANSIENT_ERRORS,
            sleep=self._async_sleep,
            description="Crom query",
        )

        if self.verbose:
            print(f"Response: {json.dumps(response)}")
        return response

    @property
    def session(self) -> requests.Session:
        """The shared HTTP session (reused for plain page downloads)."""
        return self._session

    def close(self):
        self._session.close()
