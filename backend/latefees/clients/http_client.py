"""
Shared async JSON HTTP client with retry and pagination.

Both property-management APIs go through this client:
- transient statuses (429, 500, 502, 503, 504), network errors and
  per-attempt timeouts are retried with exponential backoff
- `follow_next_page_url` walks {results, next_page_url} responses (reporting API)
- `fetch_numbered_pages` walks page[number]/page[size] responses (transactional API)

Pages are always requested one after another, never prefetched.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import httpx

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


class APIError(Exception):
    """Non-retryable (or retry-exhausted) response from an external API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PaginationHostMismatch(APIError):
    """A continuation URL pointed at a different host than the API base."""


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 6
    initial_backoff: float = 0.5  # seconds, doubled after each failed attempt
    timeout: float = 60.0  # seconds per attempt
    retry_statuses: Tuple[int, ...] = TRANSIENT_STATUSES


# Single attempt, for non-idempotent calls such as bulk charge creation
NO_RETRY = RetryPolicy(attempts=1)


class JsonHttpClient:
    """
    JSON-over-HTTP client for one API base URL.

    Args:
        base_url: API base, e.g. https://example.appfolio.com/api/v2/reports
        headers: Headers sent with every request (auth, developer id, ...)
        policy: Retry policy (defaults to 6 attempts, 0.5s doubling backoff, 60s timeout)
        transport: Optional httpx transport (tests use httpx.MockTransport)
        sleep: Coroutine used between attempts
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.policy = policy or RetryPolicy()
        self.transport = transport
        self._sleep = sleep

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request_json(
        self,
        method: str,
        url: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Send a request and decode the JSON body, retrying transient failures."""
        policy = policy or self.policy
        backoff = policy.initial_backoff

        for attempt in range(1, policy.attempts + 1):
            final_attempt = attempt == policy.attempts
            try:
                response = await asyncio.wait_for(
                    self._send(method, url, json=json, params=params),
                    timeout=policy.timeout,
                )
            except (httpx.TransportError, asyncio.TimeoutError) as e:
                if final_attempt:
                    logger.error(f"[HTTP] {method} {url} failed after {attempt} attempts: {e!r}")
                    raise
                logger.warning(f"[HTTP] {method} {url} attempt {attempt} failed ({e!r}), retrying in {backoff}s")
                await self._sleep(backoff)
                backoff *= 2
                continue

            if response.status_code in policy.retry_statuses and not final_attempt:
                logger.warning(
                    f"[HTTP] {method} {url} -> {response.status_code}, "
                    f"attempt {attempt}, retrying in {backoff}s"
                )
                await self._sleep(backoff)
                backoff *= 2
                continue

            if response.is_error:
                raise APIError(
                    f"HTTP {response.status_code}: {response.text[:500]}",
                    status_code=response.status_code,
                )

            logger.debug(f"[HTTP] {method} {url} -> {response.status_code} ({len(response.content)} bytes)")
            if not response.content:
                return {}
            return response.json()

        raise APIError(f"{method} {url}: no attempts made")

    async def _send(
        self,
        method: str,
        url: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(transport=self.transport) as client:
            return await client.request(method, url, headers=self.headers, json=json, params=params)

    # =========================================================================
    # Pagination
    # =========================================================================

    def resolve_continuation(self, next_url: str) -> str:
        """
        Make a continuation URL absolute against the base origin.

        Absolute URLs must point at the base host; anything else is rejected
        so a response cannot redirect credentials elsewhere.
        """
        base = urlsplit(self.base_url)
        resolved = urljoin(f"{base.scheme}://{base.netloc}", next_url.strip())
        target = urlsplit(resolved)

        if (target.scheme.lower(), target.netloc.lower()) != (base.scheme.lower(), base.netloc.lower()):
            raise PaginationHostMismatch("Pagination URL host mismatch")
        return resolved

    async def follow_next_page_url(
        self,
        path: str,
        first_body: Dict[str, Any],
        method: str = "POST",
    ) -> List[Dict[str, Any]]:
        """Collect rows from a top-level list or {results, next_page_url} pages."""
        payload = await self.request_json(method, self.url_for(path), json=first_body)

        if isinstance(payload, list):
            return list(payload)

        rows: List[Dict[str, Any]] = list(payload.get("results") or [])
        next_url = payload.get("next_page_url")
        pages = 1

        while next_url:
            page = await self.request_json(method, self.resolve_continuation(next_url), json={})
            rows.extend(page.get("results") or [])
            next_url = page.get("next_page_url")
            pages += 1

        logger.info(f"[HTTP] {path}: {len(rows)} rows in {pages} pages")
        return rows

    async def fetch_numbered_pages(
        self,
        path: str,
        query: Optional[Dict[str, str]] = None,
        page_size: int = 1000,
    ) -> List[Dict[str, Any]]:
        """Collect `data` from page[number]=1.. until a page comes back short."""
        rows: List[Dict[str, Any]] = []
        page_number = 1

        while True:
            params = {
                **(query or {}),
                "page[number]": str(page_number),
                "page[size]": str(page_size),
            }
            payload = await self.request_json("GET", self.url_for(path), params=params)
            data = payload.get("data") if isinstance(payload, dict) else None
            data = data if isinstance(data, list) else []
            rows.extend(data)

            if len(data) < page_size:
                break
            page_number += 1

        return rows
