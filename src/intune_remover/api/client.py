#!/usr/bin/env python3
"""Async HTTP Client for Microsoft Graph.

This module provides the HTTP layer shared by every registry call:

    - Bearer authentication with the batch token
    - Typed exceptions for every non-2xx status and network failure
    - ``@odata.nextLink`` pagination
    - Connection pooling via one aiohttp session per batch
    - Strict escaping of values embedded in ``$filter`` expressions

Design Philosophy:
    This client knows HOW to talk to Graph, but not WHAT to fetch. Registry
    endpoints and device semantics belong in the registry adapter.

    Requests are never retried: a failed call is reported once and
    becomes a per-device record status.

Usage:
    async with GraphClient(token) as client:
        devices = await client.fetch_all(
            "/deviceManagement/managedDevices",
            params={"$filter": contains_filter("serialNumber", serial)},
        )
        await client.delete(f"/deviceManagement/managedDevices/{devices[0]['id']}")
"""
import asyncio
import json
import logging
import re
from typing import Any, AsyncIterator, Optional

import aiohttp

from .exceptions import (
    APIError,
    BadRequestError,
    ConnectionError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/beta"

# Safety limit for nextLink chains
MAX_PAGES = 100


# ============================================
# OData Filter Escaping
# ============================================

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_PROPERTY_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_/]*$")


def has_control_characters(value: str) -> bool:
    return bool(_CONTROL_CHARS.search(value))


def escape_odata_string(value: str) -> str:
    """Escape a value for use inside an OData single-quoted string literal.

    OData string literals escape a single quote by doubling it. Control
    characters have no legitimate place in a serial number and are rejected
    outright rather than passed to the filter parser.

    Raises:
        ValidationError: If the value is not a string or contains control characters
    """
    if not isinstance(value, str):
        raise ValidationError(
            f"Filter value must be a string, got {type(value).__name__}",
            field="filter",
        )
    if has_control_characters(value):
        raise ValidationError(
            "Filter value contains control characters",
            field="filter",
            details={"value": value.encode("unicode_escape").decode("ascii")},
        )
    return value.replace("'", "''")


def contains_filter(property_name: str, value: str) -> str:
    """Build a ``contains(<property>,'<value>')`` filter expression."""
    if not _PROPERTY_NAME.match(property_name):
        raise ValueError(f"Invalid OData property name: {property_name!r}")
    return f"contains({property_name},'{escape_odata_string(value)}')"


# ============================================
# The Client
# ============================================

class GraphClient:
    """Async HTTP client for Microsoft Graph.

    Use as an async context manager so the session is always closed:

        async with GraphClient(token) as client:
            data = await client.get("/deviceManagement/managedDevices")

    Attributes:
        base_url: Graph API root (e.g., "https://graph.microsoft.com/beta")
        timeout_seconds: Total timeout applied to every request
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        timeout_seconds: float = 60,
        max_connections: int = 10,
    ):
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_connections = max_connections

        # Session is created in __aenter__, closed in __aexit__
        self._session: Optional[aiohttp.ClientSession] = None

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self) -> "GraphClient":
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=self.max_connections,
                limit_per_host=self.max_connections,
            ),
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    def _url_for(self, endpoint: str) -> str:
        # nextLink values are absolute URLs
        if endpoint.startswith("https://") or endpoint.startswith("http://"):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a single HTTP request.

        Args:
            method: HTTP method (GET, DELETE)
            endpoint: Path below base_url, or an absolute nextLink URL
            params: Query parameters (URL-encoded by aiohttp)

        Returns:
            Parsed JSON response, or an empty dict for bodiless responses (204)

        Raises:
            APIError: If response status is not 2xx
            RuntimeError: If called outside of async context manager
            ConnectionError: If connection to server fails
            TimeoutError: If request times out
        """
        if not self._session:
            raise RuntimeError(
                "GraphClient must be used as async context manager: "
                "async with GraphClient(...) as client:"
            )

        url = self._url_for(endpoint)

        try:
            async with self._session.request(
                method=method,
                url=url,
                headers=self._auth_headers(),
                params=params,
            ) as response:
                body = await response.text()

                if response.status >= 400:
                    raise self._create_api_error(
                        status=response.status,
                        method=method,
                        endpoint=endpoint,
                        response_body=body,
                        retry_after=response.headers.get("Retry-After"),
                    )

                if not body or not body.strip():
                    return {}
                return json.loads(body)

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                host=self.base_url,
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"{method} {endpoint} timed out",
                timeout_seconds=self.timeout_seconds,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during {method} {endpoint}: {e}",
                cause=e,
            )

    def _create_api_error(
        self,
        status: int,
        method: str,
        endpoint: str,
        response_body: str,
        retry_after: Optional[str] = None,
    ) -> APIError:
        """Create the APIError subclass matching a status code."""
        api_message = _graph_error_message(response_body)
        common = {
            "endpoint": endpoint,
            "method": method,
            "response_body": response_body,
            "api_message": api_message,
        }

        if status == 401:
            return TokenExpiredError(**common)

        if status == 404:
            return NotFoundError(resource_type="Resource", resource_id=endpoint, **common)

        if status == 429:
            seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            return RateLimitError(
                f"Rate limit exceeded for {method} {endpoint}",
                retry_after=seconds,
                **common,
            )

        if status in (400, 422):
            return BadRequestError(
                f"Bad request for {method} {endpoint}",
                status_code=status,
                **common,
            )

        if status >= 500:
            return ServerError(
                f"Server error ({status}) for {method} {endpoint}",
                status_code=status,
                **common,
            )

        return APIError(
            f"{method} {endpoint} failed with HTTP {status}",
            status_code=status,
            **common,
        )

    # ----------------------------------------
    # High-Level Request Methods
    # ----------------------------------------

    async def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a GET request and return the parsed JSON body."""
        return await self._request("GET", endpoint, params=params)

    async def delete(self, endpoint: str) -> None:
        """Make a DELETE request. Graph answers 204 No Content on success."""
        await self._request("DELETE", endpoint)

    # ----------------------------------------
    # Pagination Methods
    # ----------------------------------------

    async def paginate(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        max_pages: int = MAX_PAGES,
    ) -> AsyncIterator[list[dict]]:
        """Iterate through a Graph collection page by page.

        The first request carries ``params``; subsequent requests follow the
        ``@odata.nextLink`` URL verbatim since it already encodes the query.

        Yields:
            List of items (``value``) from each page
        """
        next_url: Optional[str] = endpoint
        next_params = dict(params or {})
        pages_fetched = 0

        while next_url:
            data = await self.get(next_url, params=next_params or None)
            items = data.get("value") or []
            pages_fetched += 1

            if items:
                yield items

            next_url = data.get("@odata.nextLink")
            next_params = {}

            if next_url and pages_fetched >= max_pages:
                logger.warning(f"Stopping pagination of {endpoint} at max_pages={max_pages}")
                break

        logger.debug(f"Pagination of {endpoint} complete in {pages_fetched} page(s)")

    async def fetch_all(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch every item of a collection across all pages."""
        all_items = []
        async for page in self.paginate(endpoint, params):
            all_items.extend(page)
        return all_items


def _graph_error_message(response_body: str) -> Optional[str]:
    """Extract ``error.message`` from a Graph error payload.

    Graph wraps errors as ``{"error": {"code": ..., "message": ...}}``; some
    identity endpoints use the flat ``error_description`` form instead.
    """
    if not response_body:
        return None
    try:
        body = json.loads(response_body)
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        code = error.get("code")
        if message and code:
            return f"{code}: {message}"
        return message or code
    if body.get("error_description"):
        return str(body["error_description"]).splitlines()[0]
    if isinstance(error, str):
        return error
    return None
