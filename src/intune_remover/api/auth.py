#!/usr/bin/env python3
"""OAuth2 Token Acquisition for Microsoft Graph.

This module exchanges app registration credentials for a Graph access token
using the OAuth2 client credentials grant against the Azure AD v2.0 token
endpoint.

Features:
    - One token per batch: fetched once, cached, shared read-only by every task
    - Concurrent callers are serialized with asyncio.Lock (single fetch)
    - Typed errors: rejected credentials vs. unreachable/misbehaving endpoint

A batch never refreshes its token. If it expires mid-batch, the affected
Graph calls fail with TokenExpiredError and are reported per device.

Security Notes:
    - Tokens are cached in memory only (never persisted to disk)
    - Log output uses a SHA-256 token id (first 8 chars), never the token

Example:
    >>> manager = TokenManager("contoso.onmicrosoft.com", client_id, client_secret)
    >>> token = await manager.get_token()
"""
import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .exceptions import (
    ConfigurationError,
    InvalidCredentialsError,
    TokenFetchError,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITY_URL = "https://login.microsoftonline.com"
DEFAULT_GRAPH_SCOPE = "https://graph.microsoft.com/.default"


@dataclass
class CachedToken:
    """Container for a fetched access token.

    Attributes:
        access_token: The OAuth2 bearer token string.
        expires_at: Unix timestamp when the token expires.
        token_type: Token type, typically "Bearer".
        expires_in: Original TTL in seconds.
    """
    access_token: str
    expires_at: float
    token_type: Optional[str] = "Bearer"
    expires_in: int = 3599

    @property
    def token_id(self) -> str:
        """Safe identifier for logging (SHA-256 hash, first 8 chars)."""
        return hashlib.sha256(self.access_token.encode()).hexdigest()[:8]

    @property
    def is_expired(self) -> bool:
        return time.time() >= self.expires_at

    @property
    def time_remaining(self) -> float:
        """Seconds remaining before the token expires (0 if expired)."""
        return max(0, self.expires_at - time.time())


class TokenManager:
    """Fetches and caches one Graph access token.

    Attributes:
        tenant: Tenant name or id used to build the token URL.
        client_id: Application (client) id.
        client_secret: Client secret value.
        token_url: Resolved OAuth2 v2.0 token endpoint.
        scope: Requested scope (Graph ``.default``).
    """

    def __init__(
        self,
        tenant: str,
        client_id: str,
        client_secret: str,
        authority_url: str = DEFAULT_AUTHORITY_URL,
        scope: str = DEFAULT_GRAPH_SCOPE,
        timeout_seconds: float = 30,
    ):
        if not all([tenant, client_id, client_secret]):
            missing = []
            if not tenant:
                missing.append("tenant")
            if not client_id:
                missing.append("client_id")
            if not client_secret:
                missing.append("client_secret")
            raise ConfigurationError(
                f"Missing required credentials: {', '.join(missing)}",
                missing_keys=missing,
            )

        self.tenant = tenant
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = f"{authority_url.rstrip('/')}/{tenant}/oauth2/v2.0/token"
        self.scope = scope
        self.timeout_seconds = timeout_seconds

        self._cached_token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Return the batch token, fetching it on first use.

        Returns:
            str: The access token string

        Raises:
            InvalidCredentialsError: If the tenant rejects the credentials
            TokenFetchError: If the token endpoint fails in any other way
        """
        if self._cached_token:
            return self._cached_token.access_token

        async with self._lock:
            if self._cached_token:
                return self._cached_token.access_token

            self._cached_token = await self._fetch_token()
            return self._cached_token.access_token

    async def _fetch_token(self) -> CachedToken:
        """Perform the client credentials exchange (single attempt)."""
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.token_url,
                    data=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status == 200:
                        data = await response.json()

                        access_token = data.get("access_token")
                        if not access_token:
                            raise TokenFetchError(
                                "Token response missing access_token",
                                status_code=200,
                                details={"response_keys": list(data.keys())},
                            )

                        expires_in = int(data.get("expires_in", 3599))
                        token = CachedToken(
                            access_token=access_token,
                            expires_at=time.time() + expires_in,
                            token_type=data.get("token_type", "Bearer"),
                            expires_in=expires_in,
                        )
                        logger.info(
                            f"Token fetched for tenant {self.tenant} "
                            f"(id={token.token_id}), expires in {expires_in}s"
                        )
                        return token

                    error_text = await response.text()
                    description = _error_description(error_text)

                    # Azure AD answers 400 (invalid_client, unauthorized_client,
                    # tenant not found) as well as 401 for bad credentials
                    if response.status in (400, 401):
                        raise InvalidCredentialsError(
                            description or "Invalid client credentials",
                            details={"status_code": response.status},
                        )

                    raise TokenFetchError(
                        f"Token endpoint returned HTTP {response.status}",
                        status_code=response.status,
                        details={"response": error_text[:200]},
                    )

        except aiohttp.ClientConnectionError as e:
            raise TokenFetchError(
                f"Failed to connect to token endpoint: {e}",
                details={"host": self.token_url},
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TokenFetchError(
                f"Token request timed out after {self.timeout_seconds}s",
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise TokenFetchError(
                f"Network error fetching token: {e}",
                cause=e,
            )

    @property
    def token_info(self) -> Optional[dict]:
        """Debug info about the cached token (hash only, never the token)."""
        if not self._cached_token:
            return None
        return {
            "token_id": self._cached_token.token_id,
            "is_expired": self._cached_token.is_expired,
            "time_remaining_seconds": self._cached_token.time_remaining,
            "expires_in_original": self._cached_token.expires_in,
        }


def _error_description(error_text: str) -> Optional[str]:
    """Pull ``error_description`` out of an Azure AD error body."""
    try:
        body = json.loads(error_text)
    except (ValueError, TypeError):
        return None
    if not isinstance(body, dict):
        return None
    description = body.get("error_description") or body.get("error")
    if not description:
        return None
    # AAD descriptions carry trace/correlation lines after the first one
    return str(description).splitlines()[0]
