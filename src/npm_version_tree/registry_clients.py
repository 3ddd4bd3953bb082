"""
Registry client for the npm package registry.

Fetches raw package metadata documents ("packuments") over httpx, with
optional token authentication and client-side rate limiting.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from httpx import HTTPStatusError, RequestError

from .cli_config import get_config
from .errors import PackageNotFoundError, RegistryError
from .structured_logging import log_registry_request

TOKEN_ENV_VARS = ("NPM_VERSION_TREE_TOKEN", "NPM_TOKEN", "NPM_AUTH_TOKEN")


def _load_token_from_env() -> Optional[str]:
    for env_var in TOKEN_ENV_VARS:
        value = os.getenv(env_var)
        if value and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class RegistryConfig:
    """Connection settings for one registry."""

    base_url: str
    token: Optional[str] = None
    user_agent: str = "npm-version-tree/1.0.0"
    timeout: float = 30.0
    rate_limit_rps: float = 20.0

    def __post_init__(self):
        if not self.base_url or not isinstance(self.base_url, str):
            raise ValueError("base_url must be a non-empty string")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_config(cls) -> "RegistryConfig":
        config = get_config()
        return cls(
            base_url=config.network.registry_url,
            token=_load_token_from_env(),
            user_agent=config.network.user_agent,
            timeout=config.network.timeout_seconds,
            rate_limit_rps=config.network.rate_limit,
        )

    def get_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get_sanitized_config(self) -> Dict[str, Any]:
        """Configuration with credentials redacted, for logging."""
        return {
            "base_url": self.base_url,
            "has_token": bool(self.token),
            "timeout": self.timeout,
            "rate_limit_rps": self.rate_limit_rps,
        }


class RateLimiter:
    """Simple rate limiter to prevent overwhelming registries."""

    def __init__(self, requests_per_second: float = 20.0):
        self.min_interval = 1.0 / requests_per_second
        self.last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._lock:
            time_since_last = time.monotonic() - self.last_request_time

            if time_since_last < self.min_interval:
                await asyncio.sleep(self.min_interval - time_since_last)

            self.last_request_time = time.monotonic()


def package_url_path(package_name: str) -> str:
    """
    URL path segment for a package name.

    Scoped names keep their leading ``@`` but the slash is escaped, as the
    npm registry expects (``@types/node`` -> ``@types%2Fnode``).
    """
    if package_name.startswith("@"):
        return "@" + quote(package_name[1:], safe="")
    return quote(package_name, safe="")


class NPMClient:
    """
    Client for the npm registry.

    Uses the async context manager pattern: the underlying
    ``httpx.AsyncClient`` is created on entry and closed on exit.
    """

    def __init__(
        self,
        registry_config: Optional[RegistryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.registry_config = registry_config or RegistryConfig.from_config()
        self.rate_limiter = RateLimiter(self.registry_config.rate_limit_rps)
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self.registry_config.base_url

    async def __aenter__(self) -> "NPMClient":
        self.client = httpx.AsyncClient(
            timeout=self.registry_config.timeout,
            headers=self.registry_config.get_headers(),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def fetch(self, package_name: str) -> Dict[str, Any]:
        """
        Fetch the full metadata document for ``package_name``.

        Raises:
            PackageNotFoundError: The registry answered 404
            RegistryError: Any other HTTP, transport or decoding failure
        """
        if self.client is None:
            raise RegistryError(
                "HTTP client not initialized - use within async context manager",
                package_name=package_name,
            )

        url = f"{self.base_url}/{package_url_path(package_name)}"
        start_time = time.monotonic()

        await self.rate_limiter.acquire()
        try:
            response = await self.client.get(url)
        except RequestError as e:
            log_registry_request(package_name, None)
            raise RegistryError(f"Network error for {package_name}: {e}", package_name=package_name) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        log_registry_request(package_name, response.status_code, duration_ms)

        if response.status_code == 404:
            raise PackageNotFoundError(
                f"Package not found in registry: {package_name}",
                package_name=package_name,
                status_code=404,
            )

        try:
            response.raise_for_status()
        except HTTPStatusError as e:
            raise RegistryError(
                f"HTTP {e.response.status_code} for {package_name}: {e.response.text[:100]}",
                package_name=package_name,
                status_code=e.response.status_code,
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(
                f"Invalid JSON from registry for {package_name}", package_name=package_name
            ) from e

        if not isinstance(data, dict):
            raise RegistryError(
                f"Unexpected registry document for {package_name}", package_name=package_name
            )
        return data


def get_registry_client(registry_config: Optional[RegistryConfig] = None) -> NPMClient:
    """Factory for the default registry client."""
    return NPMClient(registry_config)
