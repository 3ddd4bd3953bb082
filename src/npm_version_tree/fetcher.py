"""
Memoized metadata fetching with bounded retry.
"""

from typing import Any, Dict, Optional, Protocol

from .error_handling import log_network_error
from .errors import FetchError
from .models import PackageMetadata
from .retry import RetryPolicy
from .structured_logging import get_fetcher_logger


class RegistrySource(Protocol):
    """Anything that can return a raw packument for a package name."""

    async def fetch(self, package_name: str) -> Dict[str, Any]: ...


class MetadataFetcher:
    """
    Fetches package metadata once per name and caches it for the lifetime
    of the fetcher.

    There is no in-flight request coalescing: two concurrent requests for
    the same uncached name both reach the registry.
    """

    def __init__(self, registry: RegistrySource, retry_policy: Optional[RetryPolicy] = None):
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self._cache: Dict[str, PackageMetadata] = {}
        self.requests = 0

    def __contains__(self, package_name: str) -> bool:
        return package_name in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    async def fetch(self, package_name: str) -> PackageMetadata:
        logger = get_fetcher_logger()

        cached = self._cache.get(package_name)
        if cached is not None:
            logger.debug("fetch_cache_hit", package_name=package_name)
            return cached

        logger.debug("fetch_started", package_name=package_name)

        async def attempt() -> Dict[str, Any]:
            self.requests += 1
            return await self.registry.fetch(package_name)

        def on_failure(attempt_number: int, exc: BaseException) -> None:
            logger.warning(
                "fetch_attempt_failed",
                package_name=package_name,
                attempt=attempt_number,
                max_attempts=self.retry_policy.max_attempts,
                error=str(exc),
            )

        try:
            data = await self.retry_policy.run(attempt, on_failure)
        except Exception as e:
            attempts = self.retry_policy.max_attempts if self.retry_policy.is_retryable(e) else 1
            log_network_error(
                f"Giving up on {package_name}",
                "fetcher",
                "fetch",
                exception=e,
                attempts=attempts,
            )
            raise FetchError(package_name, cause=e, attempts=attempts) from e

        metadata = PackageMetadata.from_registry(package_name, data)
        self._cache[package_name] = metadata
        logger.debug(
            "fetch_completed",
            package_name=package_name,
            version_count=len(metadata.available_versions),
        )
        return metadata
