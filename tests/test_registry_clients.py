"""
Registry client and metadata fetcher tests for npm-version-tree.
"""

import httpx
import pytest

from npm_version_tree.errors import FetchError, PackageNotFoundError, RegistryError
from npm_version_tree.fetcher import MetadataFetcher
from npm_version_tree.registry_clients import (
    NPMClient,
    RegistryConfig,
    get_registry_client,
    package_url_path,
)
from npm_version_tree.retry import RetryPolicy

from conftest import FakeRegistry, packument


def make_client(handler, **config):
    registry_config = RegistryConfig(base_url="https://registry.test/", **config)
    return NPMClient(registry_config, transport=httpx.MockTransport(handler))


class TestRegistryConfig:
    """Test registry connection settings."""

    def test_trailing_slash_removed(self):
        assert RegistryConfig(base_url="https://registry.test/").base_url == "https://registry.test"

    def test_empty_base_url_rejected(self):
        with pytest.raises(ValueError):
            RegistryConfig(base_url="")

    def test_from_config_reads_token_from_env(self, monkeypatch):
        monkeypatch.delenv("NPM_VERSION_TREE_TOKEN", raising=False)
        monkeypatch.setenv("NPM_TOKEN", "  secret-token-value  ")

        registry_config = RegistryConfig.from_config()

        assert registry_config.base_url == "https://registry.npmjs.org"
        assert registry_config.token == "secret-token-value"
        assert registry_config.get_headers()["Authorization"] == "Bearer secret-token-value"

    def test_sanitized_config_hides_token(self):
        sanitized = RegistryConfig(base_url="https://registry.test", token="abc12345").get_sanitized_config()

        assert sanitized["has_token"] is True
        assert "abc12345" not in str(sanitized)

    def test_no_authorization_header_without_token(self):
        headers = RegistryConfig(base_url="https://registry.test").get_headers()

        assert "Authorization" not in headers
        assert headers["Accept"] == "application/json"


class TestPackageUrlPath:
    def test_plain_name(self):
        assert package_url_path("express") == "express"

    def test_scoped_name_escapes_slash(self):
        assert package_url_path("@types/node") == "@types%2Fnode"


class TestNPMClient:
    """Test fetching packuments over HTTP."""

    @pytest.mark.asyncio
    async def test_fetch_returns_document(self):
        document = packument("express", {"4.18.2": {}})
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=document)

        async with make_client(handler, token="tok-123456") as client:
            data = await client.fetch("express")

        assert data == document
        assert seen[0].url == "https://registry.test/express"
        assert seen[0].headers["Authorization"] == "Bearer tok-123456"

    @pytest.mark.asyncio
    async def test_scoped_package_url(self):
        urls = []

        def handler(request):
            urls.append(request.url.raw_path.decode())
            return httpx.Response(200, json=packument("@types/node", {"20.0.0": {}}))

        async with make_client(handler) as client:
            await client.fetch("@types/node")

        assert urls == ["/@types%2Fnode"]

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with make_client(lambda request: httpx.Response(404, json={"error": "Not found"})) as client:
            with pytest.raises(PackageNotFoundError) as exc_info:
                await client.fetch("missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.package_name == "missing"

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with make_client(lambda request: httpx.Response(503, text="unavailable")) as client:
            with pytest.raises(RegistryError) as exc_info:
                await client.fetch("express")

        assert exc_info.value.status_code == 503
        assert not isinstance(exc_info.value, PackageNotFoundError)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(RegistryError, match="Network error"):
                await client.fetch("express")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with make_client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(RegistryError, match="Invalid JSON"):
                await client.fetch("express")

    @pytest.mark.asyncio
    async def test_non_object_document(self):
        async with make_client(lambda request: httpx.Response(200, json=["a"])) as client:
            with pytest.raises(RegistryError, match="Unexpected registry document"):
                await client.fetch("express")

    @pytest.mark.asyncio
    async def test_fetch_outside_context_manager(self):
        client = make_client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(RegistryError, match="not initialized"):
            await client.fetch("express")

    def test_factory_uses_configuration(self):
        client = get_registry_client()

        assert isinstance(client, NPMClient)
        assert client.base_url == "https://registry.npmjs.org"


class TestMetadataFetcher:
    """Test memoized fetching with retry."""

    @pytest.fixture
    def registry(self):
        return FakeRegistry(
            {"express": packument("express", {"4.17.0": {}, "4.18.2": {"dependencies": {"debug": "2.6.9"}}})}
        )

    @pytest.mark.asyncio
    async def test_maps_packument_to_metadata(self, registry):
        metadata = await MetadataFetcher(registry).fetch("express")

        assert metadata.name == "express"
        assert metadata.dist_tags == {"latest": "4.18.2"}
        assert metadata.available_versions == ["4.17.0", "4.18.2"]
        assert dict(metadata.versions["4.18.2"].dependencies) == {"debug": "2.6.9"}

    @pytest.mark.asyncio
    async def test_second_fetch_is_cached(self, registry):
        fetcher = MetadataFetcher(registry)

        first = await fetcher.fetch("express")
        second = await fetcher.fetch("express")

        assert first is second
        assert registry.calls == ["express"]
        assert "express" in fetcher
        assert len(fetcher) == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, registry):
        registry.fail("express", 2)
        fetcher = MetadataFetcher(registry, RetryPolicy.immediate())

        await fetcher.fetch("express")

        assert fetcher.requests == 3

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, registry):
        registry.fail("express", 3)
        fetcher = MetadataFetcher(registry, RetryPolicy.immediate())

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("express")

        assert isinstance(exc_info.value.__cause__, RegistryError)
        assert "express" not in fetcher

        await fetcher.fetch("express")
        assert registry.calls.count("express") == 4

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_immediately(self, registry):
        registry.fail("express", 1)
        policy = RetryPolicy(max_attempts=3, retry_on=(PackageNotFoundError,))

        with pytest.raises(FetchError) as exc_info:
            await MetadataFetcher(registry, policy).fetch("express")

        assert exc_info.value.attempts == 1
        assert registry.calls == ["express"]
