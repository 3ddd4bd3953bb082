"""
Shared fixtures for npm-version-tree tests.
"""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional

import pytest

from npm_version_tree.cli_config import ENV_PREFIX, reset_config
from npm_version_tree.errors import PackageNotFoundError, RegistryError
from npm_version_tree.retry import RetryPolicy
from npm_version_tree.tree_builder import ResolutionContext


def packument(
    name: str,
    versions: Dict[str, Dict[str, Any]],
    dist_tags: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Registry document with ``versions`` mapping a version to its extra fields."""
    if dist_tags is None:
        dist_tags = {"latest": list(versions)[-1]}
    return {
        "name": name,
        "dist-tags": dist_tags,
        "versions": {
            version: {"name": name, "version": version, **fields}
            for version, fields in versions.items()
        },
    }


class FakeRegistry:
    """In-memory registry recording every fetch."""

    def __init__(self, documents: Dict[str, Dict[str, Any]]):
        self.documents = documents
        self.calls: List[str] = []
        self.failures: Dict[str, int] = {}

    def fail(self, package_name: str, times: int) -> None:
        """Make the next ``times`` fetches of ``package_name`` fail."""
        self.failures[package_name] = times

    async def fetch(self, package_name: str) -> Dict[str, Any]:
        self.calls.append(package_name)
        await asyncio.sleep(0)

        if self.failures.get(package_name, 0) > 0:
            self.failures[package_name] -= 1
            raise RegistryError(f"Network error for {package_name}", package_name=package_name)

        if package_name not in self.documents:
            raise PackageNotFoundError(
                f"Package not found in registry: {package_name}",
                package_name=package_name,
                status_code=404,
            )
        return self.documents[package_name]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every test against default configuration."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path


@pytest.fixture
def registry_documents():
    return {
        "leaf-pkg": packument("leaf-pkg", {"1.0.0": {}, "2.0.0": {}}),
        "pkg": packument("pkg", {"1.0.0": {}, "1.2.0": {}, "2.0.0": {}}),
        "lib": packument(
            "lib",
            {
                "1.0.0": {},
                "1.2.0": {
                    "dependencies": {"leaf-pkg": "^1.0.0"},
                    "devDependencies": {"devtool": "^1.0.0"},
                },
                "2.0.0": {},
            },
        ),
        "devtool": packument("devtool", {"1.0.0": {"dependencies": {"leaf-pkg": "1.0.0"}}}),
        "app": packument(
            "app",
            {
                "1.0.0": {
                    "dependencies": {"lib": "^1.0.0", "leaf-pkg": "1.0.0"},
                    "devDependencies": {"devtool": "*"},
                }
            },
        ),
        "cycle-a": packument("cycle-a", {"1.0.0": {"dependencies": {"cycle-b": "^1.0.0"}}}),
        "cycle-b": packument("cycle-b", {"1.0.0": {"dependencies": {"cycle-a": "^1.0.0"}}}),
        "broken": packument("broken", {"1.0.0": {"dependencies": {"lib": "^9.0.0"}}}),
        "prerelease": packument(
            "prerelease",
            {"1.0.0": {}, "1.1.0-beta.1": {}},
            dist_tags={"latest": "1.0.0", "next": "1.1.0-beta.1"},
        ),
    }


@pytest.fixture
def fake_registry(registry_documents):
    return FakeRegistry(registry_documents)


@pytest.fixture
def context(fake_registry):
    return ResolutionContext(registry=fake_registry, retry_policy=RetryPolicy.immediate())


@pytest.fixture
def write_manifest(tmp_path):
    """Factory writing a package.json and returning its path."""

    def _write(data: Any, filename: str = "package.json") -> str:
        path = tmp_path / filename
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return str(path)

    return _write
