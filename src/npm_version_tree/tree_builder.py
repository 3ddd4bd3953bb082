"""
Recursive version tree construction.

Every dependency edge is resolved on its own: a range is turned into the
greatest matching published version and the result is memoized by
``name#version``. There is no conflict resolution between requesters,
no deduplication strategy and no lockfile output.
"""

import asyncio
import time
import uuid
from typing import Any, Awaitable, Iterable, List, Optional, Tuple

from .cache import CacheKey, ResolutionCache
from .errors import InputError, VersionTreeError
from .fetcher import MetadataFetcher, RegistrySource
from .manifest import load_manifest
from .models import NodeState, TreeOptions, VersionNode
from .registry_clients import get_registry_client
from .resolver import DEFAULT_RANGE, resolve_version
from .retry import RetryPolicy
from .structured_logging import (
    clear_build_context,
    get_builder_logger,
    log_build_complete,
    log_build_start,
)
from .versioning import is_valid_range


class ResolutionContext:
    """
    State shared by every step of one tree build: the registry client, the
    metadata fetch cache and the resolution cache.

    Nothing is ever evicted, so a context should not outlive one consistent
    view of the registry. Use it as an async context manager; a registry
    client created here is opened on entry and closed on exit, while an
    injected registry is left for the caller to manage.
    """

    def __init__(
        self,
        registry: Optional[RegistrySource] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self._owns_registry = registry is None
        self.registry = registry if registry is not None else get_registry_client()
        self.fetcher = MetadataFetcher(self.registry, retry_policy or RetryPolicy.from_config())
        self.cache = ResolutionCache()

    async def __aenter__(self) -> "ResolutionContext":
        if self._owns_registry:
            await self.registry.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_registry:
            await self.registry.__aexit__(exc_type, exc_val, exc_tb)


async def gather_fail_fast(coroutines: Iterable[Awaitable[Any]]) -> List[Any]:
    """
    Run all coroutines concurrently and return their results in issue order.

    The first failure is raised as soon as it happens and the remaining
    tasks are cancelled.
    """
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        raise


class TreeBuilder:
    """Builds version trees against one resolution context."""

    def __init__(self, context: ResolutionContext):
        self.context = context
        self._added: List[CacheKey] = []

    @property
    def cache(self) -> ResolutionCache:
        return self.context.cache

    @property
    def fetcher(self) -> MetadataFetcher:
        return self.context.fetcher

    async def build(
        self,
        name: str,
        range_spec: Optional[str] = None,
        options: TreeOptions = TreeOptions(),
    ) -> VersionNode:
        """
        Resolve ``name`` at ``range_spec`` and, depth permitting, all of its
        dependencies.

        A range that is not valid semver (a URL, a path, a git spec or an
        explicit tag name) is returned as an opaque ``{name, version: range}``
        leaf without touching the registry.
        """
        if range_spec and not is_valid_range(range_spec):
            get_builder_logger().debug("literal_passthrough", package_name=name, requested=range_spec)
            return VersionNode(name=name, version=range_spec)

        effective_range = range_spec or DEFAULT_RANGE
        try:
            return await self._build_resolved(name, effective_range, options)
        except VersionTreeError as e:
            raise e.within(f"{name}#{effective_range}") from e

    async def _build_resolved(self, name: str, range_spec: str, options: TreeOptions) -> VersionNode:
        metadata = await self.fetcher.fetch(name)
        record = resolve_version(metadata, range_spec)

        key = CacheKey(name, record.version)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        # Reserve before expanding so a cycle back to this identity gets this node.
        node = VersionNode(name=name, version=record.version, state=NodeState.RESERVED)
        mark = len(self._added)
        self.cache.add(key, node)
        self._added.append(key)

        try:
            if not options.depth_exhausted:
                requests = list(record.dependencies.items())
                if not options.production:
                    requests.extend(record.dev_dependencies.items())

                children = await self._expand(requests, options.for_child())
                if children:
                    node.deps = children
        except BaseException:
            # Everything cached since this reservation may point back at it.
            self._discard_since(mark)
            raise

        node.state = NodeState.POPULATED
        return node

    def _discard_since(self, mark: int) -> None:
        for key in self._added[mark:]:
            self.cache.discard(key)
        del self._added[mark:]

    async def _expand(
        self, requests: List[Tuple[str, str]], child_options: TreeOptions
    ) -> List[VersionNode]:
        return await gather_fail_fast(
            self.build(dep_name, dep_range, child_options) for dep_name, dep_range in requests
        )

    async def build_from_manifest(self, manifest_path: str, options: TreeOptions = TreeOptions()) -> VersionNode:
        """
        Build a tree rooted at a local manifest.

        The manifest's own name and version are used verbatim; only its
        dependencies are resolved against the registry. The root always
        carries a ``deps`` list, empty when nothing was expanded.
        """
        manifest = load_manifest(manifest_path)
        root = VersionNode(name=manifest.name, version=manifest.version, deps=[])

        if options.depth_exhausted:
            return root

        requests = list(manifest.dependencies.items())
        if not options.production:
            requests.extend(manifest.dev_dependencies.items())

        root.deps = await self._expand(requests, options.for_child())
        return root


def _validate_options(production: Any, depth: Any) -> TreeOptions:
    if not isinstance(production, bool):
        raise InputError("`production` should be a boolean")
    if depth is not None and (isinstance(depth, bool) or not isinstance(depth, int)):
        raise InputError("`depth` should be an integer or None")
    return TreeOptions(production=production, depth=depth)


async def _run_build(root_label: str, context: Optional[ResolutionContext], operation) -> VersionNode:
    build_id = uuid.uuid4().hex[:12]
    start_time = time.monotonic()
    log_build_start(build_id, root_label)

    try:
        if context is not None:
            result = await operation(TreeBuilder(context))
            active = context
        else:
            async with ResolutionContext() as active:
                result = await operation(TreeBuilder(active))
        log_build_complete(
            build_id,
            int((time.monotonic() - start_time) * 1000),
            fetches=len(active.fetcher),
            nodes=len(active.cache),
        )
        return result
    except VersionTreeError as e:
        get_builder_logger().warning("tree_build_failed", error=str(e))
        raise
    finally:
        clear_build_context()


async def build_version_tree(
    name: str,
    range_spec: Optional[str] = None,
    *,
    production: bool = False,
    depth: Optional[int] = None,
    context: Optional[ResolutionContext] = None,
) -> VersionNode:
    """
    Build the dependency version tree of a registry package.

    Args:
        name: Package name
        range_spec: Version, semver range or literal specifier; defaults to "latest"
        production: Skip devDependencies of the root package
        depth: Levels of dependencies to expand; None for unbounded
        context: Resolution context to share caches across builds

    Raises:
        InputError: Invalid arguments
        FetchError: Registry metadata could not be fetched
        ResolutionError: No published version satisfies a requested range
    """
    if not isinstance(name, str) or not name.strip():
        raise InputError("`name` param should be a non-empty string")
    if range_spec is not None and not isinstance(range_spec, str):
        raise InputError("`range_spec` param should be a string")
    options = _validate_options(production, depth)

    return await _run_build(
        name,
        context,
        lambda builder: builder.build(name.strip(), range_spec, options),
    )


async def build_version_tree_from_manifest(
    manifest_path: str,
    *,
    production: bool = False,
    depth: Optional[int] = None,
    context: Optional[ResolutionContext] = None,
) -> VersionNode:
    """
    Build the version tree of a local package from its manifest file.

    Raises:
        ManifestError: The manifest cannot be loaded
        FetchError: Registry metadata could not be fetched
        ResolutionError: No published version satisfies a requested range
    """
    options = _validate_options(production, depth)

    return await _run_build(
        str(manifest_path),
        context,
        lambda builder: builder.build_from_manifest(manifest_path, options),
    )


build_version_tree.from_manifest = build_version_tree_from_manifest
