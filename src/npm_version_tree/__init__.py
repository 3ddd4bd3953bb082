"""
npm-version-tree: resolve the dependency version tree of an npm package.
"""

from .errors import (
    FetchError,
    InputError,
    ManifestError,
    PackageNotFoundError,
    RegistryError,
    ResolutionError,
    VersionTreeError,
)
from .main import __version__
from .models import TreeOptions, VersionNode
from .retry import RetryPolicy
from .tree_builder import (
    ResolutionContext,
    TreeBuilder,
    build_version_tree,
    build_version_tree_from_manifest,
)

__all__ = [
    "__version__",
    "build_version_tree",
    "build_version_tree_from_manifest",
    "ResolutionContext",
    "TreeBuilder",
    "TreeOptions",
    "VersionNode",
    "RetryPolicy",
    "VersionTreeError",
    "InputError",
    "ManifestError",
    "RegistryError",
    "PackageNotFoundError",
    "FetchError",
    "ResolutionError",
]
