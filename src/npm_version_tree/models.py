"""
Data model for registry metadata and resolved version trees.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set

from .errors import RegistryError


@dataclass(frozen=True)
class VersionRecord:
    """A single published version of a package."""

    name: str
    version: str
    dependencies: Mapping[str, str] = field(default_factory=dict)
    dev_dependencies: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_registry(
        cls, package_name: str, version: str, data: Mapping[str, Any]
    ) -> "VersionRecord":
        """Build a record from one entry of a packument's ``versions`` map."""
        return cls(
            name=str(data.get("name") or package_name),
            version=str(data.get("version") or version),
            dependencies=_string_map(data.get("dependencies")),
            dev_dependencies=_string_map(data.get("devDependencies")),
        )


@dataclass(frozen=True)
class PackageMetadata:
    """Registry metadata for one package name."""

    name: str
    dist_tags: Mapping[str, str] = field(default_factory=dict)
    versions: Mapping[str, VersionRecord] = field(default_factory=dict)
    available_versions: List[str] = field(default_factory=list)

    @classmethod
    def from_registry(cls, package_name: str, data: Mapping[str, Any]) -> "PackageMetadata":
        """
        Map a raw packument onto metadata.

        The list of available versions is materialized from the keys of
        the ``versions`` map, in registry order.

        Raises:
            RegistryError: the document, its ``versions`` or one of their
                entries is not an object
        """
        if not isinstance(data, Mapping):
            raise RegistryError(
                f"Unexpected registry document for {package_name}: not an object",
                package_name=package_name,
            )

        raw_versions = data.get("versions") or {}
        if not isinstance(raw_versions, Mapping):
            raise RegistryError(
                f"Unexpected registry document for {package_name}: versions is not an object",
                package_name=package_name,
            )

        versions = {}
        for version, record in raw_versions.items():
            if not isinstance(record, Mapping):
                raise RegistryError(
                    f"Unexpected registry document for {package_name}: "
                    f"version {version} is not an object",
                    package_name=package_name,
                )
            versions[str(version)] = VersionRecord.from_registry(package_name, str(version), record)
        return cls(
            name=str(data.get("name") or package_name),
            dist_tags=_string_map(data.get("dist-tags")),
            versions=versions,
            available_versions=list(versions.keys()),
        )


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): str(item) for key, item in value.items()}


class NodeState(Enum):
    """Lifecycle of a tree node."""

    RESERVED = "reserved"  # cached, dependencies not yet attached
    POPULATED = "populated"


@dataclass(eq=False)
class VersionNode:
    """
    One element of the output tree.

    Nodes are shared: the resolution cache hands the same instance to every
    caller asking for the same identity, so a node must be treated as
    read-only once it has been returned. A node reached through a cycle may
    still be RESERVED when its back-reference is taken and therefore lack
    ``deps`` at that point.
    """

    name: str
    version: str
    deps: Optional[List["VersionNode"]] = None
    state: NodeState = field(default=NodeState.POPULATED, repr=False)

    @property
    def is_leaf(self) -> bool:
        return not self.deps

    def to_dict(self) -> Dict[str, Any]:
        """
        Plain-data view ``{name, version, deps?}``.

        A node that already appears on the current ancestor path is emitted
        without ``deps`` so cyclic graphs serialize finitely.
        """
        return self._to_dict(set())

    def _to_dict(self, ancestors: Set[int]) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "version": self.version}
        if self.deps is None or id(self) in ancestors:
            return result
        ancestors.add(id(self))
        try:
            result["deps"] = [dep._to_dict(ancestors) for dep in self.deps]
        finally:
            ancestors.discard(id(self))
        return result


@dataclass(frozen=True)
class TreeOptions:
    """Options for one tree build request."""

    production: bool = False
    depth: Optional[int] = None  # None means unbounded

    @property
    def depth_exhausted(self) -> bool:
        return self.depth is not None and self.depth <= 0

    def for_child(self) -> "TreeOptions":
        """Options for a dependency: always production, one level shallower."""
        return TreeOptions(
            production=True,
            depth=None if self.depth is None else self.depth - 1,
        )


@dataclass(frozen=True)
class Manifest:
    """A local package manifest."""

    name: str
    version: str
    dependencies: Mapping[str, str] = field(default_factory=dict)
    dev_dependencies: Mapping[str, str] = field(default_factory=dict)
    path: Optional[str] = None
