"""
Resolution cache for built tree nodes.

Entries are keyed by resolved identity (``name#version``) and never
evicted. The tree builder reserves a node here before expanding its
dependencies, which is what terminates circular dependency graphs. A
reservation whose expansion fails is discarded again.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from .models import VersionNode
from .structured_logging import get_builder_logger


@dataclass(frozen=True)
class CacheKey:
    """Identity of a resolved node."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}#{self.version}"


class CacheStats:
    """Cache hit/miss counters."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.stores = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    def get_hit_rate(self) -> float:
        """Hit rate as a percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.hits / self.total_requests) * 100.0

    def get_stats(self) -> Dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stores": self.stores,
            "total_requests": self.total_requests,
            "hit_rate_percent": self.get_hit_rate(),
        }


class ResolutionCache:
    """
    Memoizes tree nodes by identity.

    No locking: all access happens on a single event loop and no ``await``
    separates a lookup from the matching insert in the tree builder.
    """

    def __init__(self):
        self._storage: Dict[CacheKey, VersionNode] = {}
        self.stats = CacheStats()

    def get(self, key: CacheKey) -> Optional[VersionNode]:
        node = self._storage.get(key)
        if node is None:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
            get_builder_logger().debug("node_cache_hit", key=str(key), node_state=node.state.value)
        return node

    def add(self, key: CacheKey, node: VersionNode) -> None:
        self._storage[key] = node
        self.stats.stores += 1
        get_builder_logger().debug("node_cached", key=str(key), node_state=node.state.value)

    def discard(self, key: CacheKey) -> None:
        """Drop an entry if present."""
        if self._storage.pop(key, None) is not None:
            get_builder_logger().debug("node_discarded", key=str(key))

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._storage

    def __len__(self) -> int:
        return len(self._storage)

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(self._storage)
