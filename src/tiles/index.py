"""Quad-tree index resolution with an LRU cache of index fragments.

A fragment is fetched for a root tile and covers ``INDEX_DEPTH`` levels below
it. Each fragment is flattened into an ``IndexMap`` (absolute Morton code ->
data handle) and cached under ``'<layer_id>/<root morton code>'``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from domain.models import (
    AggregatedDataHandle,
    IndexMap,
    QuadTreeIndex,
    index_map_size,
)
from geo.quadkey import (
    QuadKey,
    add_quad_keys,
    compute_parent_key,
    from_morton,
    to_morton,
    validate_quad_key,
)
from shared.constants import INDEX_CACHE_CAPACITY_MB, INDEX_DEPTH
from tiles.lru import CacheCapacityError, LRUCache

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


class QuadTreeIndexSource(Protocol):
    """Query backend able to return one quad-tree index fragment."""

    async def fetch_quad_tree_index(
        self,
        layer_id: str,
        quad_key: str,
        depth: int,
        version: int | None = None,
    ) -> Mapping[str, Any] | QuadTreeIndex: ...


def parse_index(root: QuadKey, raw: Mapping[str, Any] | QuadTreeIndex | None) -> IndexMap:
    """Flatten a query service answer into an IndexMap.

    Sub-quad keys are Morton codes relative to ``root``; parent-quad
    partitions are absolute Morton codes of ancestors above ``root``.
    """
    if raw is None:
        return {}
    tree = raw if isinstance(raw, QuadTreeIndex) else QuadTreeIndex.model_validate(raw)

    index: IndexMap = {}
    for sub in tree.sub_quads or ():
        absolute = add_quad_keys(root, from_morton(sub.sub_quad_key))
        index[to_morton(absolute)] = sub.data_handle
    for parent in tree.parent_quads or ():
        index[int(parent.partition)] = parent.data_handle
    return index


class QuadTreeIndexResolver:
    """Resolve tiles of one layer to data handles.

    One resolver owns one cache; it is not shared between layer clients.
    Concurrent misses for the same fragment each hit the backend; only the
    first finished download is stored.
    """

    def __init__(
        self,
        source: QuadTreeIndexSource,
        layer_id: str,
        *,
        version: int | None = None,
        capacity_mb: float = INDEX_CACHE_CAPACITY_MB,
        index_depth: int = INDEX_DEPTH,
    ) -> None:
        self.source = source
        self.layer_id = layer_id
        self.version = version
        self.index_depth = index_depth
        self.cache: LRUCache[str, IndexMap] = LRUCache(
            capacity_mb, size_function=index_map_size
        )
        logger.info(
            'Index resolver for layer %s (version=%s, depth=%d, capacity=%d bytes)',
            layer_id,
            version,
            index_depth,
            self.cache.get_capacity(),
        )

    def cache_key(self, root: QuadKey) -> str:
        return f'{self.layer_id}/{to_morton(root)}'

    def set_capacity(self, capacity_mb: float) -> None:
        self.cache.set_capacity(capacity_mb)

    async def get_data_handle(self, quad_key: QuadKey) -> str | None:
        """Data handle stored exactly at ``quad_key``, or None."""
        validate_quad_key(quad_key)
        index = await self.get_index_for(quad_key)
        return index.get(to_morton(quad_key))

    async def get_aggregated_data_handle(
        self, quad_key: QuadKey
    ) -> AggregatedDataHandle | None:
        """Data handle of ``quad_key`` or of its nearest populated ancestor."""
        validate_quad_key(quad_key)
        index = await self.get_index_for(quad_key)
        for delta in range(quad_key.level + 1):
            candidate = compute_parent_key(quad_key, delta)
            handle = index.get(to_morton(candidate))
            if handle is not None:
                return AggregatedDataHandle(data_handle=handle, quad_key=candidate)
        return None

    async def get_index(self, root: QuadKey) -> IndexMap:
        """Fragment rooted exactly at ``root`` (cached or downloaded)."""
        validate_quad_key(root)
        cached = self.cache.get(self.cache_key(root))
        if cached is not None:
            return cached
        return await self.download_index(root)

    async def get_index_for(self, quad_key: QuadKey) -> IndexMap:
        """A cached or freshly downloaded fragment covering ``quad_key``.

        Cached ancestors are probed from the coarsest (``index_depth`` levels
        up) down to the tile itself.
        """
        validate_quad_key(quad_key)
        for depth in range(self.index_depth, -1, -1):
            root = compute_parent_key(quad_key, depth)
            cached = self.cache.get(self.cache_key(root))
            if cached is not None:
                logger.debug('Index cache hit for %s at root %s', quad_key, root)
                return cached
        logger.debug('Index cache miss for %s', quad_key)
        return await self.download_index(compute_parent_key(quad_key, self.index_depth))

    async def download_index(self, root: QuadKey) -> IndexMap:
        """Fetch, parse and cache the fragment rooted at ``root``."""
        key = self.cache_key(root)
        raw = await self.source.fetch_quad_tree_index(
            self.layer_id,
            str(to_morton(root)),
            self.index_depth,
            self.version,
        )

        # Another task may have stored the same fragment while we awaited
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug('Fragment %s already cached by a concurrent download', key)
            return cached

        index = parse_index(root, raw)
        try:
            self.cache.set(key, index)
        except CacheCapacityError:
            logger.warning(
                'Fragment %s (%d entries) does not fit into the index cache; not cached',
                key,
                len(index),
            )
        logger.info(
            'Downloaded index fragment %s: %d entries, cache size %d bytes',
            key,
            len(index),
            self.cache.get_size(),
        )
        return index
