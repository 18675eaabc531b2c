"""Tile index resolution and fetching.

This module provides:
- LRUCache: byte-size bounded in-memory LRU cache
- QuadTreeIndexResolver: tile -> data handle resolution over cached index fragments
- TileFetcher: concurrent tile fetching with bounded parallelism
"""

from tiles.fetcher import TileFetcher, stream_tiles
from tiles.index import QuadTreeIndexResolver, QuadTreeIndexSource, parse_index
from tiles.lru import CacheCapacityError, LRUCache, estimate_data_size

__all__ = [
    'CacheCapacityError',
    'LRUCache',
    'QuadTreeIndexResolver',
    'QuadTreeIndexSource',
    'TileFetcher',
    'estimate_data_size',
    'parse_index',
    'stream_tiles',
]
