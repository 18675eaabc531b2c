"""Domain layer - models, settings profiles and resource names."""
from domain.hrn import HRN
from domain.models import (
    AggregatedDataHandle,
    ClientSettings,
    IndexMap,
    ParentQuad,
    QuadTreeIndex,
    SubQuad,
    TileResult,
    index_map_size,
)
from domain.profiles import load_settings, save_settings

__all__ = [
    'HRN',
    'AggregatedDataHandle',
    'ClientSettings',
    'IndexMap',
    'ParentQuad',
    'QuadTreeIndex',
    'SubQuad',
    'TileResult',
    'index_map_size',
    'load_settings',
    'save_settings',
]
