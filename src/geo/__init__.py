"""Geo module - quad-tree tile addressing."""

from .quadkey import (
    InvalidQuadKeyError,
    QuadKey,
    add_quad_keys,
    compute_parent_key,
    from_morton,
    from_quad_key_string,
    is_valid,
    to_morton,
    to_quad_key_string,
    validate_quad_key,
)

__all__ = [
    'InvalidQuadKeyError',
    'QuadKey',
    'add_quad_keys',
    'compute_parent_key',
    'from_morton',
    'from_quad_key_string',
    'is_valid',
    'to_morton',
    'to_quad_key_string',
    'validate_quad_key',
]
