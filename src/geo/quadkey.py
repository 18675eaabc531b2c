"""Quad-tree tile addressing.

A tile is addressed by ``(row, column, level)``. Level 0 holds the single root
tile; every level splits each tile into four children, so a level has
``2**level`` rows and columns.

Two alternative encodings are supported:

- Morton code: ``4**level`` sentinel bit followed by the interleaved bits of
  column (even positions) and row (odd positions).
- Quadkey string: one base-4 digit per level, root-adjacent digit first,
  ``'-'`` for the root.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.constants import MAX_QUADKEY_LEVEL, ROOT_QUADKEY_STRING


class InvalidQuadKeyError(ValueError):
    """Raised when a quadkey lies outside the supported tiling scheme."""


@dataclass(frozen=True)
class QuadKey:
    """Address of a tile in the quad-tree."""

    row: int
    column: int
    level: int

    @classmethod
    def root(cls) -> QuadKey:
        return cls(0, 0, 0)

    def __str__(self) -> str:
        return f'{self.level}/{self.row}/{self.column}'


def to_morton(key: QuadKey) -> int:
    """Encode a quadkey as a Morton code.

    Levels above ``MAX_QUADKEY_LEVEL`` still encode (Python ints do not
    overflow) but callers must not rely on them: ``is_valid`` rejects them.
    """
    column = key.column
    row = key.row
    result = 1 << (key.level * 2)
    for i in range(key.level):
        if column & 0x1:
            result |= 1 << (2 * i)
        if row & 0x1:
            result |= 1 << (2 * i + 1)
        column >>= 1
        row >>= 1
    return result


def from_morton(code: int | str) -> QuadKey:
    """Decode a Morton code (``int`` or decimal string) into a quadkey."""
    if isinstance(code, str):
        code = int(code, 10)
    if code < 1:
        msg = f'Morton code must be positive, got {code}'
        raise ValueError(msg)

    level = 0
    row = 0
    column = 0
    while code > 1:
        mask = 1 << level
        if code & 0x1:
            column |= mask
        if code & 0x2:
            row |= mask
        level += 1
        code >>= 2
    return QuadKey(row, column, level)


def from_quad_key_string(value: str) -> QuadKey:
    """Parse a base-4 quadkey string; ``'-'`` (or empty) is the root."""
    if value in (ROOT_QUADKEY_STRING, ''):
        return QuadKey.root()

    level = len(value)
    row = 0
    column = 0
    for i in range(level):
        ch = value[level - i - 1]
        if ch not in '0123':
            msg = f'Invalid quadkey digit {ch!r} in {value!r}'
            raise ValueError(msg)
        d = int(ch)
        mask = 1 << i
        if d & 0x1:
            column |= mask
        if d & 0x2:
            row |= mask
    return QuadKey(row, column, level)


def to_quad_key_string(key: QuadKey) -> str:
    if key.level == 0:
        return ROOT_QUADKEY_STRING

    digits = []
    for i in range(key.level, 0, -1):
        mask = 1 << (i - 1)
        digit = 0
        if key.column & mask:
            digit |= 0x1
        if key.row & mask:
            digit |= 0x2
        digits.append(str(digit))
    return ''.join(digits)


def add_quad_keys(root: QuadKey, sub: QuadKey) -> QuadKey:
    """Translate ``sub`` (relative to ``root``) into an absolute quadkey."""
    return QuadKey(
        row=(root.row << sub.level) + sub.row,
        column=(root.column << sub.level) + sub.column,
        level=root.level + sub.level,
    )


def compute_parent_key(key: QuadKey, delta: int = 1) -> QuadKey:
    """Ancestor ``delta`` levels up; never goes above the root."""
    if delta < 0:
        msg = f'Parent delta must be non-negative, got {delta}'
        raise ValueError(msg)
    # Above the root every ancestor collapses into the root itself
    delta = min(delta, key.level)
    return QuadKey(
        row=key.row >> delta,
        column=key.column >> delta,
        level=key.level - delta,
    )


def is_valid(key: QuadKey) -> bool:
    if key.level < 0 or key.level > MAX_QUADKEY_LEVEL:
        return False
    dimension = 1 << key.level
    return 0 <= key.row < dimension and 0 <= key.column < dimension


def validate_quad_key(key: QuadKey) -> QuadKey:
    """Return ``key`` unchanged or raise ``InvalidQuadKeyError``."""
    if not is_valid(key):
        msg = (
            f'Invalid quadkey row={key.row} column={key.column} level={key.level}: '
            f'expected level in [0, {MAX_QUADKEY_LEVEL}] and row/column in [0, 2**level)'
        )
        raise InvalidQuadKeyError(msg)
    return key
