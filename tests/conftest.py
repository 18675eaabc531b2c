"""Pytest configuration and fixtures for tilestore tests."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


@pytest.fixture
def index_payload():
    """Query service answer with two populated sub-quads."""
    return {
        'subQuads': [
            {'subQuadKey': '19', 'dataHandle': 'da5c3ff8-7b1e-4a6c-9f55-1c3f2b1d8e01'},
            {'subQuadKey': '79', 'dataHandle': 'edac1a4e-6b0d-4c3a-8f39-0e2a7f9c4d12'},
        ],
    }


@pytest.fixture
def make_source():
    """Factory for a mocked query backend returning a fixed payload."""

    def _make(payload):
        source = MagicMock()
        source.fetch_quad_tree_index = AsyncMock(return_value=payload)
        return source

    return _make
