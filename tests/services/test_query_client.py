"""Tests for QueryClient."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from domain.hrn import HRN
from services.query_client import QueryClient
from shared.constants import LayerType

CATALOG = HRN.from_string('hrn:here:data:::test-catalog')
QUERY_BASE = 'https://query.example.com/query/v1/catalogs/test-catalog'


@pytest.fixture
def lookup():
    lk = MagicMock()
    lk.get_base_url = AsyncMock(return_value=QUERY_BASE)
    return lk


class TestQueryClient:
    """Tests for quad-tree index requests."""

    @pytest.mark.asyncio
    async def test_versioned_url(self, lookup, index_payload):
        """Versioned layers include the version path segment."""
        session = MagicMock()
        client = QueryClient(
            session, lookup, CATALOG, get_token=AsyncMock(return_value='tok'), retries=2
        )
        with patch(
            'services.query_client.fetch_json', new=AsyncMock(return_value=index_payload)
        ) as fj:
            result = await client.fetch_quad_tree_index('layer', '92259', 4, 42)

        assert result == index_payload
        lookup.get_base_url.assert_awaited_once_with(CATALOG, 'query', 'v1')
        fj.assert_awaited_once_with(
            session,
            f'{QUERY_BASE}/layers/layer/versions/42/quadkeys/92259/depths/4',
            headers={'Authorization': 'Bearer tok'},
            retries=2,
        )

    @pytest.mark.asyncio
    async def test_volatile_url(self, lookup):
        """Volatile layers have no version segment."""
        client = QueryClient(MagicMock(), lookup, CATALOG, layer_type=LayerType.VOLATILE)
        with patch(
            'services.query_client.fetch_json', new=AsyncMock(return_value={})
        ) as fj:
            await client.fetch_quad_tree_index('weather', '1', 2)
        assert fj.await_args.args[1] == f'{QUERY_BASE}/layers/weather/quadkeys/1/depths/2'
        assert fj.await_args.kwargs['headers'] == {}

    @pytest.mark.asyncio
    async def test_no_content_is_empty_dict(self, lookup):
        """204 answers become an empty fragment."""
        client = QueryClient(MagicMock(), lookup, CATALOG, layer_type='volatile')
        with patch('services.query_client.fetch_json', new=AsyncMock(return_value=None)):
            assert await client.fetch_quad_tree_index('weather', '1', 4) == {}

    @pytest.mark.asyncio
    async def test_versioned_requires_version(self, lookup):
        """A versioned query without version is rejected."""
        client = QueryClient(MagicMock(), lookup, CATALOG)
        with patch('services.query_client.fetch_json', new=AsyncMock()) as fj:
            with pytest.raises(ValueError, match='Version is required'):
                await client.fetch_quad_tree_index('layer', '1', 4)
        fj.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(('layer_id', 'depth'), [('', 4), ('layer', 5), ('layer', -1)])
    async def test_invalid_arguments(self, lookup, layer_id, depth):
        """Empty layer id and out-of-range depth are rejected before any request."""
        client = QueryClient(MagicMock(), lookup, CATALOG)
        with pytest.raises(ValueError):
            await client.fetch_quad_tree_index(layer_id, '1', depth, 1)
        lookup.get_base_url.assert_not_awaited()
