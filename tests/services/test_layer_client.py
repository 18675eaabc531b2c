"""Tests for LayerClient."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from domain.models import ClientSettings, TileResult
from geo.quadkey import InvalidQuadKeyError, QuadKey, add_quad_keys, from_morton
from infrastructure.http.client import HttpResponseData, NotFoundError
from services.layer_client import LayerClient
from shared.constants import LayerType

CATALOG = 'hrn:here:data:::test-catalog'
ROOT = from_morton(92259)
HANDLE_19 = 'da5c3ff8-7b1e-4a6c-9f55-1c3f2b1d8e01'


def _lookup():
    lookup = MagicMock()
    lookup.get_base_url = AsyncMock(
        side_effect=lambda hrn, api, version: f'https://{api}.example.com/{version}'
    )
    return lookup


def _layer_client(query, **kwargs):
    kwargs.setdefault('version', 42)
    return LayerClient(
        CATALOG,
        'layer',
        get_token=AsyncMock(return_value='tok'),
        client=MagicMock(),
        lookup=kwargs.pop('lookup', _lookup()),
        query=query,
        **kwargs,
    )


class TestLayerClientTiles:
    """Tests for tile and blob access."""

    @pytest.mark.asyncio
    async def test_get_tile(self, make_source, index_payload):
        """Tile payload is downloaded through the blob API."""
        query = make_source(index_payload)
        lc = _layer_client(query)
        await lc.get_index(ROOT)
        tile = add_quad_keys(ROOT, from_morton(19))

        with patch(
            'services.layer_client.fetch',
            new=AsyncMock(return_value=HttpResponseData(200, b'tile-bytes')),
        ) as fetch:
            assert await lc.get_tile(tile) == b'tile-bytes'

        lc.lookup.get_base_url.assert_awaited_with(lc.catalog_hrn, 'blob', 'v1')
        assert fetch.await_args.args[1] == f'https://blob.example.com/v1/layers/layer/data/{HANDLE_19}'
        assert fetch.await_args.kwargs['headers'] == {'Authorization': 'Bearer tok'}
        query.fetch_quad_tree_index.assert_awaited_once_with('layer', '92259', 4, 42)

    @pytest.mark.asyncio
    async def test_tile_without_handle(self, make_source):
        """Tiles missing from the index return None without a blob request."""
        lc = _layer_client(make_source({}))
        with patch('services.layer_client.fetch', new=AsyncMock()) as fetch:
            assert await lc.get_tile(QuadKey(3, 3, 5)) is None
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blob_no_content(self, make_source):
        """204 from the blob service means no payload."""
        lc = _layer_client(make_source({}))
        with patch(
            'services.layer_client.fetch',
            new=AsyncMock(return_value=HttpResponseData(204, b'')),
        ):
            assert await lc.get_data('handle') is None

    @pytest.mark.asyncio
    async def test_blob_not_found_propagates(self, make_source):
        """Missing blobs surface as NotFoundError."""
        lc = _layer_client(make_source({}))
        with patch(
            'services.layer_client.fetch',
            new=AsyncMock(side_effect=NotFoundError(404, 'Resource not found')),
        ):
            with pytest.raises(NotFoundError):
                await lc.get_data('handle')

    @pytest.mark.asyncio
    async def test_empty_handle_rejected(self, make_source):
        """Empty data handles are invalid."""
        lc = _layer_client(make_source({}))
        with pytest.raises(ValueError):
            await lc.get_data('')

    @pytest.mark.asyncio
    async def test_invalid_key_rejected_before_requests(self, make_source):
        """Invalid quadkeys fail before lookup or query calls."""
        query = make_source({})
        lc = _layer_client(query, version=None)
        with pytest.raises(InvalidQuadKeyError):
            await lc.get_tile(QuadKey(0, 9, 3))
        lc.lookup.get_base_url.assert_not_awaited()
        query.fetch_quad_tree_index.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_aggregated_tile(self, make_source, index_payload):
        """Aggregated access returns the payload of the nearest ancestor."""
        lc = _layer_client(make_source(index_payload))
        populated = add_quad_keys(ROOT, from_morton(19))
        tile = add_quad_keys(populated, QuadKey(1, 0, 2))

        with patch(
            'services.layer_client.fetch',
            new=AsyncMock(return_value=HttpResponseData(200, b'parent')),
        ):
            result = await lc.get_aggregated_tile(tile)

        assert result == TileResult(quad_key=populated, data_handle=HANDLE_19, data=b'parent')

    @pytest.mark.asyncio
    async def test_get_tiles(self, make_source, index_payload):
        """Batch access returns payloads and None for empty tiles."""
        lc = _layer_client(make_source(index_payload))
        await lc.get_index(ROOT)
        populated = add_quad_keys(ROOT, from_morton(19))
        empty = add_quad_keys(ROOT, QuadKey(0, 0, 2))
        progress = AsyncMock()

        with patch(
            'services.layer_client.fetch',
            new=AsyncMock(return_value=HttpResponseData(200, b'data')),
        ) as fetch:
            result = await lc.get_tiles([populated, empty], on_progress=progress)

        assert result == {populated: b'data', empty: None}
        assert fetch.await_count == 1
        assert progress.await_count == 2

    @pytest.mark.asyncio
    async def test_aggregated_tile_none(self, make_source):
        """Nothing populated yields None."""
        lc = _layer_client(make_source({}))
        assert await lc.get_aggregated_tile(QuadKey(1, 1, 2)) is None


class TestLayerClientVersions:
    """Tests for version handling."""

    @pytest.mark.asyncio
    async def test_latest_version_resolved_once(self, make_source):
        """Unpinned versioned layers ask the metadata service once."""
        query = make_source({})
        lc = _layer_client(query, version=None)

        with patch(
            'services.layer_client.fetch_json',
            new=AsyncMock(return_value={'version': 7}),
        ) as fj:
            await lc.get_data_handle(QuadKey(1, 1, 2))
            await lc.get_data_handle(QuadKey(1, 1, 2))

        fj.assert_awaited_once()
        assert fj.await_args.args[1] == (
            'https://metadata.example.com/v1/versions/latest?startVersion=-1'
        )
        assert lc.resolver.version == 7
        query.fetch_quad_tree_index.assert_awaited_once_with('layer', '1', 4, 7)

    @pytest.mark.asyncio
    async def test_missing_latest_version(self, make_source):
        """A metadata answer without version is an error."""
        lc = _layer_client(make_source({}), version=None)
        with patch('services.layer_client.fetch_json', new=AsyncMock(return_value={})):
            with pytest.raises(RuntimeError, match='latest version'):
                await lc.get_version()

    @pytest.mark.asyncio
    async def test_volatile_layer(self, make_source):
        """Volatile layers ignore versions and use the volatile blob API."""
        query = make_source({'subQuads': [{'subQuadKey': '1', 'dataHandle': 'h'}]})
        lc = _layer_client(query, layer_type=LayerType.VOLATILE, version=5)

        assert await lc.get_version() is None
        with patch(
            'services.layer_client.fetch',
            new=AsyncMock(return_value=HttpResponseData(200, b'v')),
        ) as fetch:
            assert await lc.get_tile(QuadKey.root()) == b'v'

        query.fetch_quad_tree_index.assert_awaited_once_with('layer', '1', 4, None)
        assert fetch.await_args.args[1].startswith('https://volatile-blob.example.com/v1/')


class TestLayerClientLifecycle:
    """Tests for construction, cache control and closing."""

    def test_settings_flow_into_resolver(self, make_source):
        """Cache capacity comes from ClientSettings."""
        lc = _layer_client(make_source({}), settings=ClientSettings(cache_capacity_mb=1))
        assert lc.resolver.cache.get_capacity() == 1024 * 1024

    @pytest.mark.asyncio
    async def test_set_cache_capacity(self, make_source, index_payload):
        """Capacity changes are applied to the index cache."""
        lc = _layer_client(make_source(index_payload))
        await lc.get_index(ROOT)
        assert lc.cache_size > 0
        lc.set_cache_capacity(0)
        assert lc.cache_size == 0

    def test_log_diagnostics(self, make_source, caplog):
        """Diagnostics report cache usage."""
        lc = _layer_client(make_source({}))
        with caplog.at_level('INFO', logger='shared.diagnostics'):
            lc.log_diagnostics()
        assert 'test-catalog/layer' in caplog.text

    @pytest.mark.asyncio
    async def test_owned_session_closed(self):
        """A session created by the client is closed on exit."""
        async with LayerClient(
            CATALOG, 'layer', get_token=AsyncMock(return_value='tok')
        ) as lc:
            session = lc.client
            assert not session.closed
        assert session.closed

    @pytest.mark.asyncio
    async def test_injected_session_left_open(self, make_source):
        """Injected sessions belong to the caller."""
        lc = _layer_client(make_source({}))
        lc.client.close = AsyncMock()
        await lc.close()
        lc.client.close.assert_not_awaited()
