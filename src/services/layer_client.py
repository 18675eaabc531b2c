"""
Layer client: tile and blob access for one catalog layer.

Combines endpoint lookup, the query service, the quad-tree index resolver and
the blob service. Tokens come from an injected coroutine function.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from domain.hrn import HRN
from domain.models import ClientSettings, IndexMap, TileResult
from geo.quadkey import QuadKey, validate_quad_key
from infrastructure.http.client import (
    fetch,
    fetch_json,
    make_http_session,
    resolve_cache_dir,
)
from infrastructure.http.lookup import LookupClient
from services.query_client import QueryClient
from shared.constants import (
    BLOB_API_VERSION,
    METADATA_API_VERSION,
    LayerType,
    blob_api_for,
)
from shared.diagnostics import log_cache_stats
from tiles.fetcher import TileFetcher
from tiles.index import QuadTreeIndexResolver, QuadTreeIndexSource

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from types import TracebackType

    import aiohttp

logger = logging.getLogger(__name__)


class LayerClient:
    """Read tiles of a versioned or volatile layer.

    Usage:
        async with LayerClient('hrn:here:data:::catalog', 'layer', get_token=tok) as lc:
            payload = await lc.get_tile(QuadKey(row=1, column=2, level=3))
    """

    def __init__(
        self,
        catalog_hrn: HRN | str,
        layer_id: str,
        *,
        get_token: Callable[[], Awaitable[str]],
        layer_type: LayerType | str = LayerType.VERSIONED,
        version: int | None = None,
        settings: ClientSettings | None = None,
        client: aiohttp.ClientSession | None = None,
        lookup: LookupClient | None = None,
        query: QuadTreeIndexSource | None = None,
    ) -> None:
        self.catalog_hrn = (
            catalog_hrn if isinstance(catalog_hrn, HRN) else HRN.from_string(catalog_hrn)
        )
        self.layer_id = layer_id
        self.layer_type = LayerType(layer_type)
        self.settings = settings or ClientSettings()
        self._get_token = get_token

        self._owns_client = client is None
        if client is None:
            cache_dir = None
            if self.settings.http_cache_enabled:
                cache_dir = (
                    Path(self.settings.http_cache_dir)
                    if self.settings.http_cache_dir
                    else resolve_cache_dir()
                )
            client = make_http_session(
                cache_dir, expire_hours=self.settings.http_cache_expire_hours
            )
        self.client = client

        self._fetch_kwargs = {
            'timeout': self.settings.http_timeout_s,
            'retries': self.settings.http_retries,
            'backoff': self.settings.http_backoff,
        }
        self.lookup = lookup or LookupClient(
            self.client,
            environment=self.settings.environment,
            get_token=get_token,
            **self._fetch_kwargs,
        )
        self.query = query or QueryClient(
            self.client,
            self.lookup,
            self.catalog_hrn,
            layer_type=self.layer_type,
            get_token=get_token,
            **self._fetch_kwargs,
        )

        # Volatile layers are never versioned
        self._version = version if self.layer_type == LayerType.VERSIONED else None
        self.resolver = QuadTreeIndexResolver(
            self.query,
            layer_id,
            version=self._version,
            capacity_mb=self.settings.cache_capacity_mb,
        )

    async def __aenter__(self) -> LayerClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_client and not self.client.closed:
            await self.client.close()

    @property
    def cache_size(self) -> int:
        return self.resolver.cache.get_size()

    def set_cache_capacity(self, capacity_mb: float) -> None:
        self.resolver.set_capacity(capacity_mb)

    def log_diagnostics(self) -> None:
        log_cache_stats(self.resolver.cache, label=f'{self.catalog_hrn}/{self.layer_id}')

    async def _headers(self) -> dict[str, str]:
        return {'Authorization': f'Bearer {await self._get_token()}'}

    async def get_version(self) -> int | None:
        """Pinned or latest catalog version; None for volatile layers."""
        if self.layer_type != LayerType.VERSIONED:
            return None
        if self._version is None:
            base = await self.lookup.get_base_url(
                self.catalog_hrn, 'metadata', METADATA_API_VERSION
            )
            data = await fetch_json(
                self.client,
                f'{base}/versions/latest?startVersion=-1',
                headers=await self._headers(),
                **self._fetch_kwargs,
            )
            if not data or 'version' not in data:
                msg = f'Could not determine latest version of {self.catalog_hrn}'
                raise RuntimeError(msg)
            self._version = int(data['version'])
            self.resolver.version = self._version
            logger.info('Using version %d of %s', self._version, self.catalog_hrn)
        return self._version

    async def get_index(self, root: QuadKey) -> IndexMap:
        """Index fragment rooted at ``root``."""
        validate_quad_key(root)
        await self.get_version()
        return await self.resolver.get_index(root)

    async def get_data_handle(self, quad_key: QuadKey) -> str | None:
        validate_quad_key(quad_key)
        await self.get_version()
        return await self.resolver.get_data_handle(quad_key)

    async def get_data(self, data_handle: str) -> bytes | None:
        """Blob for ``data_handle``; None when the service answers 204."""
        if not data_handle:
            msg = 'Data handle must not be empty'
            raise ValueError(msg)
        base = await self.lookup.get_base_url(
            self.catalog_hrn, blob_api_for(self.layer_type), BLOB_API_VERSION
        )
        resp = await fetch(
            self.client,
            f'{base}/layers/{self.layer_id}/data/{data_handle}',
            headers=await self._headers(),
            **self._fetch_kwargs,
        )
        if resp.is_empty:
            return None
        return resp.body

    async def get_tile(self, quad_key: QuadKey) -> bytes | None:
        """Payload stored exactly at ``quad_key``; None if the tile has no data."""
        handle = await self.get_data_handle(quad_key)
        if handle is None:
            logger.debug('No data handle for tile %s in layer %s', quad_key, self.layer_id)
            return None
        return await self.get_data(handle)

    async def get_tiles(
        self,
        quad_keys: Iterable[QuadKey],
        *,
        on_progress: Callable[[int], Awaitable[None]] | None = None,
    ) -> dict[QuadKey, bytes | None]:
        """Fetch several tiles with ``settings.download_concurrency`` parallel requests."""
        fetcher = TileFetcher(self.get_tile, concurrency=self.settings.download_concurrency)
        return await fetcher.fetch_many(quad_keys, on_progress=on_progress)

    async def get_aggregated_tile(self, quad_key: QuadKey) -> TileResult | None:
        """Payload of ``quad_key`` or of its nearest populated ancestor."""
        validate_quad_key(quad_key)
        await self.get_version()
        found = await self.resolver.get_aggregated_data_handle(quad_key)
        if found is None:
            return None
        data = await self.get_data(found.data_handle)
        return TileResult(quad_key=found.quad_key, data_handle=found.data_handle, data=data)
