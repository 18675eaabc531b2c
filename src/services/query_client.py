"""
Client of the platform query service.

Fetches quad-tree index fragments for versioned and volatile layers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from infrastructure.http.client import fetch_json
from shared.constants import INDEX_DEPTH, QUERY_API_VERSION, LayerType

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import aiohttp

    from domain.hrn import HRN
    from infrastructure.http.lookup import LookupClient

logger = logging.getLogger(__name__)


class QueryClient:
    """Query service access for one catalog and layer type."""

    def __init__(
        self,
        client: aiohttp.ClientSession,
        lookup: LookupClient,
        catalog_hrn: HRN,
        *,
        layer_type: LayerType = LayerType.VERSIONED,
        get_token: Callable[[], Awaitable[str]] | None = None,
        **fetch_kwargs: Any,
    ) -> None:
        self.client = client
        self.lookup = lookup
        self.catalog_hrn = catalog_hrn
        self.layer_type = LayerType(layer_type)
        self._get_token = get_token
        self._fetch_kwargs = fetch_kwargs

    async def _headers(self) -> dict[str, str]:
        if self._get_token is None:
            return {}
        return {'Authorization': f'Bearer {await self._get_token()}'}

    async def fetch_quad_tree_index(
        self,
        layer_id: str,
        quad_key: str,
        depth: int,
        version: int | None = None,
    ) -> dict[str, Any]:
        """
        Загружает фрагмент индекса quad-tree.

        Args:
            layer_id: Идентификатор слоя
            quad_key: Код Мортона корня фрагмента (строкой)
            depth: Глубина фрагмента (0..INDEX_DEPTH)
            version: Версия слоя; обязательна для versioned-слоёв

        Returns:
            JSON ответа сервиса ({} если данных нет)

        """
        if not layer_id:
            msg = 'Layer id must not be empty'
            raise ValueError(msg)
        if not 0 <= depth <= INDEX_DEPTH:
            msg = f'Depth must be in [0, {INDEX_DEPTH}], got {depth}'
            raise ValueError(msg)

        base = await self.lookup.get_base_url(self.catalog_hrn, 'query', QUERY_API_VERSION)
        if self.layer_type == LayerType.VERSIONED:
            if version is None:
                msg = f'Version is required to query versioned layer {layer_id}'
                raise ValueError(msg)
            url = (
                f'{base}/layers/{layer_id}/versions/{version}'
                f'/quadkeys/{quad_key}/depths/{depth}'
            )
        else:
            url = f'{base}/layers/{layer_id}/quadkeys/{quad_key}/depths/{depth}'

        logger.debug('Fetching quad-tree index %s', url)
        data = await fetch_json(
            self.client, url, headers=await self._headers(), **self._fetch_kwargs
        )
        return data or {}
