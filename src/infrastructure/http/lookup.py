"""Endpoint discovery through the platform lookup service."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from infrastructure.http.client import HttpError, fetch_json
from shared.constants import DEFAULT_ENVIRONMENT, LOOKUP_URLS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import aiohttp

    from domain.hrn import HRN

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r'^(?:(?:[a-z][a-z0-9+.-]*:)?//|www\.)\S+$', re.IGNORECASE)


def get_env_lookup_url(env: str) -> str:
    """Lookup service URL for an environment name.

    URLs (with a scheme, ``//`` or a ``www.`` host) pass through unchanged;
    unknown names fall back to the default environment.
    """
    env = env.strip()
    if _URL_RE.match(env):
        return env
    if env not in LOOKUP_URLS:
        logger.warning(
            'Unknown environment %r, using %r lookup', env, DEFAULT_ENVIRONMENT
        )
        return LOOKUP_URLS[DEFAULT_ENVIRONMENT]
    return LOOKUP_URLS[env]


class LookupClient:
    """Resolve base URLs of platform APIs for a catalog.

    Answers are memoised per (hrn, api, version) for the lifetime of the client.
    """

    def __init__(
        self,
        client: aiohttp.ClientSession,
        *,
        environment: str = DEFAULT_ENVIRONMENT,
        get_token: Callable[[], Awaitable[str]] | None = None,
        **fetch_kwargs: float | int,
    ) -> None:
        self.client = client
        self.lookup_url = get_env_lookup_url(environment)
        self._get_token = get_token
        self._fetch_kwargs = fetch_kwargs
        self._base_urls: dict[tuple[str, str, str], str] = {}

    async def get_base_url(self, hrn: HRN, api: str, version: str) -> str:
        key = (str(hrn), api, version)
        cached = self._base_urls.get(key)
        if cached is not None:
            return cached

        headers = {}
        if self._get_token is not None:
            headers['Authorization'] = f'Bearer {await self._get_token()}'
        url = f'{self.lookup_url}/resources/{hrn}/apis/{api}/{version}'
        apis = await fetch_json(self.client, url, headers=headers, **self._fetch_kwargs)
        if not apis or not apis[0].get('baseURL'):
            msg = f'Lookup returned no endpoint for api={api} version={version} hrn={hrn}'
            raise HttpError(None, msg)

        base_url = apis[0]['baseURL'].rstrip('/')
        self._base_urls[key] = base_url
        logger.info('Resolved %s/%s for %s -> %s', api, version, hrn, base_url)
        return base_url
