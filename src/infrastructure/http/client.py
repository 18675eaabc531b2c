from __future__ import annotations

import asyncio
import json
import logging
import os
import ssl
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import aiohttp
import certifi
from aiohttp_client_cache import CachedSession, SQLiteBackend

from shared.constants import (
    HTTP_5XX_MAX,
    HTTP_5XX_MIN,
    HTTP_BACKOFF_FACTOR,
    HTTP_CACHE_DIR,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_FILENAME,
    HTTP_FORBIDDEN,
    HTTP_NO_CONTENT,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
)

logger = logging.getLogger(__name__)


class HttpError(RuntimeError):
    """Non-successful HTTP answer or exhausted retries."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(HttpError):
    """HTTP 404."""


@dataclass(frozen=True)
class HttpResponseData:
    status: int
    body: bytes

    @property
    def is_empty(self) -> bool:
        return self.status == HTTP_NO_CONTENT


def resolve_cache_dir() -> Path:
    raw_dir = Path(HTTP_CACHE_DIR)
    if raw_dir.is_absolute():
        return raw_dir

    local = os.getenv('LOCALAPPDATA')
    if local:
        return (Path(local) / 'tilestore' / raw_dir).resolve()
    # Fallback: user's home directory
    return (Path.home() / '.tilestore_cache' / 'blobs').resolve()


def make_http_session(
    cache_dir: Path | None = None,
    *,
    expire_hours: int = HTTP_CACHE_EXPIRE_HOURS,
) -> aiohttp.ClientSession:
    """Create an aiohttp session; with ``cache_dir`` responses are cached in SQLite."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)

    if cache_dir is None:
        return aiohttp.ClientSession(connector=connector)

    cache_dir.mkdir(parents=True, exist_ok=True)
    cache_path = cache_dir / HTTP_CACHE_FILENAME
    expire_td = timedelta(hours=max(0, int(expire_hours)))
    backend = SQLiteBackend(str(cache_path), expire_after=expire_td)
    logger.info('HTTP response cache at %s (expire %s)', cache_path, expire_td)
    return CachedSession(cache=backend, connector=connector, expire_after=expire_td)


def _strip_query(url: str) -> str:
    return url.split('?', 1)[0]


def _is_retryable(status: int) -> bool:
    return status == HTTP_TOO_MANY_REQUESTS or HTTP_5XX_MIN <= status < HTTP_5XX_MAX


async def fetch(
    client: aiohttp.ClientSession,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout: float = HTTP_TIMEOUT_DEFAULT,
    retries: int = HTTP_RETRIES_DEFAULT,
    backoff: float = HTTP_BACKOFF_FACTOR,
) -> HttpResponseData:
    """
    GET ``url`` and return status and body.

    - 200 and 204 are returned (204 with an empty body).
    - 401/403/404 and other 4xx raise ``HttpError`` at once (404 as ``NotFoundError``).
    - 429/5xx and connection errors (also while reading the body) are retried
      with ``backoff ** attempt`` delay.
    - At least one attempt is made whatever ``retries`` says.
    - Query strings are never logged or put into error messages.
    """
    path = _strip_query(url)
    retries = max(int(retries), 1)
    last_exc: Exception | None = None
    for attempt in range(retries):
        try:
            resp = await client.get(
                url, headers=headers, timeout=aiohttp.ClientTimeout(total=timeout)
            )
        except (TimeoutError, aiohttp.ClientError) as e:
            last_exc = e
            logger.debug('GET %s failed (attempt %d): %s', path, attempt + 1, e)
        else:
            try:
                sc = resp.status
                if sc == HTTP_OK:
                    try:
                        return HttpResponseData(sc, await resp.read())
                    except (TimeoutError, aiohttp.ClientError) as e:
                        last_exc = e
                        logger.debug(
                            'GET %s body read failed (attempt %d): %s', path, attempt + 1, e
                        )
                elif sc == HTTP_NO_CONTENT:
                    return HttpResponseData(sc, b'')
                elif sc == HTTP_NOT_FOUND:
                    msg = f'Resource not found (404) path={path}'
                    raise NotFoundError(sc, msg)
                elif sc in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
                    msg = f'Access denied (HTTP {sc}). Check the token and permissions. path={path}'
                    raise HttpError(sc, msg)
                elif not _is_retryable(sc):
                    msg = f'Unexpected HTTP {sc} path={path}'
                    raise HttpError(sc, msg)
                else:
                    last_exc = HttpError(sc, f'HTTP {sc} path={path}')
                    logger.debug('GET %s answered %d (attempt %d)', path, sc, attempt + 1)
            finally:
                resp.release()
        if attempt + 1 < retries:
            await asyncio.sleep(backoff**attempt)

    status = last_exc.status if isinstance(last_exc, HttpError) else None
    msg = f'Failed to GET {path} after {retries} attempts: {last_exc}'
    raise HttpError(status, msg) from last_exc


async def fetch_json(
    client: aiohttp.ClientSession,
    url: str,
    **kwargs: Any,
) -> Any:
    """``fetch`` and decode JSON; None for 204."""
    data = await fetch(client, url, **kwargs)
    if data.is_empty or not data.body:
        return None
    try:
        return json.loads(data.body)
    except ValueError as e:
        msg = f'Invalid JSON from {_strip_query(url)}: {e}'
        raise HttpError(data.status, msg) from e
