from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.constants import (
    BYTES_IN_NUMBER,
    BYTES_PER_CHAR,
    DEFAULT_ENVIRONMENT,
    DOWNLOAD_CONCURRENCY,
    HTTP_BACKOFF_FACTOR,
    HTTP_CACHE_ENABLED,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    INDEX_CACHE_CAPACITY_MB,
    INDEX_ENTRY_OVERHEAD_BYTES,
)

if TYPE_CHECKING:
    from geo.quadkey import QuadKey

# Morton code -> data handle, flattened view of one quad-tree index fragment
IndexMap = dict[int, str]


def index_map_size(index: IndexMap) -> int:
    """Deterministic byte estimate of an IndexMap for the LRU cache."""
    return sum(
        INDEX_ENTRY_OVERHEAD_BYTES + BYTES_IN_NUMBER + len(handle) * BYTES_PER_CHAR
        for handle in index.values()
    )


class SubQuad(BaseModel):
    """Populated descendant of a fragment root, keyed relative to the root."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    sub_quad_key: str = Field(alias='subQuadKey')
    data_handle: str = Field(alias='dataHandle')
    version: int | None = None


class ParentQuad(BaseModel):
    """Populated ancestor of a fragment root, keyed by absolute Morton code."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    partition: str
    data_handle: str = Field(alias='dataHandle')
    version: int | None = None


class QuadTreeIndex(BaseModel):
    """Query service answer for one quad-tree index fragment.

    Only the fields needed for resolution are modelled; unknown fields are
    ignored and missing lists stay ``None``.
    """

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    sub_quads: list[SubQuad] | None = Field(default=None, alias='subQuads')
    parent_quads: list[ParentQuad] | None = Field(default=None, alias='parentQuads')


@dataclass(frozen=True)
class AggregatedDataHandle:
    """Data handle of a tile or of its nearest populated ancestor."""

    data_handle: str
    quad_key: QuadKey


@dataclass(frozen=True)
class TileResult:
    """Downloaded tile payload together with the tile that actually held it."""

    quad_key: QuadKey
    data_handle: str
    data: bytes | None


class ClientSettings(BaseModel):
    """Настройки клиента: окружение, кэш индекса и параметры HTTP."""

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из TOML
    }

    # Имя окружения (here, here-dev, ...) либо явный URL сервиса lookup
    environment: str = DEFAULT_ENVIRONMENT

    # Ёмкость кэша фрагментов индекса одного клиента слоя (МБ)
    cache_capacity_mb: float = INDEX_CACHE_CAPACITY_MB

    # HTTP: общий таймаут, число попыток и основание экспоненциальной задержки
    http_timeout_s: float = HTTP_TIMEOUT_DEFAULT
    http_retries: int = HTTP_RETRIES_DEFAULT
    http_backoff: float = HTTP_BACKOFF_FACTOR

    # Параллельные загрузки блобов в TileFetcher
    download_concurrency: int = DOWNLOAD_CONCURRENCY

    # Кэш HTTP-ответов на диске (aiohttp-client-cache)
    http_cache_enabled: bool = HTTP_CACHE_ENABLED
    http_cache_dir: str | None = None
    http_cache_expire_hours: int = HTTP_CACHE_EXPIRE_HOURS

    @field_validator('cache_capacity_mb', 'http_timeout_s')
    @classmethod
    def validate_positive(cls, v: float | str) -> float:
        fv = float(v)
        if fv <= 0:
            msg = 'Значение должно быть больше нуля'
            raise ValueError(msg)
        return fv

    @field_validator('http_retries', 'download_concurrency')
    @classmethod
    def validate_at_least_one(cls, v: int | str) -> int:
        iv = int(v)
        return max(iv, 1)

    @field_validator('http_backoff')
    @classmethod
    def validate_backoff(cls, v: float | str) -> float:
        fv = float(v)
        # Основание меньше 1 превращает задержку в убывающую
        return max(fv, 1.0)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = str(v).strip()
        if not v:
            msg = 'Окружение не может быть пустым'
            raise ValueError(msg)
        return v
