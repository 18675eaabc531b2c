from enum import Enum

# Максимальный уровень quadkey: код Мортона уровня 26 занимает 53 бита
MAX_QUADKEY_LEVEL = 26

# Глубина фрагмента индекса quad-tree, которую поддерживает сервис запросов
INDEX_DEPTH = 4

# Строковое представление корневого тайла
ROOT_QUADKEY_STRING = '-'

# Ёмкость кэша фрагментов индекса по умолчанию (МБ на один клиент слоя)
INDEX_CACHE_CAPACITY_MB = 2.0

# Байт в мегабайте (ёмкость кэша задаётся в МБ, хранится в байтах)
BYTES_IN_MB = 1024 * 1024

# Оценочные размеры примитивов для расчёта занимаемой кэшем памяти
BYTES_IN_NUMBER = 8
BYTES_IN_BOOLEAN = 4
BYTES_PER_CHAR = 2

# Накладные расходы одной записи IndexMap (ключ + ссылка на строку)
INDEX_ENTRY_OVERHEAD_BYTES = 16

# Окружения сервиса поиска (lookup) и их базовые URL
LOOKUP_URLS = {
    'here': 'https://api-lookup.data.api.platform.here.com/lookup/v1',
    'here-dev': 'https://api-lookup.data.api.platform.in.here.com/lookup/v1',
    'here-cn': 'https://api-lookup.data.api.platform.hereolp.cn/lookup/v1',
    'here-cn-dev': 'https://api-lookup.data.api.platform.in.hereolp.cn/lookup/v1',
    'local': 'http://localhost:31005/lookup/v1',
}
DEFAULT_ENVIRONMENT = 'here'

# Версии API сервисов платформы
QUERY_API_VERSION = 'v1'
BLOB_API_VERSION = 'v1'
METADATA_API_VERSION = 'v1'

# Параметры HTTP
HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_5XX_MIN = 500
HTTP_5XX_MAX = 600

HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_RETRIES_DEFAULT = 4
HTTP_BACKOFF_FACTOR = 1.6

# Кэш HTTP-ответов (блобы неизменяемы по data handle)
HTTP_CACHE_ENABLED = False
HTTP_CACHE_DIR = '.cache/blobs'
HTTP_CACHE_EXPIRE_HOURS = 168
HTTP_CACHE_FILENAME = 'http_cache.sqlite'

# Максимальное число параллельных загрузок блобов
DOWNLOAD_CONCURRENCY = 8

# Как часто логировать потребление памяти при пакетной загрузке тайлов
LOG_MEMORY_EVERY_TILES = 50

# Длина очереди потоковой загрузки тайлов
STREAM_MAX_QUEUE = 64


class LayerType(str, Enum):
    """Тип слоя каталога."""

    VERSIONED = 'versioned'
    VOLATILE = 'volatile'


def blob_api_for(layer_type: LayerType | str) -> str:
    """Имя API блобов для типа слоя (для lookup)."""
    lt = LayerType(layer_type)
    return 'blob' if lt == LayerType.VERSIONED else 'volatile-blob'
