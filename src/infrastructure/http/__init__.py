"""HTTP client infrastructure."""
from infrastructure.http.client import (
    HttpError,
    HttpResponseData,
    NotFoundError,
    fetch,
    fetch_json,
    make_http_session,
    resolve_cache_dir,
)
from infrastructure.http.lookup import LookupClient, get_env_lookup_url

__all__ = [
    'HttpError',
    'HttpResponseData',
    'LookupClient',
    'NotFoundError',
    'fetch',
    'fetch_json',
    'get_env_lookup_url',
    'make_http_session',
    'resolve_cache_dir',
]
