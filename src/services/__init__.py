"""Services package - platform clients for layer data."""

from services.layer_client import LayerClient
from services.query_client import QueryClient

__all__ = [
    'LayerClient',
    'QueryClient',
]
