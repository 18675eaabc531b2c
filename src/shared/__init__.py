"""Shared utilities and helpers."""
from shared.diagnostics import (
    get_cache_stats,
    get_memory_info,
    log_cache_stats,
    log_memory_usage,
    setup_logging,
)

__all__ = [
    'get_cache_stats',
    'get_memory_info',
    'log_cache_stats',
    'log_memory_usage',
    'setup_logging',
]
