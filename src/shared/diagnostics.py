"""
Diagnostic utilities.

Logging setup plus process memory and index cache usage reporting.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import psutil

if TYPE_CHECKING:
    from tiles.lru import LRUCache

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: str | Path | None = None) -> None:
    """Configure root logging to stdout and, optionally, a UTF-8 log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(path), encoding='utf-8'))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def get_memory_info() -> dict[str, Any]:
    """Get process and system memory usage."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()

        return {
            'process_rss_mb': round(memory_info.rss / 1024 / 1024, 2),
            'process_vms_mb': round(memory_info.vms / 1024 / 1024, 2),
            'system_available_mb': round(system_memory.available / 1024 / 1024, 2),
            'system_used_percent': system_memory.percent,
        }
    except (psutil.Error, OSError) as e:
        return {'error': f'Failed to get memory info: {e}'}


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )


def get_cache_stats(cache: LRUCache[Any, Any]) -> dict[str, Any]:
    size = cache.get_size()
    capacity = cache.get_capacity()
    return {
        'entries': len(cache),
        'size_bytes': size,
        'capacity_bytes': capacity,
        'used_percent': round(100.0 * size / capacity, 1) if capacity else 0.0,
    }


def log_cache_stats(cache: LRUCache[Any, Any], label: str = '') -> None:
    stats = get_cache_stats(cache)
    context_label = f' ({label})' if label else ''
    logger.info(
        'Index cache%s: %d entries, %d/%d bytes (%s%%)',
        context_label,
        stats['entries'],
        stats['size_bytes'],
        stats['capacity_bytes'],
        stats['used_percent'],
    )
