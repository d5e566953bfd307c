from __future__ import annotations

import logging
import math
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from core.aggregation import ResultSnapshot
from core.ingestion import IngestionCoordinator, IngestionProgress, ProgressCallback, ingest_csv
from core.settings import get_settings
from core.sources import is_url

logger = logging.getLogger(__name__)

Signature = Tuple[Union[str, float, int], ...]


def get_source() -> str:
    return get_settings().CSV_SOURCE


def source_signature(source: str) -> Signature:
    """Cache key for a source: (path, mtime, size) for files, the URL otherwise."""
    if is_url(source):
        return (source,)
    path = Path(source).expanduser()
    try:
        stat = path.stat()
    except OSError:
        return (str(path),)
    return (str(path), stat.st_mtime, stat.st_size)


def build_coordinator() -> IngestionCoordinator:
    return IngestionCoordinator.from_settings(get_settings())


def load_snapshot(source: Optional[str] = None, on_progress: Optional[ProgressCallback] = None) -> ResultSnapshot:
    source = source or get_source()
    return ingest_csv(source, on_progress=on_progress, coordinator=build_coordinator())


class _IgnoredByCache:
    """Wraps an argument so every instance hashes and compares equal for lru_cache."""

    def __init__(self, value):
        self.value = value

    def __hash__(self) -> int:
        return 0

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _IgnoredByCache)


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(signature: Signature, progress_hook: _IgnoredByCache) -> Dict[str, object]:
    source = str(signature[0])
    logger.info("Loading dashboard data from %s", source)
    snapshot = load_snapshot(source, on_progress=progress_hook.value)
    return {
        "source": source,
        "snapshot": snapshot,
        "months": list(snapshot.month_keys),
        "suppliers": list(snapshot.suppliers),
    }


def load_dashboard_data(
    source: Optional[str] = None, on_progress: Optional[ProgressCallback] = None
) -> Dict[str, object]:
    """Snapshot plus option lists for ``source``, reloaded when the file changes.

    ``on_progress`` only fires when the source is actually read; a cache hit
    returns at once.
    """
    return _load_dashboard_data_cached(source_signature(source or get_source()), _IgnoredByCache(on_progress))


def clear_dashboard_cache() -> None:
    _load_dashboard_data_cached.cache_clear()


def format_amount(value: object) -> str:
    if value is None:
        return "N/A"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "N/A"
    if not math.isfinite(number):
        return "N/A"
    return f"{number:,.0f}"


def progress_caption(progress: IngestionProgress) -> str:
    caption = f"Rows processed: {format_amount(progress.rows_read)}"
    if progress.total_bytes:
        caption += f" · {format_amount(progress.bytes_read / 1e6)}MB"
    if progress.percent is not None:
        caption += f" ({progress.percent}%)"
    return caption
