"""Dashboard error hierarchy.

Only these three failures end an ingestion run. Bad rows never raise:
rows with an unreadable year or month are skipped and unreadable amounts
count as zero.
"""

from __future__ import annotations

from typing import Iterable, Tuple


class DashboardError(Exception):
    """Base exception for fatal dashboard load failures."""

    error_type = "Dashboard Error"
    user_message = "Failed to load data."


class SourceError(DashboardError):
    """Raised when the CSV source cannot be opened or reports a failure status."""

    error_type = "Source Error"
    user_message = "The sales CSV could not be loaded. Check that the file or URL is reachable."


class StreamingUnsupportedError(DashboardError):
    """Raised when the source cannot hand out bytes incrementally."""

    error_type = "Streaming Unsupported"
    user_message = "Streaming is not supported for this data source."


class SchemaError(DashboardError):
    """Raised when the header row lacks one or more required columns."""

    error_type = "Missing Columns"
    user_message = "The CSV header is missing required columns."

    def __init__(self, missing: Iterable[str]):
        self.missing: Tuple[str, ...] = tuple(missing)
        super().__init__(f"CSV missing required columns: {', '.join(self.missing)}")
