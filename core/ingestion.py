"""Streaming CSV ingestion.

``IngestionCoordinator.run`` reads the source chunk by chunk, splits and
tokenizes lines, and feeds rows to a fresh ``AggregationEngine`` in the exact
order they appear. It suspends once every ``progress_every_rows`` aggregated
rows (after reporting progress) so other tasks on the event loop get a turn;
it never suspends in the middle of a line.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Callable, Optional

from core.aggregation import AggregationEngine, ResultSnapshot
from core.errors import DashboardError
from core.line_splitter import DEFAULT_ENCODING, LineSplitter
from core.sources import DEFAULT_CHUNK_SIZE, ByteSource, open_byte_source
from core.tokenizer import tokenize

logger = logging.getLogger(__name__)

PROGRESS_EVERY_ROWS = 5000


@dataclass(frozen=True)
class IngestionProgress:
    bytes_read: int = 0
    total_bytes: int = 0
    rows_read: int = 0

    @property
    def percent(self) -> Optional[int]:
        if not self.total_bytes:
            return None
        return min(100, round(self.bytes_read / self.total_bytes * 100))


ProgressCallback = Callable[[IngestionProgress], None]


class CancelToken:
    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class IngestionCoordinator:
    def __init__(
        self,
        progress_every_rows: int = PROGRESS_EVERY_ROWS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        encoding: str = DEFAULT_ENCODING,
        http_timeout_seconds: float = 30.0,
    ):
        self.progress_every_rows = max(1, progress_every_rows)
        self.chunk_size = max(1, chunk_size)
        self.encoding = encoding
        self.http_timeout_seconds = http_timeout_seconds

    @classmethod
    def from_settings(cls, settings) -> "IngestionCoordinator":
        return cls(
            progress_every_rows=settings.PROGRESS_EVERY_ROWS,
            chunk_size=settings.CHUNK_SIZE,
            encoding=settings.ENCODING,
            http_timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def run(
        self,
        source: Any,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Optional[ResultSnapshot]:
        """Stream ``source`` into a result snapshot.

        Returns None when ``cancel_token`` was cancelled; in that case no
        further progress callback is made and partial results are dropped.

        Raises:
            SourceError: source missing, unreachable or non-success status.
            StreamingUnsupportedError: source cannot be read incrementally.
            SchemaError: header lacks required columns.
        """
        token = cancel_token or CancelToken()
        engine = AggregationEngine()
        byte_source: Optional[ByteSource] = None
        name = getattr(source, "name", source)
        bytes_read = 0
        total_bytes = 0
        last_report_at = 0

        def report() -> None:
            if token.cancelled:
                return
            logger.debug("Progress: %d rows, %d bytes", engine.rows_read, bytes_read)
            if on_progress is not None:
                on_progress(IngestionProgress(bytes_read=bytes_read, total_bytes=total_bytes, rows_read=engine.rows_read))

        try:
            byte_source = open_byte_source(source, chunk_size=self.chunk_size, timeout_seconds=self.http_timeout_seconds)
            name = byte_source.name
            splitter = LineSplitter(encoding=self.encoding)
            logger.info("Ingesting %s", name)
            total_bytes = await byte_source.open() or 0
            async with aclosing(byte_source.chunks()) as chunks:
                async for chunk in chunks:
                    if token.cancelled:
                        break
                    bytes_read += len(chunk)
                    for line in splitter.feed(chunk):
                        if not engine.ingest_row(tokenize(line)):
                            continue
                        if engine.rows_read - last_report_at >= self.progress_every_rows:
                            last_report_at = engine.rows_read
                            report()
                            await asyncio.sleep(0)
                            if token.cancelled:
                                break
                    if token.cancelled:
                        break

            if not token.cancelled:
                for line in splitter.flush():
                    engine.ingest_row(tokenize(line))
        except DashboardError as exc:
            if token.cancelled:
                return None
            logger.error("Ingestion of %s failed: %s", name, exc)
            raise
        finally:
            if byte_source is not None:
                await byte_source.close()

        # cancellation can land while close() is awaited
        if token.cancelled:
            logger.info("Ingestion of %s cancelled after %d rows", name, engine.rows_read)
            return None

        report()
        snapshot = engine.finalize()
        logger.info(
            "Ingested %d rows (%d bytes) from %s: %d months, %d suppliers",
            snapshot.rows_read,
            bytes_read,
            name,
            len(snapshot.month_keys),
            len(snapshot.suppliers),
        )
        return snapshot


def ingest_csv(
    source: Any,
    on_progress: Optional[ProgressCallback] = None,
    coordinator: Optional[IngestionCoordinator] = None,
) -> ResultSnapshot:
    """Blocking wrapper around ``IngestionCoordinator.run`` for scripts and Streamlit."""
    coordinator = coordinator or IngestionCoordinator()
    return asyncio.run(coordinator.run(source, on_progress=on_progress))
