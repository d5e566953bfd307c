"""Byte sources the ingestion coordinator can stream from.

Every source yields raw byte chunks asynchronously and may know the total
length up front. Anything that can only be handed over as one complete blob
is rejected with ``StreamingUnsupportedError``.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Optional, Union

import httpx

from core.errors import SourceError, StreamingUnsupportedError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class ByteSource(ABC):
    name: str = "source"

    @abstractmethod
    async def open(self) -> Optional[int]:
        """Open the underlying stream and return the total size if known."""

    @abstractmethod
    def chunks(self) -> AsyncIterator[bytes]:
        pass

    async def close(self) -> None:
        return None


class FileByteSource(ByteSource):
    def __init__(self, path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.path = Path(path).expanduser()
        self.name = str(self.path)
        self.chunk_size = max(1, chunk_size)
        self._handle: Optional[BinaryIO] = None

    async def open(self) -> Optional[int]:
        try:
            self._handle = open(self.path, "rb")
            size = os.fstat(self._handle.fileno()).st_size
        except OSError as exc:
            raise SourceError(f"Failed to open CSV at {self.path}: {exc.strerror or exc}") from exc
        logger.debug("Opened %s (%d bytes)", self.path, size)
        return size

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._handle is None:
            raise SourceError(f"CSV at {self.path} was not opened")
        while True:
            try:
                block = self._handle.read(self.chunk_size)
            except OSError as exc:
                raise SourceError(f"Failed to read CSV at {self.path}: {exc}") from exc
            if not block:
                return
            yield block

    async def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class StreamByteSource(ByteSource):
    """Wraps an already open binary file-like object (uploads, pipes, BytesIO)."""

    def __init__(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE, name: str = "stream"):
        self.stream = stream
        self.name = name
        self.chunk_size = max(1, chunk_size)

    async def open(self) -> Optional[int]:
        try:
            seekable = getattr(self.stream, "seekable", None)
            if seekable is not None and seekable():
                position = self.stream.tell()
                size = self.stream.seek(0, os.SEEK_END) - position
                self.stream.seek(position)
                return size
        except (OSError, ValueError) as exc:
            raise SourceError(f"Failed to open {self.name}: {exc}") from exc
        return None

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            try:
                block = self.stream.read(self.chunk_size)
            except (OSError, ValueError) as exc:
                raise SourceError(f"Failed to read {self.name}: {exc}") from exc
            if not block:
                return
            if isinstance(block, str):
                raise StreamingUnsupportedError(f"{self.name} is a text stream; open it in binary mode")
            yield block


class HttpByteSource(ByteSource):
    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.name = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)
        self._response: Optional[httpx.Response] = None

    async def open(self) -> Optional[int]:
        try:
            request = self._client.build_request("GET", self.url)
            self._response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await self.close()
            raise SourceError(f"Failed to load CSV from {self.url}: {exc}") from exc

        response = self._response
        if not response.is_success:
            status = f"{response.status_code} {response.reason_phrase}".strip()
            await self.close()
            raise SourceError(f"Failed to load CSV: {status}")
        logger.debug("Streaming %s (HTTP %s)", self.url, response.status_code)

        length = response.headers.get("content-length")
        try:
            return int(length) if length else None
        except ValueError:
            return None

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._response is None:
            raise SourceError(f"CSV at {self.url} was not opened")
        try:
            async for block in self._response.aiter_bytes():
                if block:
                    yield block
        except httpx.HTTPError as exc:
            raise SourceError(f"Connection lost while reading {self.url}: {exc}") from exc

    async def close(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._owns_client:
            await self._client.aclose()


def is_url(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def open_byte_source(source: Any, chunk_size: int = DEFAULT_CHUNK_SIZE, timeout_seconds: float = 30.0) -> ByteSource:
    """Resolve a path, URL, binary file object or ``ByteSource`` to a ``ByteSource``."""
    if isinstance(source, ByteSource):
        return source
    if isinstance(source, Path):
        return FileByteSource(source, chunk_size=chunk_size)
    if isinstance(source, str):
        if is_url(source):
            return HttpByteSource(source, timeout_seconds=timeout_seconds)
        return FileByteSource(source, chunk_size=chunk_size)
    if isinstance(source, (bytes, bytearray, memoryview)):
        raise StreamingUnsupportedError(
            "Streaming not supported: got an in-memory blob instead of an incremental byte stream"
        )
    if callable(getattr(source, "read", None)):
        return StreamByteSource(source, chunk_size=chunk_size, name=str(getattr(source, "name", "stream")))
    raise StreamingUnsupportedError(f"Streaming not supported for source of type {type(source).__name__}")
