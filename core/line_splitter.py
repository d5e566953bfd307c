from __future__ import annotations

import codecs
from typing import Iterable, Iterator, List, Union

Chunk = Union[bytes, bytearray, memoryview, str]

DEFAULT_ENCODING = "utf-8-sig"


class LineSplitter:
    """Reassembles text lines from arbitrarily split byte chunks.

    Incomplete multi-byte sequences at the end of a chunk are held by the
    incremental decoder until the next chunk arrives. A partial last line stays
    in the buffer until its terminator shows up or ``flush`` is called.
    """

    def __init__(self, encoding: str = DEFAULT_ENCODING, errors: str = "replace"):
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: Chunk) -> List[str]:
        if isinstance(chunk, str):
            text = chunk
        else:
            text = self._decoder.decode(bytes(chunk))
        if not text:
            return []
        self._buffer += text
        if "\n" not in text:
            return []
        parts = self._buffer.split("\n")
        self._buffer = parts.pop()
        return [line for line in map(_strip_cr, parts) if line]

    def flush(self) -> List[str]:
        """Return the unterminated tail line, if any, and reset the buffer."""
        self._buffer += self._decoder.decode(b"", final=True)
        tail = self._buffer.strip()
        self._buffer = ""
        return [tail] if tail else []


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def iter_lines(chunks: Iterable[Chunk], encoding: str = DEFAULT_ENCODING) -> Iterator[str]:
    splitter = LineSplitter(encoding=encoding)
    for chunk in chunks:
        yield from splitter.feed(chunk)
    yield from splitter.flush()
