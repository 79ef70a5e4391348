"""
Bounded cache of decoded file chunks.

Each entry is the immutable text decoded from one byte range of a
memory-mapped file, keyed by the range's start byte offset.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional

from textcore.core.errors import SourceClosedError


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace('\r\n', '\n').replace('\r', '\n')


class ChunkCache:
    """
    LRU cache for decoded chunks.

    Uses OrderedDict for O(1) access and LRU eviction. Not thread-safe;
    callers sharing one cache must serialize access.
    """

    def __init__(
        self,
        buffer,
        codec: str,
        capacity: int = 64,
        normalize_line_endings: bool = False
    ):
        """
        Args:
            buffer: Object supporting byte slicing (an ``mmap.mmap``)
            codec: Stateless codec used to decode every range
            capacity: Maximum number of decoded chunks kept
            normalize_line_endings: Convert CRLF/CR to LF after decoding
        """
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")
        self._buffer = buffer
        self._codec = codec
        self._capacity = capacity
        self._normalize = normalize_line_endings
        self._chunks: OrderedDict[int, str] = OrderedDict()
        self._closed = False
        self.hits = 0
        self.misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._chunks)

    def __contains__(self, start: int) -> bool:
        return start in self._chunks

    def get_chunk(self, start: int, end: int) -> str:
        """Return the decoded text of bytes ``[start, end)``."""
        if self._closed:
            raise SourceClosedError("chunk cache")

        text = self._chunks.get(start)
        if text is not None:
            self._chunks.move_to_end(start)
            self.hits += 1
            return text

        self.misses += 1
        return self.store(start, self.decode(self._buffer[start:end]))

    def decode(self, raw: bytes) -> str:
        """Decode raw bytes the way cached chunks are decoded."""
        text = raw.decode(self._codec, errors='replace')
        if self._normalize:
            text = normalize_newlines(text)
        return text

    def store(self, start: int, text: str) -> str:
        """Cache already-decoded text for the range starting at ``start``."""
        if self._closed:
            raise SourceClosedError("chunk cache")

        if start in self._chunks:
            self._chunks.move_to_end(start)
        elif len(self._chunks) >= self._capacity:
            # Evict least recently used
            self._chunks.popitem(last=False)
        self._chunks[start] = text
        return text

    def peek(self, start: int) -> Optional[str]:
        """Return a cached chunk without touching its recency."""
        return self._chunks.get(start)

    def clear(self) -> None:
        """Drop every cached chunk."""
        self._chunks.clear()

    def close(self) -> None:
        """Release cached text and the buffer reference. Idempotent."""
        if self._closed:
            return
        logging.debug(
            f"ChunkCache - closing ({self.hits} hits, {self.misses} misses)"
        )
        self._chunks.clear()
        self._buffer = None
        self._closed = True
