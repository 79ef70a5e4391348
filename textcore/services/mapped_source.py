"""
Memory-mapped text source for very large files.

The file is mapped read-only and split into fixed-size byte chunks.
Scanning decodes each chunk once to record where it starts in character
coordinates and where every line starts; afterwards any character range
is served by a binary search over the chunk directory plus a slice of the
decoded chunk, which the bounded ``ChunkCache`` usually already holds.

Scanning is either done eagerly at open or driven by the caller through
``scan_next_batch`` so a UI can spread the cost over idle ticks.
"""

from __future__ import annotations

import bisect
import codecs
import logging
import mmap
import os
from array import array
from pathlib import Path
from typing import BinaryIO, Optional

from textcore.core.errors import OffsetOutOfRangeError, SourceClosedError
from textcore.core.models import LineEnding
from textcore.services.chunk_cache import ChunkCache, normalize_newlines
from textcore.services.encoding import detect_encoding, resolve_codec, SAMPLE_SIZE
from textcore.services.file_io import detect_line_ending
from textcore.services.settings import SourceSettings
from textcore.services.text_source import OffsetSnapshot, check_index, check_range


# Chunks must hold at least one character of any supported codec even
# after boundary adjustments move a few bytes into the next chunk.
MIN_CHUNK_SIZE = 16


class LargeFileTextSource:
    """
    Read-only ``TextSource`` over a memory-mapped file.

    Published state (``length``, ``initial_line_feed_count``,
    ``line_offsets``, ``scanned_bytes``) only changes when a scan batch
    completes. Not thread-safe: scanning and reads must be serialized by
    the caller.
    """

    def __init__(
        self,
        path: Path | str,
        encoding: Optional[str] = None,
        normalize_line_endings: Optional[bool] = None,
        defer_scan: bool = False,
        settings: Optional[SourceSettings] = None
    ):
        """
        Open a file and, unless ``defer_scan`` is set, scan it completely.

        Args:
            path: File to open
            encoding: Codec name; detected from the first 4 KB if None
            normalize_line_endings: Convert CRLF/CR to LF; settings value if None
            defer_scan: Leave scanning to ``scan_next_batch``
            settings: Chunk size and cache capacity; defaults if None

        Raises:
            FileNotFoundError: If the file does not exist
            IsADirectoryError: If the path is a directory
            ValueError: If the chunk size or cache capacity is too small
            LookupError: If ``encoding`` names an unknown codec
        """
        settings = settings or SourceSettings()
        if settings.chunk_size_bytes < MIN_CHUNK_SIZE:
            raise ValueError(
                f"Chunk size must be at least {MIN_CHUNK_SIZE} bytes, "
                f"got {settings.chunk_size_bytes}"
            )
        if normalize_line_endings is None:
            normalize_line_endings = settings.normalize_line_endings

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.is_dir():
            raise IsADirectoryError(f"Not a file: {path}")

        self._file_path = path.absolute()
        self._chunk_size = settings.chunk_size_bytes
        self._normalize = normalize_line_endings
        self._closed = False
        self._file: Optional[BinaryIO] = None
        self._mmap: Optional[mmap.mmap] = None
        self._cache: Optional[ChunkCache] = None

        # Append-only arenas; only indices below the published counts are read.
        self._chunk_chars = array('q')      # Character offset of each chunk
        self._chunk_bytes = array('q')      # Byte start of each chunk
        self._chunk_ends = array('q')       # Byte end of each chunk
        self._offsets = array('q', [0])     # Line start offsets

        self._scanned_chunks = 0
        self._length = 0
        self._line_feed_count = 0
        self._line_offsets = OffsetSnapshot(self._offsets, 1)
        self._scanned_bytes = 0
        self._next_byte = 0

        self._file = open(self._file_path, 'rb')
        try:
            self._file_size = os.fstat(self._file.fileno()).st_size
            self._open_mapping(encoding, settings.cache_capacity)
            if not defer_scan:
                self._scan(None)
        except BaseException:
            self._release()
            raise

        logging.debug(
            f"LargeFileTextSource - Opened {self._file_path} ({self._file_size} bytes, "
            f"{self._encoding}, {'deferred' if defer_scan else 'eager'})"
        )

    def _open_mapping(self, encoding: Optional[str], cache_capacity: int) -> None:
        """Map the file, resolve the codec and prepare the cache."""
        if self._file_size == 0:
            self._encoding = encoding or detect_encoding(b'')
            self._codec, self._bom_length = resolve_codec(self._encoding, b'')
            self._line_ending = LineEnding.LF
            self._payload_start = 0
            return

        self._mmap = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)

        self._encoding = encoding or detect_encoding(self._mmap[:SAMPLE_SIZE + 1])
        self._codec, self._bom_length = resolve_codec(self._encoding, self._mmap[:4])
        self._payload_start = self._bom_length
        self._next_byte = self._payload_start

        self._cache = ChunkCache(
            self._mmap, self._codec, cache_capacity, self._normalize
        )
        self._line_ending = detect_line_ending(
            self._mmap[self._payload_start:self._payload_start + self._chunk_size],
            self._codec
        )

        if self._payload_start >= self._file_size:
            # Nothing but a byte-order mark
            self._scanned_bytes = self._file_size

    # =========================================================================
    # Scanning
    # =========================================================================

    def scan_next_batch(self, batch_size: int) -> bool:
        """
        Scan up to ``batch_size`` more chunks.

        Returns:
            True once the whole file has been scanned
        """
        self._check_open()
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got {batch_size}")
        if self.is_fully_scanned:
            return True

        done = self._scan(batch_size)
        if done:
            logging.info(
                f"LargeFileTextSource - Finished scanning {self._file_path.name}: "
                f"{self._length} chars, {self._line_feed_count + 1} lines"
            )
        return done

    def _scan(self, batch_size: Optional[int]) -> bool:
        """Scan a batch (all remaining chunks if None) and publish it."""
        committed_chunks = len(self._chunk_chars)
        committed_offsets = len(self._offsets)

        char_pos = self._length
        line_feeds = self._line_feed_count
        byte_pos = self._next_byte
        scanned = 0

        try:
            while byte_pos < self._file_size and (batch_size is None or scanned < batch_size):
                end, text = self._decode_next_chunk(len(self._chunk_chars), byte_pos)

                self._chunk_chars.append(char_pos)
                self._chunk_bytes.append(byte_pos)
                self._chunk_ends.append(end)

                position = text.find('\n')
                while position != -1:
                    self._offsets.append(char_pos + position + 1)
                    line_feeds += 1
                    position = text.find('\n', position + 1)

                char_pos += len(text)
                byte_pos = end
                scanned += 1
        except BaseException:
            # Roll back to the last committed batch
            del self._chunk_chars[committed_chunks:]
            del self._chunk_bytes[committed_chunks:]
            del self._chunk_ends[committed_chunks:]
            del self._offsets[committed_offsets:]
            raise

        # Publish, counts last
        self._next_byte = byte_pos
        if scanned:
            self._scanned_bytes = byte_pos
        self._length = char_pos
        self._line_feed_count = line_feeds
        self._line_offsets = OffsetSnapshot(self._offsets, len(self._offsets))
        self._scanned_chunks = len(self._chunk_chars)

        logging.debug(
            f"LargeFileTextSource - Scanned {scanned} chunks "
            f"({self._scanned_chunks} total, {self._length} chars, {line_feeds} line feeds)"
        )
        return byte_pos >= self._file_size

    def _decode_next_chunk(self, index: int, start: int) -> tuple[int, str]:
        """
        Decode chunk ``index``, which begins at byte ``start``.

        The nominal chunk end is the next multiple of the chunk size past
        the payload start. Bytes of a character cut by that boundary, and a
        trailing CR, move to the next chunk so that no character or CRLF
        pair is ever split.

        Returns:
            Tuple of (end_byte, text)
        """
        nominal_end = min(
            self._payload_start + (index + 1) * self._chunk_size, self._file_size
        )
        final = nominal_end >= self._file_size

        decoder = codecs.getincrementaldecoder(self._codec)(errors='replace')
        text = decoder.decode(self._mmap[start:nominal_end], final=final)
        end = nominal_end

        if not final:
            pending = decoder.getstate()[0]
            end -= len(pending)
            if text.endswith('\r') and len(text) > 1:
                text = text[:-1]
                end -= len('\r'.encode(self._codec))

        if self._normalize:
            text = normalize_newlines(text)

        return end, self._cache.store(start, text)

    # =========================================================================
    # Chunk access
    # =========================================================================

    def _chunk_index(self, char_offset: int) -> int:
        """Index of the scanned chunk containing ``char_offset``."""
        return bisect.bisect_right(
            self._chunk_chars, char_offset, 0, self._scanned_chunks
        ) - 1

    def _chunk_text(self, index: int) -> str:
        return self._cache.get_chunk(self._chunk_bytes[index], self._chunk_ends[index])

    def _check_open(self) -> None:
        if self._closed:
            raise SourceClosedError("large file text source")

    # =========================================================================
    # TextSource
    # =========================================================================

    @property
    def length(self) -> int:
        """Number of characters scanned so far."""
        self._check_open()
        return self._length

    def __len__(self) -> int:
        return self.length

    def __getitem__(self, index: int) -> str:
        self._check_open()
        check_index(index, self._length)
        chunk = self._chunk_index(index)
        return self._chunk_text(chunk)[index - self._chunk_chars[chunk]]

    def get_text(self, start: int, length: int) -> str:
        """Return ``length`` characters starting at ``start``."""
        self._check_open()
        check_range(start, length, self._length)
        if length == 0:
            return ''

        parts = []
        chunk = self._chunk_index(start)
        position = start
        remaining = length

        while remaining > 0:
            text = self._chunk_text(chunk)
            local = position - self._chunk_chars[chunk]
            piece = text[local:local + remaining]
            parts.append(piece)
            position += len(piece)
            remaining -= len(piece)
            chunk += 1

        return ''.join(parts)

    def count_line_feeds(self, start: int, length: int) -> int:
        """Count line feeds in ``[start, start + length)``."""
        self._check_open()
        check_range(start, length, self._length)
        if start == 0 and length == self._length:
            return self._line_feed_count
        if length == 0:
            return 0

        count = 0
        chunk = self._chunk_index(start)
        position = start
        end = start + length

        while position < end:
            text = self._chunk_text(chunk)
            chunk_start = self._chunk_chars[chunk]
            local_end = min(end - chunk_start, len(text))
            count += text.count('\n', position - chunk_start, local_end)
            position = chunk_start + local_end
            chunk += 1

        return count

    # =========================================================================
    # Line index
    # =========================================================================

    @property
    def line_offsets(self) -> OffsetSnapshot:
        """Start offset of every line found so far, beginning with 0."""
        self._check_open()
        return self._line_offsets

    @property
    def initial_line_feed_count(self) -> int:
        self._check_open()
        return self._line_feed_count

    @property
    def line_count(self) -> int:
        self._check_open()
        return len(self._line_offsets)

    def line_index_of(self, offset: int) -> int:
        """0-based line containing character ``offset``."""
        self._check_open()
        if offset < 0 or offset > self._length:
            raise OffsetOutOfRangeError(
                f"Offset {offset} out of range for length {self._length}"
            )
        return self._line_offsets.line_index_of(offset)

    def get_line(self, index: int) -> str:
        """Text of line ``index`` without its line feed."""
        self._check_open()
        offsets = self._line_offsets
        if index < 0 or index >= len(offsets):
            raise OffsetOutOfRangeError(
                f"Line {index} out of range for {len(offsets)} lines"
            )
        start = offsets[index]
        end = offsets[index + 1] - 1 if index + 1 < len(offsets) else self._length
        return self.get_text(start, end - start)

    # =========================================================================
    # Scan state and metadata
    # =========================================================================

    @property
    def is_fully_scanned(self) -> bool:
        self._check_open()
        return self._next_byte >= self._file_size

    @property
    def scanned_bytes(self) -> int:
        """Byte end of the last scanned chunk."""
        self._check_open()
        return self._scanned_bytes

    @property
    def chunk_count(self) -> int:
        """Total number of chunks the file is split into."""
        payload = max(self._file_size - self._payload_start, 0)
        return -(-payload // self._chunk_size)

    @property
    def detected_line_ending(self) -> LineEnding:
        return self._line_ending

    @property
    def encoding(self) -> str:
        """Detected or supplied encoding name."""
        return self._encoding

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def file_size(self) -> int:
        return self._file_size

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Lifetime
    # =========================================================================

    def close(self) -> None:
        """Release the mapping and the cache. Idempotent."""
        if self._closed:
            return
        self._release()
        self._closed = True
        logging.debug(f"LargeFileTextSource - Closed {self._file_path}")

    def _release(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> LargeFileTextSource:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'closed' if self._closed else f"{self._length} chars"
        return f"LargeFileTextSource({str(self._file_path)!r}, {state})"
