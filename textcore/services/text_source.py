"""
Read-only text source contract and small implementations.

Editor layers consume text through ``TextSource``: a length, indexed
character access, range extraction and line-feed counting. Sources
that already know where lines start also expose ``PrecomputedLineFeeds``
so consumers can skip their own scan.
"""

from __future__ import annotations

import bisect
from array import array
from collections.abc import Sequence
from typing import Iterator, Optional, Protocol, runtime_checkable

from textcore.core.errors import OffsetOutOfRangeError


@runtime_checkable
class TextSource(Protocol):
    """Random-access, read-only character sequence."""

    @property
    def length(self) -> int:
        """Total number of characters."""
        ...

    def __len__(self) -> int:
        ...

    def __getitem__(self, index: int) -> str:
        ...

    def get_text(self, start: int, length: int) -> str:
        """Return ``length`` characters starting at ``start``."""
        ...

    def count_line_feeds(self, start: int, length: int) -> int:
        """Count ``'\\n'`` characters in ``[start, start + length)``."""
        ...


@runtime_checkable
class PrecomputedLineFeeds(Protocol):
    """Source that already indexed its line starts."""

    @property
    def line_offsets(self) -> Optional[Sequence[int]]:
        ...

    @property
    def initial_line_feed_count(self) -> int:
        ...


def check_index(index: int, length: int) -> None:
    """Raise if ``index`` is not a valid character index."""
    if index < 0 or index >= length:
        raise OffsetOutOfRangeError(
            f"Index {index} out of range for length {length}"
        )


def check_range(start: int, length: int, total: int) -> None:
    """Raise if ``[start, start + length)`` does not fit in ``total``."""
    if start < 0:
        raise OffsetOutOfRangeError(f"Start must be non-negative, got {start}")
    if length < 0:
        raise OffsetOutOfRangeError(f"Length must be non-negative, got {length}")
    if start + length > total:
        raise OffsetOutOfRangeError(
            f"Range {start}+{length} exceeds source length {total}"
        )


class OffsetSnapshot(Sequence):
    """
    Immutable view over the first ``count`` entries of an offset arena.

    The arena may keep growing after the snapshot is taken; entries below
    ``count`` never change, so the view stays valid.
    """

    __slots__ = ('_offsets', '_count')

    def __init__(self, offsets: array, count: int):
        self._offsets = offsets
        self._count = count

    def __len__(self) -> int:
        return self._count

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._offsets[i] for i in range(*index.indices(self._count))]
        if index < 0:
            index += self._count
        if index < 0 or index >= self._count:
            raise IndexError("offset index out of range")
        return self._offsets[index]

    def __iter__(self) -> Iterator[int]:
        offsets = self._offsets
        for i in range(self._count):
            yield offsets[i]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sequence):
            return NotImplemented
        return len(self) == len(other) and all(a == b for a, b in zip(self, other))

    __hash__ = None

    def __repr__(self) -> str:
        preview = ', '.join(str(value) for value in self[:8])
        more = ', ...' if self._count > 8 else ''
        return f"OffsetSnapshot([{preview}{more}], count={self._count})"

    def line_index_of(self, offset: int) -> int:
        """0-based index of the line containing character ``offset``."""
        return bisect.bisect_right(self, offset) - 1


class StringTextSource:
    """
    In-memory ``TextSource`` over a Python string.

    Used for small documents and wherever a consumer needs the source
    contract without a file behind it.
    """

    def __init__(self, text: str):
        self._text = text
        offsets = array('q', [0])
        position = text.find('\n')
        while position != -1:
            offsets.append(position + 1)
            position = text.find('\n', position + 1)
        self._line_offsets = OffsetSnapshot(offsets, len(offsets))

    @property
    def length(self) -> int:
        return len(self._text)

    def __len__(self) -> int:
        return len(self._text)

    def __getitem__(self, index: int) -> str:
        check_index(index, len(self._text))
        return self._text[index]

    def get_text(self, start: int, length: int) -> str:
        check_range(start, length, len(self._text))
        return self._text[start:start + length]

    def count_line_feeds(self, start: int, length: int) -> int:
        check_range(start, length, len(self._text))
        return self._text.count('\n', start, start + length)

    @property
    def line_offsets(self) -> OffsetSnapshot:
        return self._line_offsets

    @property
    def initial_line_feed_count(self) -> int:
        return len(self._line_offsets) - 1


class BorrowedTextSource:
    """
    Non-owning view of another source.

    Delegates the ``TextSource`` and ``PrecomputedLineFeeds`` capabilities
    but has no ``close``, so intermediate consumers can be discarded
    without releasing the shared underlying source.
    """

    def __init__(self, inner):
        self._inner = inner

    @property
    def length(self) -> int:
        return self._inner.length

    def __len__(self) -> int:
        return self._inner.length

    def __getitem__(self, index: int) -> str:
        return self._inner[index]

    def get_text(self, start: int, length: int) -> str:
        return self._inner.get_text(start, length)

    def count_line_feeds(self, start: int, length: int) -> int:
        return self._inner.count_line_feeds(start, length)

    @property
    def line_offsets(self) -> Optional[Sequence[int]]:
        return self._inner.line_offsets

    @property
    def initial_line_feed_count(self) -> int:
        return self._inner.initial_line_feed_count
