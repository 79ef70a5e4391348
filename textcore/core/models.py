"""
Core data models for textcore.

This module defines the data structures shared by the diff engine,
the substitution engine and the text sources:
- Line and character level diff models
- Edit script operations
- Line ending styles

All models are designed to be:
- UI-agnostic (rows are rendering-ready but carry no styling)
- Immutable once a comparison has produced them
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Optional


# Original line number carried by padding rows.
PADDING_LINE_NUMBER = -1


# =============================================================================
# Enumerations
# =============================================================================

class DiffLineType(Enum):
    """Type of a row on one side of a side-by-side diff."""
    EQUAL = auto()      # Line exists on both sides, identical
    ADDED = auto()      # Line exists only on the right side
    REMOVED = auto()    # Line exists only on the left side
    MODIFIED = auto()   # Line changed between the sides
    PADDING = auto()    # Placeholder keeping both sides aligned


class EditOpType(Enum):
    """Type of an edit script operation."""
    EQUAL = auto()
    INSERT = auto()
    DELETE = auto()
    MODIFIED = auto()   # Only produced by the merge pass


class LineEnding(Enum):
    """Line ending style."""
    LF = auto()      # Unix: \n
    CRLF = auto()    # Windows: \r\n
    CR = auto()      # Old Mac: \r

    @property
    def separator(self) -> str:
        """The characters that terminate a line in this style."""
        if self is LineEnding.CRLF:
            return '\r\n'
        if self is LineEnding.CR:
            return '\r'
        return '\n'


# =============================================================================
# Edit Script Models
# =============================================================================

@dataclass(frozen=True)
class MergedOp:
    """A contiguous run of identical edit operations."""
    op_type: EditOpType
    count: int


# =============================================================================
# Text Diff Models
# =============================================================================

@dataclass(frozen=True)
class CharDiffRange:
    """
    Character-level difference within a single line.

    Used to highlight the changed portions of modified lines.
    """
    start: int          # Start character index (inclusive)
    length: int         # Number of changed characters

    @property
    def end(self) -> int:
        """End character index (exclusive)."""
        return self.start + self.length


@dataclass(frozen=True)
class DiffLine:
    """
    A single rendering-ready row on one side of a diff.

    Padding rows carry empty text and ``PADDING_LINE_NUMBER``.
    """
    line_type: DiffLineType
    text: str = ""
    original_line_number: int = PADDING_LINE_NUMBER
    char_diffs: Optional[list[CharDiffRange]] = None

    @property
    def is_padding(self) -> bool:
        return self.line_type is DiffLineType.PADDING

    @property
    def is_changed(self) -> bool:
        """True for every row that is not an equal line."""
        return self.line_type is not DiffLineType.EQUAL

    @property
    def has_char_diffs(self) -> bool:
        """Check if this line has character-level diff info."""
        return bool(self.char_diffs)

    @property
    def prefix(self) -> str:
        """Get the marker character used by plain-text renderers."""
        prefixes = {
            DiffLineType.EQUAL: '=',
            DiffLineType.ADDED: '+',
            DiffLineType.REMOVED: '-',
            DiffLineType.MODIFIED: '~',
            DiffLineType.PADDING: ' ',
        }
        return prefixes.get(self.line_type, ' ')


@dataclass(frozen=True)
class DiffSide:
    """One side of a padded side-by-side diff."""
    title: str = ""
    padded_text: str = ""
    lines: tuple[DiffLine, ...] = ()

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def real_line_count(self) -> int:
        """Number of rows backed by a line of the source text."""
        return sum(1 for line in self.lines if not line.is_padding)


@dataclass
class DiffStatistics:
    """Statistics about a diff result."""
    total_lines_left: int = 0
    total_lines_right: int = 0
    added_lines: int = 0
    removed_lines: int = 0
    modified_lines: int = 0
    unchanged_lines: int = 0

    @property
    def total_changes(self) -> int:
        """Total number of changed rows."""
        return self.added_lines + self.removed_lines + self.modified_lines

    @property
    def similarity_ratio(self) -> float:
        """
        Calculate similarity ratio (0.0 to 1.0).

        1.0 means identical, 0.0 means completely different.
        """
        total = max(self.total_lines_left, self.total_lines_right)
        if total == 0:
            return 1.0
        return self.unchanged_lines / total

    def __str__(self) -> str:
        return (f"+{self.added_lines} -{self.removed_lines} "
                f"~{self.modified_lines} ={self.unchanged_lines}")


@dataclass(frozen=True)
class DiffResult:
    """
    Complete result of a side-by-side text comparison.

    Both sides always hold the same number of rows. A diff section is a
    maximal run of non-equal rows; ``diff_section_starts`` lists the row
    index where each one begins.
    """
    left: DiffSide
    right: DiffSide
    diff_section_starts: tuple[int, ...] = ()
    diff_count: int = 0
    _statistics: Optional[DiffStatistics] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def row_count(self) -> int:
        return len(self.left.lines)

    @property
    def is_identical(self) -> bool:
        """True when the comparison found no differences."""
        return self.diff_count == 0

    def iter_rows(self) -> Iterator[tuple[DiffLine, DiffLine]]:
        """Iterate over aligned (left, right) row pairs."""
        return zip(self.left.lines, self.right.lines)

    @property
    def statistics(self) -> DiffStatistics:
        """Row counts per change kind, computed once."""
        if self._statistics is None:
            stats = DiffStatistics(
                total_lines_left=self.left.real_line_count,
                total_lines_right=self.right.real_line_count,
            )
            for left, right in self.iter_rows():
                if left.line_type is DiffLineType.EQUAL:
                    stats.unchanged_lines += 1
                elif left.line_type is DiffLineType.MODIFIED:
                    stats.modified_lines += 1
                elif left.line_type is DiffLineType.REMOVED:
                    stats.removed_lines += 1
                elif right.line_type is DiffLineType.ADDED:
                    stats.added_lines += 1
            object.__setattr__(self, '_statistics', stats)
        return self._statistics

    def section_ranges(self) -> Iterator[tuple[int, int]]:
        """Yield ``(start, end)`` row ranges, end exclusive, for each section."""
        lines = self.left.lines
        for start in self.diff_section_starts:
            end = start
            while end < len(lines) and lines[end].is_changed:
                end += 1
            yield start, end

    def next_section(self, row: int) -> Optional[int]:
        """Start row of the first section beginning after ``row``."""
        index = bisect.bisect_right(self.diff_section_starts, row)
        if index < len(self.diff_section_starts):
            return self.diff_section_starts[index]
        return None

    def previous_section(self, row: int) -> Optional[int]:
        """Start row of the last section beginning before ``row``."""
        index = bisect.bisect_left(self.diff_section_starts, row)
        if index > 0:
            return self.diff_section_starts[index - 1]
        return None
