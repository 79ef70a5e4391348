"""
Text diff engine.

Provides side-by-side comparison with support for:
- LCS line alignment with common prefix/suffix trimming
- Pairing of adjacent deletes and inserts into modified lines
- Character-level highlighting of modified lines with cost bounds
- A linear line-by-line comparator for in-place transformations
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, TYPE_CHECKING

from textcore.core.models import (
    CharDiffRange,
    DiffLine,
    DiffLineType,
    DiffResult,
    DiffSide,
    EditOpType,
    MergedOp,
)
from textcore.services.file_io import FileIOService

if TYPE_CHECKING:
    from textcore.services.settings import DiffSettings


@dataclass
class TextCompareOptions:
    """Options for text comparison."""
    compute_char_diffs: bool = True
    char_diff_line_threshold: int = 1000    # Max line length for char-level diff
    char_diff_max_cost: int = 4_000_000     # Max middle-region product for char LCS

    @classmethod
    def from_settings(cls, settings: DiffSettings) -> TextCompareOptions:
        return cls(
            compute_char_diffs=settings.compute_char_diffs,
            char_diff_line_threshold=settings.char_diff_line_threshold,
            char_diff_max_cost=settings.char_diff_max_cost,
        )


def split_lines(text: Optional[str]) -> list[str]:
    """
    Split text into lines after normalizing CRLF and CR to LF.

    Empty or ``None`` text yields a single empty line.
    """
    if not text:
        return ['']
    return text.replace('\r\n', '\n').replace('\r', '\n').split('\n')


def compute_edit_script(a: Sequence[str], b: Sequence[str]) -> list[EditOpType]:
    """
    Compute a unit edit script turning ``a`` into ``b``.

    Common prefix and suffix lines are trimmed before running the
    O(n*m) LCS table on the remaining middle. When backtracking, an
    insert is taken over a delete whenever ``dp[i][j-1] >= dp[i-1][j]``.
    """
    n = len(a)
    m = len(b)

    prefix = 0
    while prefix < n and prefix < m and a[prefix] == b[prefix]:
        prefix += 1

    suffix = 0
    while (suffix < n - prefix and suffix < m - prefix and
           a[n - 1 - suffix] == b[m - 1 - suffix]):
        suffix += 1

    trimmed_n = n - prefix - suffix
    trimmed_m = m - prefix - suffix
    logging.debug(
        f"TextDiffEngine - prefix={prefix} suffix={suffix} "
        f"middle={trimmed_n}x{trimmed_m}"
    )

    ops = [EditOpType.EQUAL] * prefix

    if trimmed_n == 0:
        ops.extend([EditOpType.INSERT] * trimmed_m)
    elif trimmed_m == 0:
        ops.extend([EditOpType.DELETE] * trimmed_n)
    else:
        left_mid = a[prefix:prefix + trimmed_n]
        right_mid = b[prefix:prefix + trimmed_m]
        dp = _lcs_table(left_mid, right_mid)

        middle: list[EditOpType] = []
        i, j = trimmed_n, trimmed_m
        while i > 0 or j > 0:
            if i > 0 and j > 0 and left_mid[i - 1] == right_mid[j - 1]:
                middle.append(EditOpType.EQUAL)
                i -= 1
                j -= 1
            elif j > 0 and (i == 0 or dp[i][j - 1] >= dp[i - 1][j]):
                middle.append(EditOpType.INSERT)
                j -= 1
            else:
                middle.append(EditOpType.DELETE)
                i -= 1

        middle.reverse()
        ops.extend(middle)

    ops.extend([EditOpType.EQUAL] * suffix)
    return ops


def merge_operations(ops: Sequence[EditOpType]) -> list[MergedOp]:
    """
    Collapse a unit edit script into runs.

    Each maximal run of deletes and inserts becomes
    ``DELETE(extra) MODIFIED(min) INSERT(extra)``, omitting empty runs.
    """
    result: list[MergedOp] = []
    i = 0
    total = len(ops)

    while i < total:
        if ops[i] is EditOpType.EQUAL:
            count = 0
            while i < total and ops[i] is EditOpType.EQUAL:
                count += 1
                i += 1
            result.append(MergedOp(EditOpType.EQUAL, count))
            continue

        deletes = 0
        inserts = 0
        while i < total and ops[i] is not EditOpType.EQUAL:
            if ops[i] is EditOpType.DELETE:
                deletes += 1
            else:
                inserts += 1
            i += 1

        modified = min(deletes, inserts)
        if deletes > modified:
            result.append(MergedOp(EditOpType.DELETE, deletes - modified))
        if modified > 0:
            result.append(MergedOp(EditOpType.MODIFIED, modified))
        if inserts > modified:
            result.append(MergedOp(EditOpType.INSERT, inserts - modified))

    return result


def _lcs_table(a: Sequence, b: Sequence) -> list[list[int]]:
    """Build the (len(a)+1) x (len(b)+1) LCS length table."""
    m = len(b)
    dp = [[0] * (m + 1)]
    for item in a:
        prev = dp[-1]
        row = [0] * (m + 1)
        for j in range(1, m + 1):
            if item == b[j - 1]:
                row[j] = prev[j - 1] + 1
            elif prev[j] >= row[j - 1]:
                row[j] = prev[j]
            else:
                row[j] = row[j - 1]
        dp.append(row)
    return dp


class TextDiffEngine:
    """
    Engine for comparing texts side by side.

    Stateless apart from its options; one instance may serve any
    number of comparisons.
    """

    def __init__(self, options: Optional[TextCompareOptions] = None):
        self.options = options or TextCompareOptions()

    def compare(
        self,
        left_text: Optional[str],
        right_text: Optional[str],
        left_title: str = "",
        right_title: str = ""
    ) -> DiffResult:
        """
        Compare two texts.

        Args:
            left_text: Original text
            right_text: Changed text
            left_title: Title stored on the left side
            right_title: Title stored on the right side

        Returns:
            DiffResult with both padded sides and the diff sections
        """
        left_lines = split_lines(left_text)
        right_lines = split_lines(right_text)

        merged = merge_operations(compute_edit_script(left_lines, right_lines))

        left_rows: list[DiffLine] = []
        right_rows: list[DiffLine] = []
        section_starts: list[int] = []

        left_idx = 0
        right_idx = 0
        in_section = False

        for op in merged:
            if op.op_type is EditOpType.EQUAL:
                in_section = False
                for _ in range(op.count):
                    left_rows.append(DiffLine(
                        DiffLineType.EQUAL, left_lines[left_idx], left_idx
                    ))
                    right_rows.append(DiffLine(
                        DiffLineType.EQUAL, right_lines[right_idx], right_idx
                    ))
                    left_idx += 1
                    right_idx += 1
                continue

            if not in_section:
                section_starts.append(len(left_rows))
                in_section = True

            if op.op_type is EditOpType.DELETE:
                for _ in range(op.count):
                    left_rows.append(DiffLine(
                        DiffLineType.REMOVED, left_lines[left_idx], left_idx
                    ))
                    right_rows.append(DiffLine(DiffLineType.PADDING))
                    left_idx += 1

            elif op.op_type is EditOpType.INSERT:
                for _ in range(op.count):
                    left_rows.append(DiffLine(DiffLineType.PADDING))
                    right_rows.append(DiffLine(
                        DiffLineType.ADDED, right_lines[right_idx], right_idx
                    ))
                    right_idx += 1

            else:
                for _ in range(op.count):
                    left_row, right_row = self._modified_pair(
                        left_lines[left_idx], right_lines[right_idx],
                        left_idx, right_idx
                    )
                    left_rows.append(left_row)
                    right_rows.append(right_row)
                    left_idx += 1
                    right_idx += 1

        return DiffResult(
            left=DiffSide(
                title=left_title,
                padded_text='\n'.join(row.text for row in left_rows),
                lines=tuple(left_rows),
            ),
            right=DiffSide(
                title=right_title,
                padded_text='\n'.join(row.text for row in right_rows),
                lines=tuple(right_rows),
            ),
            diff_section_starts=tuple(section_starts),
            diff_count=len(section_starts),
        )

    def compare_line_by_line(
        self,
        left_text: Optional[str],
        right_text: Optional[str]
    ) -> list[DiffLine]:
        """
        Compare two texts assuming a strict 1:1 line correspondence.

        Returns one row per right-hand line. Inserted or deleted lines are
        not detected; a line with no left counterpart is reported as added.
        """
        left_lines = split_lines(left_text)
        right_lines = split_lines(right_text)

        result: list[DiffLine] = []
        for i, transformed in enumerate(right_lines):
            original = left_lines[i] if i < len(left_lines) else ''
            if original == transformed:
                line_type = DiffLineType.EQUAL
            elif i < len(left_lines):
                line_type = DiffLineType.MODIFIED
            else:
                line_type = DiffLineType.ADDED
            result.append(DiffLine(line_type, transformed, i))
        return result

    def compare_files(
        self,
        left_path: Path | str,
        right_path: Path | str
    ) -> DiffResult:
        """
        Compare two files by path.

        Encodings are detected per file; each side is titled with its path.
        """
        file_io = FileIOService()
        left = file_io.read_text(left_path)
        right = file_io.read_text(right_path)
        return self.compare(left.content, right.content, str(left_path), str(right_path))

    def compute_char_diffs(
        self,
        left: str,
        right: str
    ) -> tuple[list[CharDiffRange], list[CharDiffRange]]:
        """
        Compute character-level differences within a line pair.

        Returns:
            Tuple of (left_ranges, right_ranges)
        """
        min_len = min(len(left), len(right))

        prefix = 0
        while prefix < min_len and left[prefix] == right[prefix]:
            prefix += 1

        suffix = 0
        while (suffix < min_len - prefix and
               left[len(left) - 1 - suffix] == right[len(right) - 1 - suffix]):
            suffix += 1

        left_mid = left[prefix:len(left) - suffix]
        right_mid = right[prefix:len(right) - suffix]

        if not left_mid and not right_mid:
            return [], []

        if len(left_mid) * len(right_mid) > self.options.char_diff_max_cost:
            logging.debug(
                f"TextDiffEngine - char diff {len(left_mid)}x{len(right_mid)} "
                f"over cost limit, marking whole middle"
            )
            left_ranges = [CharDiffRange(prefix, len(left_mid))] if left_mid else []
            right_ranges = [CharDiffRange(prefix, len(right_mid))] if right_mid else []
            return left_ranges, right_ranges

        left_in_lcs, right_in_lcs = self._lcs_flags(left_mid, right_mid)
        return (
            self._build_char_ranges(left_in_lcs, prefix),
            self._build_char_ranges(right_in_lcs, prefix),
        )

    def _modified_pair(
        self,
        left_line: str,
        right_line: str,
        left_idx: int,
        right_idx: int
    ) -> tuple[DiffLine, DiffLine]:
        """Build both rows of a modified line pair."""
        left_diffs = None
        right_diffs = None
        threshold = self.options.char_diff_line_threshold

        if self.options.compute_char_diffs:
            if len(left_line) <= threshold and len(right_line) <= threshold:
                left_diffs, right_diffs = self.compute_char_diffs(left_line, right_line)
            else:
                logging.debug(
                    f"TextDiffEngine - skipping char diff for long line pair "
                    f"{left_idx}/{right_idx}"
                )

        return (
            DiffLine(DiffLineType.MODIFIED, left_line, left_idx, left_diffs),
            DiffLine(DiffLineType.MODIFIED, right_line, right_idx, right_diffs),
        )

    def _lcs_flags(self, a: str, b: str) -> tuple[list[bool], list[bool]]:
        """Mark which characters of each string take part in one LCS."""
        dp = _lcs_table(a, b)

        left_in_lcs = [False] * len(a)
        right_in_lcs = [False] * len(b)

        i, j = len(a), len(b)
        while i > 0 and j > 0:
            if a[i - 1] == b[j - 1]:
                left_in_lcs[i - 1] = True
                right_in_lcs[j - 1] = True
                i -= 1
                j -= 1
            elif dp[i - 1][j] >= dp[i][j - 1]:
                i -= 1
            else:
                j -= 1

        return left_in_lcs, right_in_lcs

    def _build_char_ranges(self, in_lcs: list[bool], offset: int) -> list[CharDiffRange]:
        """Collect maximal runs of characters outside the LCS."""
        ranges: list[CharDiffRange] = []
        i = 0
        while i < len(in_lcs):
            if in_lcs[i]:
                i += 1
                continue
            start = i
            while i < len(in_lcs) and not in_lcs[i]:
                i += 1
            ranges.append(CharDiffRange(start + offset, i - start))
        return ranges
