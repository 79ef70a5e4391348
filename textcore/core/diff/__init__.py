"""
Diff module for text comparison operations.

Provides:
- LCS line alignment with modified-line pairing
- Character-level highlighting of modified lines
- A linear line-by-line comparator
"""

from textcore.core.diff.text_diff import (
    TextDiffEngine,
    TextCompareOptions,
    compute_edit_script,
    merge_operations,
    split_lines,
)

__all__ = [
    'TextDiffEngine',
    'TextCompareOptions',
    'compute_edit_script',
    'merge_operations',
    'split_lines',
]
