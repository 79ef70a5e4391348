"""
Sed-style substitution: ``s/pattern/replacement/flags``.

Any non-alphanumeric character may serve as the delimiter. Inside the
pattern and replacement sections a backslash before the delimiter yields
the delimiter itself; every other backslash sequence is passed through
untouched for the regex engine. Flags ``g`` (replace every match) and
``i`` (ignore case) are understood, anything else is ignored.

Patterns and replacement templates use the syntax of the ``regex``
package, which is compatible with ``re`` (``\\1``, ``\\g<name>``).
Matching runs with a timeout so a catastrophic pattern fails instead of
hanging the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import regex

from textcore.core.diff.text_diff import TextDiffEngine
from textcore.core.errors import SubstitutionError, SubstitutionTimeoutError
from textcore.core.models import DiffLine
from textcore.services.settings import SubstitutionSettings


@dataclass(frozen=True)
class SedCommand:
    """A parsed substitution command. ``delimiter`` only affects rendering."""
    pattern: str
    replacement: str
    global_replace: bool = False
    ignore_case: bool = False
    delimiter: str = field(default='/', compare=False)

    @property
    def flags(self) -> str:
        """Flag letters in canonical order."""
        return ('g' if self.global_replace else '') + ('i' if self.ignore_case else '')

    def __str__(self) -> str:
        d = self.delimiter
        pattern = self.pattern.replace(d, '\\' + d)
        replacement = self.replacement.replace(d, '\\' + d)
        return f"s{d}{pattern}{d}{replacement}{d}{self.flags}"


@dataclass
class SedPreview:
    """Outcome of running a command over a text, with per-line changes."""
    result: str
    match_count: int
    ranges: list[tuple[int, int]] = field(default_factory=list)
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def changed_line_count(self) -> int:
        return sum(1 for line in self.lines if line.is_changed)


class SedCommandParser:
    """Parser and executor for sed substitution expressions."""

    def __init__(
        self,
        settings: Optional[SubstitutionSettings] = None,
        diff_engine: Optional[TextDiffEngine] = None
    ):
        self.settings = settings or SubstitutionSettings()
        self.diff_engine = diff_engine or TextDiffEngine()

    @staticmethod
    def try_parse(expression: Optional[str]) -> tuple[bool, Optional[SedCommand]]:
        """
        Parse a substitution expression.

        Returns:
            ``(True, command)`` on success, ``(False, None)`` otherwise
        """
        if expression is None or len(expression) < 4:
            logging.debug("SedCommandParser - Rejected: expression too short")
            return False, None

        if expression[0] != 's':
            logging.debug("SedCommandParser - Rejected: must start with 's'")
            return False, None

        delimiter = expression[1]
        if delimiter.isalnum():
            logging.debug(f"SedCommandParser - Rejected: alphanumeric delimiter {delimiter!r}")
            return False, None

        pattern, pos = _extract_section(expression, delimiter, 2)
        if pattern is None:
            logging.debug("SedCommandParser - Rejected: unterminated pattern")
            return False, None

        replacement, pos = _extract_section(expression, delimiter, pos)
        if replacement is None:
            logging.debug("SedCommandParser - Rejected: unterminated replacement")
            return False, None

        flags = expression[pos:]
        return True, SedCommand(
            pattern=pattern,
            replacement=replacement,
            global_replace='g' in flags,
            ignore_case='i' in flags,
            delimiter=delimiter,
        )

    def execute(self, command: SedCommand, text: str) -> tuple[str, int]:
        """
        Apply ``command`` to ``text``.

        Returns:
            Tuple of (result, match_count)
        """
        result, count, _ = self.execute_with_ranges(command, text)
        return result, count

    def execute_with_ranges(
        self,
        command: SedCommand,
        text: str
    ) -> tuple[str, int, list[tuple[int, int]]]:
        """
        Apply ``command`` and report where each replacement landed.

        Returns:
            Tuple of (result, match_count, ranges) where each range is
            ``(start, length)`` in the result text. Empty replacements
            count as matches but produce no range.

        Raises:
            SubstitutionError: Invalid pattern or replacement template
            SubstitutionTimeoutError: Matching exceeded the timeout
        """
        compiled = self._compile(command)
        timeout = self.settings.timeout_seconds

        parts: list[str] = []
        ranges: list[tuple[int, int]] = []
        output_length = 0
        last_end = 0
        count = 0

        try:
            for match in compiled.finditer(text, timeout=timeout):
                if not command.global_replace and count > 0:
                    break

                head = text[last_end:match.start()]
                parts.append(head)
                output_length += len(head)

                replacement = match.expand(command.replacement)
                if replacement:
                    ranges.append((output_length, len(replacement)))
                parts.append(replacement)
                output_length += len(replacement)

                last_end = match.end()
                count += 1
        except TimeoutError as e:
            logging.warning(
                f"SedCommandParser - Timed out after {timeout}s on {command}"
            )
            raise SubstitutionTimeoutError(
                f"Pattern {command.pattern!r} timed out after {timeout} seconds"
            ) from e
        except (regex.error, IndexError) as e:
            raise SubstitutionError(f"Invalid replacement {command.replacement!r}: {e}") from e

        parts.append(text[last_end:])
        logging.debug(
            f"SedCommandParser - {command}: {count} matches, {len(ranges)} ranges"
        )
        return ''.join(parts), count, ranges

    def preview(self, command: SedCommand, text: str) -> SedPreview:
        """Run ``command`` and compare the result line by line with ``text``."""
        result, count, ranges = self.execute_with_ranges(command, text)
        lines = self.diff_engine.compare_line_by_line(text, result)
        return SedPreview(result=result, match_count=count, ranges=ranges, lines=lines)

    def _compile(self, command: SedCommand):
        flags = regex.IGNORECASE if command.ignore_case else 0
        try:
            return regex.compile(command.pattern, flags)
        except regex.error as e:
            raise SubstitutionError(f"Invalid pattern {command.pattern!r}: {e}") from e


def _extract_section(
    expression: str,
    delimiter: str,
    pos: int
) -> tuple[Optional[str], int]:
    """
    Read one section up to the next unescaped delimiter.

    Returns:
        Tuple of (section, position after the closing delimiter); section
        is None when no closing delimiter was found
    """
    chars: list[str] = []
    length = len(expression)

    while pos < length:
        char = expression[pos]
        if char == '\\' and pos + 1 < length:
            following = expression[pos + 1]
            if following == delimiter:
                chars.append(delimiter)
            else:
                chars.append(char)
                chars.append(following)
            pos += 2
            continue

        if char == delimiter:
            return ''.join(chars), pos + 1

        chars.append(char)
        pos += 1

    return None, pos
