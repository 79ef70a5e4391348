"""
File I/O service for reading whole text files.

Handles:
- Encoding detection and BOM stripping
- Line ending detection and normalization
- Friendly read results for UI callers
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from textcore.core.models import LineEnding
from textcore.services.encoding import (
    DEFAULT_ENCODING,
    detect_encoding,
    resolve_codec,
)


@dataclass
class FileContent:
    """Container for file content with metadata."""
    content: str
    lines: list[str]
    encoding: str
    line_ending: LineEnding
    bom: bool
    size: int

    @property
    def line_count(self) -> int:
        return len(self.lines)


@dataclass
class ReadResult:
    """Result of a file read operation."""
    success: bool
    content: Optional[FileContent] = None
    error: Optional[str] = None


def detect_line_ending(raw: bytes, codec: str = DEFAULT_ENCODING) -> LineEnding:
    """
    Detect the dominant line ending style of raw encoded bytes.

    Counting happens on decoded text so multi-byte code units are never
    split; a truncated trailing character is left undecoded. A CRLF pair
    counts once and is not counted again as LF or CR. LF wins unless
    strictly outnumbered, including when there are no line breaks.
    """
    text = codecs.getincrementaldecoder(codec)(errors='replace').decode(raw)

    crlf_count = text.count('\r\n')
    lf_count = text.count('\n') - crlf_count
    cr_count = text.count('\r') - crlf_count

    if lf_count >= crlf_count and lf_count >= cr_count:
        return LineEnding.LF
    if crlf_count >= cr_count:
        return LineEnding.CRLF
    return LineEnding.CR


class FileIOService:
    """Service for reading text files of moderate size into memory."""

    def __init__(self, default_encoding: str = DEFAULT_ENCODING):
        self.default_encoding = default_encoding

    def read_text(
        self,
        path: Path | str,
        encoding: Optional[str] = None,
        normalize_line_endings: bool = False
    ) -> FileContent:
        """
        Read a text file with automatic encoding detection.

        Args:
            path: Path to the file
            encoding: Force specific encoding (auto-detect if None)
            normalize_line_endings: Convert all line endings to \\n

        Returns:
            FileContent with decoded text and metadata

        Raises:
            FileNotFoundError: If the file does not exist
            IsADirectoryError: If the path is a directory
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.is_dir():
            raise IsADirectoryError(f"Not a file: {path}")

        raw_content = path.read_bytes()
        size = len(raw_content)

        detected_encoding = encoding or (
            detect_encoding(raw_content) if raw_content else self.default_encoding
        )
        codec, bom_length = resolve_codec(detected_encoding, raw_content[:4])

        # Decode content
        content = raw_content[bom_length:].decode(codec, errors='replace')
        line_ending = detect_line_ending(raw_content[bom_length:], codec)

        if normalize_line_endings:
            content = content.replace('\r\n', '\n').replace('\r', '\n')
            lines = content.split('\n')
        else:
            lines = self._split_lines_preserve_endings(content)

        logging.debug(
            f"FileIOService - Read {path} ({size} bytes, {detected_encoding}, "
            f"{line_ending.name})"
        )

        return FileContent(
            content=content,
            lines=lines,
            encoding=detected_encoding,
            line_ending=line_ending,
            bom=bom_length > 0,
            size=size
        )

    def read_file(
        self,
        path: Path | str,
        encoding: Optional[str] = None,
        normalize_line_endings: bool = False
    ) -> ReadResult:
        """
        Read a text file, reporting failures in the result instead of raising.

        Used by UI callers that present the error message inline.
        """
        try:
            content = self.read_text(path, encoding, normalize_line_endings)
        except FileNotFoundError:
            return ReadResult(success=False, error=f"File not found: {path}")
        except IsADirectoryError:
            return ReadResult(success=False, error=f"Not a file: {path}")
        except PermissionError:
            return ReadResult(success=False, error=f"Permission denied: {path}")
        except LookupError:
            return ReadResult(success=False, error=f"Unknown encoding: {encoding}")
        except OSError as e:
            return ReadResult(success=False, error=f"OS error: {e}")

        return ReadResult(success=True, content=content)

    def _split_lines_preserve_endings(self, content: str) -> list[str]:
        """Split content on CRLF, LF and CR, preserving line endings."""
        lines = []
        start = 0
        i = 0
        length = len(content)

        while i < length:
            char = content[i]
            if char == '\n':
                lines.append(content[start:i + 1])
                start = i + 1
            elif char == '\r':
                if i + 1 < length and content[i + 1] == '\n':
                    i += 1
                lines.append(content[start:i + 1])
                start = i + 1
            i += 1

        if start < length:
            lines.append(content[start:])

        return lines

