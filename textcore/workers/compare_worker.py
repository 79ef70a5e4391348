"""
Workers for text comparison and substitution preview.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject

from textcore.workers.base_worker import CancellableWorker
from textcore.core.diff.text_diff import TextDiffEngine, TextCompareOptions
from textcore.core.models import DiffResult
from textcore.core.search.sed import SedCommand, SedCommandParser, SedPreview
from textcore.services.file_io import FileIOService
from textcore.services.settings import SubstitutionSettings


class TextCompareWorker(CancellableWorker):
    """
    Worker for comparing text files.

    Runs text diff engine in background thread.
    """

    def __init__(
        self,
        left_path: str | Path,
        right_path: str | Path,
        options: Optional[TextCompareOptions] = None,
        encoding: Optional[str] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.left_path = Path(left_path)
        self.right_path = Path(right_path)
        self.options = options or TextCompareOptions()
        self.encoding = encoding

    def do_work(self) -> Optional[DiffResult]:
        """Perform text comparison."""
        self.report_status(f"Comparing {self.left_path.name}...")

        file_io_service = FileIOService()

        self.report_progress(0, 100, "Reading left file...")
        left = self._read(file_io_service, self.left_path)
        self.check_cancelled()

        self.report_progress(50, 100, "Reading right file...")
        right = self._read(file_io_service, self.right_path)
        self.check_cancelled()

        self.report_status("Computing differences...")
        engine = TextDiffEngine(self.options)
        result = engine.compare(left, right, str(self.left_path), str(self.right_path))

        self.report_progress(100, 100, "Complete")
        self.report_status(f"Complete: {result.statistics}")
        return result

    def _read(self, file_io_service: FileIOService, path: Path) -> str:
        read_result = file_io_service.read_file(path, encoding=self.encoding)
        if not read_result.success:
            raise IOError(f"Failed to read {path}: {read_result.error}")
        return read_result.content.content


class TextCompareWorkerFromContent(CancellableWorker):
    """
    Worker for comparing text content directly.

    Useful when content is already in memory.
    """

    def __init__(
        self,
        left_content: str,
        right_content: str,
        left_label: str = "Left",
        right_label: str = "Right",
        options: Optional[TextCompareOptions] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.left_content = left_content
        self.right_content = right_content
        self.left_label = left_label
        self.right_label = right_label
        self.options = options or TextCompareOptions()

    def do_work(self) -> DiffResult:
        """Perform text comparison."""
        self.report_status("Computing differences...")

        engine = TextDiffEngine(self.options)
        return engine.compare(
            self.left_content,
            self.right_content,
            self.left_label,
            self.right_label
        )


class SedPreviewWorker(CancellableWorker):
    """
    Worker previewing a sed substitution over a text.

    Accepts either a parsed command or an expression string; an
    expression that does not parse fails the worker with ValueError.
    """

    def __init__(
        self,
        command: SedCommand | str,
        text: str,
        settings: Optional[SubstitutionSettings] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.command = command
        self.text = text
        self.parser = SedCommandParser(settings)

    def do_work(self) -> SedPreview:
        command = self.command
        if isinstance(command, str):
            ok, command = SedCommandParser.try_parse(command)
            if not ok:
                raise ValueError(f"Not a substitution expression: {self.command}")

        self.report_status(f"Applying {command}...")
        preview = self.parser.preview(command, self.text)
        self.report_status(
            f"{preview.match_count} replacements on {preview.changed_line_count} lines"
        )
        return preview
