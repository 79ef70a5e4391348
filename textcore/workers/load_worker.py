"""
Worker for progressively loading large files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject

from textcore.workers.base_worker import CancellableWorker
from textcore.services.mapped_source import LargeFileTextSource
from textcore.services.settings import SourceSettings


class LargeFileLoadWorker(CancellableWorker):
    """
    Worker that opens a large file and scans it batch by batch.

    Progress is reported as ``(scanned_bytes, file_size)`` after every
    batch and cancellation is checked between batches. The finished
    signal carries the open source, which the receiver then owns; a
    cancelled or failed load closes it.
    """

    def __init__(
        self,
        path: str | Path,
        encoding: Optional[str] = None,
        settings: Optional[SourceSettings] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(check_interval=1, parent=parent)
        self.path = Path(path)
        self.encoding = encoding
        self.settings = settings or SourceSettings()

    def do_work(self) -> Optional[LargeFileTextSource]:
        self.report_status(f"Opening {self.path.name}...")
        source = LargeFileTextSource(
            self.path,
            encoding=self.encoding,
            defer_scan=True,
            settings=self.settings
        )

        try:
            total = source.file_size
            done = source.is_fully_scanned
            while not done and not self.maybe_check_cancelled():
                done = source.scan_next_batch(self.settings.scan_batch_size)
                self.report_progress(
                    source.scanned_bytes, total,
                    f"{source.line_count} lines"
                )
        except Exception:
            source.close()
            raise

        # BaseWorker drops the result of a cancelled run
        if self.is_cancelled:
            logging.debug(f"LargeFileLoadWorker - Load of {self.path} cancelled")
            source.close()
            return None

        self.report_status(f"Loaded {source.line_count} lines ({source.encoding})")
        return source
