from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from textcore.services.settings import SourceSettings


@pytest.fixture(scope="session")
def qapp():
    """A QCoreApplication for tests that exercise Qt workers."""
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def write_bytes(tmp_path: Path) -> Callable[..., Path]:
    """Write raw bytes to a file under ``tmp_path`` and return its path."""
    def _write(data: bytes, name: str = "data.txt") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture
def write_text(write_bytes) -> Callable[..., Path]:
    """Encode text with ``encoding`` (UTF-8 by default) and write it."""
    def _write(text: str, name: str = "data.txt", encoding: str = "utf-8") -> Path:
        return write_bytes(text.encode(encoding), name)
    return _write


@pytest.fixture
def tiny_chunks() -> SourceSettings:
    """Settings with the smallest chunks and a two-chunk cache."""
    return SourceSettings(chunk_size_bytes=16, cache_capacity=2)


@pytest.fixture
def multibyte_text() -> str:
    return "".join(f"line {i}: héllo wörld € 中文\n" for i in range(40))
