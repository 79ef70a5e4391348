"""
Background workers for non-blocking operations.

Provides QThread-based workers for:
- Progressive loading of large files
- Text comparison
- Substitution preview

All workers use Qt signals for thread-safe communication
with the UI thread.
"""

from textcore.workers.base_worker import (
    BaseWorker,
    WorkerSignals,
    WorkerState,
    ProgressInfo,
    CancellableWorker,
    CancelledException,
)
from textcore.workers.load_worker import (
    LargeFileLoadWorker,
)
from textcore.workers.compare_worker import (
    TextCompareWorker,
    TextCompareWorkerFromContent,
    SedPreviewWorker,
)

__all__ = [
    # Base
    'BaseWorker',
    'WorkerSignals',
    'WorkerState',
    'ProgressInfo',
    'CancellableWorker',
    'CancelledException',
    # Load
    'LargeFileLoadWorker',
    # Compare
    'TextCompareWorker',
    'TextCompareWorkerFromContent',
    'SedPreviewWorker',
]
