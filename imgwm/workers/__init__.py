"""
Workers Module - Async Thread Management
========================================
Contains QThread workers for non-blocking batch processing.

Components:
- ProcessWorker: Processes and watermarks image files with progress tracking
"""

from .process_worker import BatchConfig, ProcessResult, ProcessWorker

__all__ = [
    "BatchConfig",
    "ProcessResult",
    "ProcessWorker",
]
