"""
Background Processing for Film Look Pipeline

This module contains the CaptureWorker class which runs full-capture
processing off the caller's thread so shutter response is never gated on
grading and encoding.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class CaptureWorker:
    """Background executor for capture processing units"""

    def __init__(self, max_workers: int = 1):
        self.max_workers = max(1, max_workers)
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                            thread_name_prefix="film-capture")
        logger.info(f"Initialized capture worker with {self.max_workers} workers")

    def submit(self, processing_func: Callable, *args, **kwargs) -> Future:
        """Queue one capture; errors surface through the returned future"""
        return self._executor.submit(processing_func, *args, **kwargs)

    def process_batch_parallel(self, items: List[Any], processing_func: Callable, **kwargs) -> List[Any]:
        """Process a batch of items and return results in input order"""

        def process_single(item):
            return processing_func(item, **kwargs)

        return list(self._executor.map(process_single, items))

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
