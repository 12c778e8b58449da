"""
ExecutionContext, owns the resources shared by one pipeline run:
the worker pool, scratch space for intermediate files, the cancel flag
and, for the gRPC transport, the shuffle server.
"""

import os
import shutil
import logging
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import psutil

from anagram_mr.errors import JobCancelledError

logger = logging.getLogger(__name__)


class ExecutionContext:
    """Explicit replacement for a process-wide framework context.

    Create it in the entry point, hand it to the pipeline and close it with
    a ``with`` block::

        with ExecutionContext(max_workers=4) as ctx:
            AnagramPipeline(ctx, config).run()
    """

    def __init__(self, max_workers: int = 4, scratch_dir: Optional[str] = None,
                 shuffle_transport: str = 'local', shuffle_host: str = 'localhost',
                 shuffle_port: int = 0):
        self.max_workers = max_workers
        self.scratch_root = scratch_dir
        self.shuffle_transport = shuffle_transport
        self.shuffle_host = shuffle_host
        self.shuffle_port = shuffle_port

        self.scratch_dir: Optional[str] = None
        self.executor: Optional[ThreadPoolExecutor] = None
        self.shuffle_server = None
        self.process = psutil.Process()
        self.peak_memory_bytes = 0

        self._cancel_event = threading.Event()
        self._closed = False

    @classmethod
    def from_config(cls, config) -> 'ExecutionContext':
        return cls(
            max_workers=config.max_workers,
            scratch_dir=config.scratch_dir,
            shuffle_transport=config.shuffle_transport,
            shuffle_host=config.shuffle_host,
            shuffle_port=config.shuffle_port,
        )

    def __enter__(self) -> 'ExecutionContext':
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def open(self) -> 'ExecutionContext':
        """Allocate the worker pool, scratch space and shuffle server."""
        if self.executor is not None:
            return self

        if self.scratch_root:
            os.makedirs(self.scratch_root, exist_ok=True)
        self.scratch_dir = tempfile.mkdtemp(prefix='anagram-', dir=self.scratch_root)
        self.executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                           thread_name_prefix='anagram-worker')

        if self.shuffle_transport == 'grpc':
            # Imported here so the local transport never loads grpc
            from anagram_mr.shuffle_service import ShuffleServer
            server = ShuffleServer(self.intermediate_root, host=self.shuffle_host,
                                   port=self.shuffle_port)
            try:
                server.start()
            except Exception:
                self.close()
                raise
            self.shuffle_server = server

        logger.info(f"Execution context opened: {self.max_workers} worker(s), "
                    f"scratch={self.scratch_dir}, shuffle={self.shuffle_transport}")
        return self

    def close(self):
        """Release everything acquired in open(). Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        if self.shuffle_server is not None:
            self.shuffle_server.stop()
            self.shuffle_server = None
        if self.executor is not None:
            self.executor.shutdown(wait=True, cancel_futures=True)
            self.executor = None
        if self.scratch_dir and os.path.exists(self.scratch_dir):
            shutil.rmtree(self.scratch_dir, ignore_errors=True)
        logger.info("Execution context closed")

    @property
    def intermediate_root(self) -> str:
        if self.scratch_dir is None:
            raise RuntimeError("Execution context is not open")
        path = os.path.join(self.scratch_dir, 'intermediate')
        os.makedirs(path, exist_ok=True)
        return path

    @property
    def shuffle_address(self) -> Optional[str]:
        """Address reducers use to fetch intermediate files, None for local reads."""
        if self.shuffle_server is None:
            return None
        return self.shuffle_server.address

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        if self.executor is None:
            raise RuntimeError("Execution context is not open")
        self.check_cancelled()
        return self.executor.submit(fn, *args, **kwargs)

    def cancel(self):
        """Ask every running task to stop at its next checkpoint."""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested")
        self._cancel_event.set()

    def reset_cancel(self):
        """Clear the cancel flag before the next run on this context."""
        self._cancel_event.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def check_cancelled(self):
        if self._cancel_event.is_set():
            raise JobCancelledError("Job was cancelled")

    def get_memory_usage(self) -> int:
        """Current RSS in bytes; also tracks the peak seen so far."""
        rss = self.process.memory_info().rss
        if rss > self.peak_memory_bytes:
            self.peak_memory_bytes = rss
        return rss
