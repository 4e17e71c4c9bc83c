"""Bounded pool of OCR workers.

Each worker owns its own engine instance. Jobs are submitted to a shared
queue and callers await their own job's completion; no ordering between
jobs is guaranteed.
"""

import asyncio
import itertools
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

import numpy as np

from scanbatch.utils.logger import get_logger

from .tesseract_engine import OCRResult

logger = get_logger(__name__)


class Recognizer(Protocol):
    def recognize(self, image: np.ndarray) -> OCRResult: ...


class OCRPool:
    """Fixed-size OCR worker pool with lazy, single initialization.

    The pool is created by the first caller of :meth:`recognize`.
    Concurrent early callers wait on the same initialization instead of
    creating duplicate workers.

    Args:
        engine_factory: Creates one recognizer per worker.
        workers: Number of worker threads.
    """

    def __init__(
        self, engine_factory: Callable[[], Recognizer], workers: int = 4
    ) -> None:
        if workers < 1:
            raise ValueError("OCR pool needs at least one worker")
        self.engine_factory = engine_factory
        self.workers = workers
        self._executor: ThreadPoolExecutor | None = None
        self._engines: dict[str, Recognizer] = {}
        self._init_lock = asyncio.Lock()
        self._local = threading.local()
        self._counter = itertools.count()

    @property
    def started(self) -> bool:
        return self._executor is not None

    async def _ensure_started(self) -> ThreadPoolExecutor:
        if self._executor is not None:
            return self._executor
        async with self._init_lock:
            if self._executor is None:
                engines = [self.engine_factory() for _ in range(self.workers)]
                self._engines = {f"ocr-{i}": engine for i, engine in enumerate(engines)}
                self._counter = itertools.count()
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers,
                    thread_name_prefix="ocr",
                    initializer=self._bind_engine,
                )
                logger.info("OCR pool initialized with %d workers", self.workers)
        return self._executor

    def _bind_engine(self) -> None:
        self._local.engine = self._engines[f"ocr-{next(self._counter)}"]

    def _run(self, image: np.ndarray) -> OCRResult:
        return self._local.engine.recognize(image)

    async def recognize(self, image: np.ndarray) -> OCRResult:
        """Recognize ``image`` on the next free worker."""
        executor = await self._ensure_started()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self._run, image)

    async def shutdown(self) -> None:
        """Stop all workers; a later :meth:`recognize` starts a fresh pool."""
        async with self._init_lock:
            executor, self._executor = self._executor, None
            self._engines = {}
        if executor is not None:
            await asyncio.to_thread(executor.shutdown, wait=True)
            logger.info("OCR pool shut down")
