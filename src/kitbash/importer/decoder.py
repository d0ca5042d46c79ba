"""Background image decoding with a single-consumer result queue."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import List

import numpy as np

from kitbash.errors import DecodeError
from kitbash.io import decode_image

logger = logging.getLogger(__name__)


@dataclass
class DecodedImport:
    """A successfully decoded file waiting to be inserted into the tree."""

    name: str
    pixels: np.ndarray


@dataclass(frozen=True)
class ImportFailure:
    name: str
    reason: str


class ImportQueue:
    """Decodes submitted files on worker threads.

    Successful decodes are enqueued exactly once; failures are logged and
    recorded but never enqueued. ``drain`` is the only consumer.
    """

    def __init__(self) -> None:
        self._results: "queue.Queue[DecodedImport]" = queue.Queue()
        self._lock = threading.Lock()
        self._failures: List[ImportFailure] = []
        self._workers: List[threading.Thread] = []

    def submit(self, name: str, data: bytes) -> threading.Thread:
        """Start decoding ``data`` in the background."""

        def _run() -> None:
            try:
                pixels = decode_image(data, name)
            except DecodeError as exc:
                logger.warning("Failed to decode image: %s (%s)", name, exc.reason)
                with self._lock:
                    self._failures.append(ImportFailure(name=name, reason=exc.reason))
                return
            self._results.put(DecodedImport(name=name, pixels=pixels))

        thread = threading.Thread(target=_run, name=f"decode-{name}", daemon=True)
        with self._lock:
            self._workers = [worker for worker in self._workers if worker.is_alive()]
            self._workers.append(thread)
        thread.start()
        return thread

    def drain(self) -> List[DecodedImport]:
        """Pop every result that is ready, without blocking."""

        ready: List[DecodedImport] = []
        while True:
            try:
                ready.append(self._results.get_nowait())
            except queue.Empty:
                return ready

    def wait(self, timeout: float | None = None) -> None:
        """Block until every submitted decode has finished."""

        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)

    def pending(self) -> int:
        with self._lock:
            return sum(1 for worker in self._workers if worker.is_alive())

    def failures(self, clear: bool = False) -> List[ImportFailure]:
        with self._lock:
            failures = list(self._failures)
            if clear:
                self._failures.clear()
        return failures
