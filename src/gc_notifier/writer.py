# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar

"""
Time-based buffering writer that drops its buffer after every collection

Data written to a BufferingWriter is buffered for up to `flush_every`
seconds, then written to `out` in a single call and the buffer is reused.
After a garbage collection the buffer is flushed and then discarded, so its
memory can be reclaimed instead of being held until the next burst of
writes. A real implementation would be more refined (resize on a threshold,
flush asynchronously, propagate errors, ...).
"""

from __future__ import annotations

import queue
import threading
from typing import BinaryIO, Optional

from .notifier import GCNotifier


class BufferingWriter:
    """File-like writer flushing on a timer and after every GC cycle."""

    def __init__(self, out: BinaryIO, flush_every: float = 0.1) -> None:
        self.out = out
        self.flush_every = flush_every
        self._lock = threading.Lock()
        self._buf = bytearray()
        self._closed = False
        self.gc_flushes = 0
        self._notifier = GCNotifier()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._notifier.after_gc(),),
            name="gc-notifier-writer",
            daemon=True,
        )
        self._thread.start()

    def _run(self, signal) -> None:
        while True:
            try:
                collected = signal.receive(timeout=self.flush_every)
            except queue.Empty:
                # time to flush the buffer, but reuse it for the next writes
                self._flush(reuse=True)
                continue
            if not collected:
                return
            # GC just ran: flush and then drop the buffer
            self._flush(reuse=False)
            self.gc_flushes += 1

    def _flush(self, reuse: bool) -> None:
        with self._lock:
            if self._buf:
                self.out.write(bytes(self._buf))
            if reuse:
                self._buf.clear()
            else:
                self._buf = bytearray()

    @property
    def buffered(self) -> int:
        with self._lock:
            return len(self._buf)

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data) -> int:
        if self._closed:
            raise ValueError("write to closed BufferingWriter")
        with self._lock:
            self._buf += data
        return len(data)

    def flush(self) -> None:
        self._flush(reuse=True)

    def close(self, timeout: Optional[float] = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._notifier.close()
        self._thread.join(timeout)
        self._flush(reuse=False)

    def __enter__(self) -> "BufferingWriter":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
