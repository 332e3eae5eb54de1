# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar

"""
Notification watcher used by `pygcnotifier watch`

A consumer thread receives GC notifications and compares how many it got
with how many collections CPython reports, while the main thread churns
memory to keep the collector busy.
"""

from __future__ import annotations

import gc
import threading
import time
from typing import Any, Dict, List, Optional

from .memory import get_memory_usage
from .notifier import GCNotifier


def total_collections() -> int:
    """Collections of every generation since interpreter start."""
    return sum(generation['collections'] for generation in gc.get_stats())


class NotificationWatcher:
    """Receive notifications in a background thread and record them."""

    def __init__(self, logger=None) -> None:
        self.logger = logger
        self.events: List[Dict[str, Any]] = []
        self._start_collections = total_collections()
        self._notifier = GCNotifier()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._notifier.after_gc(),),
            name="gc-notifier-watch",
            daemon=True,
        )

    def start(self) -> "NotificationWatcher":
        self._thread.start()
        return self

    def _run(self, signal) -> None:
        waited_from = time.perf_counter()
        for _ in signal:
            now = time.perf_counter()
            event = {
                'timestamp': time.time(),
                'notifications': len(self.events) + 1,
                'collections': total_collections() - self._start_collections,
                'waited_ms': (now - waited_from) * 1000.0,
                'rss': get_memory_usage(),
            }
            self.events.append(event)
            if self.logger is not None:
                self.logger.log_notification(event)
            waited_from = now

    def stop(self, timeout: Optional[float] = 5.0) -> Dict[str, Any]:
        self._notifier.close()
        self._thread.join(timeout)
        collections = total_collections() - self._start_collections
        return {
            'notifications': len(self.events),
            'collections': collections,
            'coalesced': max(collections - len(self.events), 0),
        }


def churn_memory(duration: float, alloc_kb: int, pause_ms: float) -> int:
    """Allocate and drop short-lived cyclic garbage for `duration` seconds."""
    deadline = time.monotonic() + duration
    iterations = 0
    while time.monotonic() < deadline:
        iterations += 1
        data = []
        for _ in range(max(alloc_kb, 1)):
            node = [bytearray(1024)]
            node.append(node)
            data.append(node)
        del data
        if pause_ms > 0:
            time.sleep(pause_ms / 1000.0)
    return iterations
