# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar

"""
Heap-size supervisor

Polls the process memory usage and forces a garbage collection (and, when
the system is short on memory, returns freed pages to the OS) once usage
crosses a configured budget. Configure it with PYMAXHEAP="<low>:<high>"
(bytes):

  "N"     collect whenever usage exceeds N
  "N:M"   budget is available system memory plus usage, clamped to [N, M]
  "N:"    no upper bound on the budget
  ":M"    no lower bound on the budget
  ""      unset, malformed or more than two fields: supervisor is idle

Nothing is started on import; call start_from_env() or use HeapSupervisor.
"""

from __future__ import annotations

import gc
import logging
import os
import threading
from typing import Optional, Tuple

from .memory import get_available_memory, get_memory_usage, release_os_memory

logger = logging.getLogger(__name__)

ENV_VAR = "PYMAXHEAP"
UNLIMITED = 2**64 - 1
DEFAULT_INTERVAL = 0.25

ACTION_NONE = "none"
ACTION_COLLECT = "collect"
ACTION_RELEASE = "release"

_limits_lock = threading.Lock()
_limits: Tuple[int, int] = (UNLIMITED, UNLIMITED)


def _parse_bound(part: str) -> Optional[int]:
    if not (part.isascii() and part.isdigit()):
        return None
    value = int(part)
    if value > UNLIMITED:
        return None
    return value


def parse_limits(value: Optional[str]) -> Tuple[int, int]:
    """Parse a "<low>:<high>" string into (low, high) byte limits."""
    if value is None:
        return UNLIMITED, UNLIMITED
    value = value.strip()
    parts = value.split(":")
    if value == "" or len(parts) > 2:
        return UNLIMITED, UNLIMITED

    low = 0
    if parts[0] != "":
        low = _parse_bound(parts[0])
        if low is None:
            return UNLIMITED, UNLIMITED

    if len(parts) == 1:
        return low, low

    high = UNLIMITED
    if parts[1] != "":
        high = _parse_bound(parts[1])
        if high is None:
            return UNLIMITED, UNLIMITED

    return low, high


def set_limits(low: int, high: int) -> None:
    """Set the process-wide limits. Ignored when low > high."""
    global _limits
    if low > high:
        logger.warning("Ignoring heap limits %d:%d (low > high)", low, high)
        return
    with _limits_lock:
        _limits = (low, high)


def get_limits() -> Tuple[int, int]:
    with _limits_lock:
        return _limits


def load_limits_from_env() -> Tuple[int, int]:
    """Read PYMAXHEAP into the process-wide limits and return them."""
    low, high = parse_limits(os.environ.get(ENV_VAR))
    set_limits(low, high)
    return low, high


class HeapSupervisor:
    """
    Background thread enforcing the heap limits every `interval` seconds.

    Explicit `low`/`high` override the process-wide limits for this
    supervisor only.
    """

    def __init__(self, interval: float = DEFAULT_INTERVAL,
                 low: Optional[int] = None, high: Optional[int] = None) -> None:
        if (low is None) != (high is None):
            raise ValueError("low and high must be given together")
        if low is not None and low > high:
            raise ValueError(f"low ({low}) must not exceed high ({high})")
        self.interval = interval
        self._limits = None if low is None else (low, high)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.collections = 0
        self.releases = 0

    @property
    def limits(self) -> Tuple[int, int]:
        if self._limits is not None:
            return self._limits
        return get_limits()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "HeapSupervisor":
        if self.running:
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="gc-notifier-maxheap",
            daemon=True,
        )
        self._thread.start()
        low, high = self.limits
        logger.debug("Heap supervisor started (low=%d, high=%d, interval=%ss)",
                     low, high, self.interval)
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.check()

    def check(self) -> str:
        """Enforce the limits once and return the action taken."""
        low, high = self.limits
        if low == UNLIMITED:
            return ACTION_NONE

        usage = get_memory_usage()

        if low == high:
            return self._collect(usage, low) if usage > low else ACTION_NONE

        available = get_available_memory()
        if available is None:
            return self._collect(usage, low) if usage > low else ACTION_NONE

        budget = min(max(available + usage, low), high)
        if usage <= budget:
            return ACTION_NONE

        action = self._collect(usage, budget)
        if available < usage - budget and release_os_memory():
            self.releases += 1
            logger.info("Released freed memory to the OS (available %d bytes)", available)
            return ACTION_RELEASE
        return action

    def _collect(self, usage: int, budget: int) -> str:
        collected = gc.collect()
        self.collections += 1
        logger.info("Heap usage %d over budget %d: collected %d objects",
                    usage, budget, collected)
        return ACTION_COLLECT


_supervisor: Optional[HeapSupervisor] = None
_supervisor_lock = threading.Lock()


def start_from_env(interval: float = DEFAULT_INTERVAL) -> HeapSupervisor:
    """Load PYMAXHEAP and start the process-wide supervisor."""
    global _supervisor
    load_limits_from_env()
    with _supervisor_lock:
        if _supervisor is None:
            _supervisor = HeapSupervisor(interval=interval)
        return _supervisor.start()


def stop() -> None:
    """Stop the process-wide supervisor, if running."""
    global _supervisor
    with _supervisor_lock:
        supervisor, _supervisor = _supervisor, None
    if supervisor is not None:
        supervisor.stop()
