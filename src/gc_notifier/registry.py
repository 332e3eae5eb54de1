# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar

"""
Pointer reset registry

Share one GCNotifier between any number of "clear this after every
collection" registrations. The notifier and its dispatch thread are started
when the first identity is registered and closed when the last one is
removed.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Optional

from .errors import AlreadyRegistered, InvalidIdentity, NotRegistered
from .notifier import GCNotifier, Signal

logger = logging.getLogger(__name__)


def _is_empty_identity(identity: Any) -> bool:
    if identity is None:
        return True
    return isinstance(identity, (str, bytes)) and len(identity) == 0


class PointerResetRegistry:
    """
    Run every registered reset action after each garbage collection cycle.

    A single lock guards the slot table, the shared notifier and every
    dispatch pass, so a pass either fully precedes or fully follows a
    register/unregister call. Reset actions run in the dispatch thread in no
    particular order; they must be cheap, must not raise and must not call
    back into the registry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slots: Dict[Hashable, Callable[[], Any]] = {}
        self._notifier: Optional[GCNotifier] = None
        self._thread: Optional[threading.Thread] = None

    def register(self, identity: Hashable, reset: Callable[[], Any]) -> None:
        """Associate reset with identity. Raises InvalidIdentity or AlreadyRegistered."""
        if _is_empty_identity(identity):
            raise InvalidIdentity(identity)

        with self._lock:
            if identity in self._slots:
                raise AlreadyRegistered(identity)

            if self._notifier is None:
                self._start()

            self._slots[identity] = reset

    def unregister(self, identity: Hashable) -> None:
        """Remove identity. Raises InvalidIdentity or NotRegistered."""
        if _is_empty_identity(identity):
            raise InvalidIdentity(identity)

        with self._lock:
            if identity not in self._slots:
                raise NotRegistered(identity)

            del self._slots[identity]

            if not self._slots:
                self._stop()

    @property
    def active(self) -> bool:
        """Whether the shared notifier currently exists."""
        with self._lock:
            return self._notifier is not None

    def __contains__(self, identity: Hashable) -> bool:
        with self._lock:
            return identity in self._slots

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def _start(self) -> None:
        notifier = GCNotifier()
        signal = notifier.after_gc()
        thread = threading.Thread(
            target=self._run,
            args=(signal,),
            name="gc-notifier-reset",
            daemon=True,
        )
        self._notifier = notifier
        self._thread = thread
        thread.start()
        logger.debug("Started shared GC notifier")

    def _stop(self) -> None:
        # Closing wakes the dispatch thread with end-of-stream.
        self._notifier.close()
        self._notifier = None
        self._thread = None
        logger.debug("Closed shared GC notifier")

    def _run(self, signal: Signal) -> None:
        for _ in signal:
            with self._lock:
                if signal.closed:
                    break
                for reset in self._slots.values():
                    reset()


class Pointer:
    """
    A reference that the registry clears after every collection.

    load() and store() are single attribute operations, so they are atomic
    with respect to the dispatch thread.
    """

    __slots__ = ('_value', '__weakref__')

    def __init__(self, value: Any = None) -> None:
        self._value = value

    def load(self) -> Any:
        return self._value

    def store(self, value: Any) -> None:
        self._value = value

    def swap(self, value: Any) -> Any:
        old, self._value = self._value, value
        return old

    def reset(self) -> None:
        self._value = None

    def __repr__(self) -> str:
        return f"<Pointer {self._value!r}>"


registry = PointerResetRegistry()


def register(identity: Hashable, reset: Callable[[], Any]) -> None:
    """Register identity with the process-wide registry."""
    registry.register(identity, reset)


def unregister(identity: Hashable) -> None:
    """Remove identity from the process-wide registry."""
    registry.unregister(identity)


def add(pointer: Pointer) -> None:
    """Clear pointer after every collection until remove() is called."""
    if pointer is None:
        raise InvalidIdentity(pointer)
    registry.register(pointer, pointer.reset)


def remove(pointer: Pointer) -> None:
    registry.unregister(pointer)
