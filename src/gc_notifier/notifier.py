"""
GC cycle notification channel
Copyright (C) 2024  Akshat Kotpalliwar

This library is free software; you can redistribute it and/or
modify it under the terms of the GNU Lesser General Public
License as published by the Free Software Foundation; either
version 2.1 of the License, or (at your option) any later version.

This library is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with this library; if not, see <https://www.gnu.org/licenses/>.

A GCNotifier owns one AfterGC hook and a Signal. The hook pushes a token
into the signal after every collection; consumers receive tokens from the
signal in their own threads.

Only one token can be pending: if the consumer has not received the previous
one, the next collection is dropped. A received token therefore means "at
least one collection completed since you last checked", never how many.

To minimize the load on the collector, code that runs after receiving a
notification should avoid allocating, or at least allocate much less than it
frees in response to the notification.
"""

import queue
import weakref

from .sentinel import after_gc

_TOKEN = object()
_CLOSED = object()


class Signal:
    """Consumer side of a GCNotifier: a capacity-1 coalescing token slot."""

    __slots__ = ('_queue', '_closed')

    def __init__(self):
        # SimpleQueue.put is reentrant, so it may be called from inside a
        # collection even while this thread is blocked in get().
        self._queue = queue.SimpleQueue()
        self._closed = False

    def _push(self):
        # Runs inside the collector. Producers are serialized by the
        # collector itself, so checking empty() first keeps at most one item.
        if self._closed:
            return
        if self._queue.empty():
            self._queue.put(_TOKEN)

    def _close(self):
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSED)

    @property
    def closed(self):
        return self._closed

    def receive(self, timeout=None):
        """
        Wait for the next notification.

        Returns True when at least one collection completed since the last
        receive, False once the notifier is closed. With a timeout, raises
        queue.Empty if neither happens in time.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED or self._closed:
            # Keep end-of-stream visible to every later receive.
            self._queue.put(_CLOSED)
            return False
        return True

    def poll(self):
        """Consume a pending notification without blocking."""
        try:
            return self.receive(timeout=0)
        except queue.Empty:
            return False

    def __iter__(self):
        while self.receive():
            yield None

    def __repr__(self):
        state = 'closed' if self._closed else 'open'
        return f"<Signal {state}>"


def _teardown(hook, signal):
    hook.stop()
    signal._close()


class GCNotifier:
    """
    Receive a notification after every garbage collection cycle.

    Notifications continue until close() is called or the GCNotifier itself
    is garbage collected. Neither the hook nor the signal reference the
    GCNotifier, so a consumer that keeps only the signal returned by
    after_gc() sees end-of-stream once the notifier is dropped.

    Use one GCNotifier per receiver: a token is consumed by whoever receives
    it first.
    """

    def __init__(self):
        self._signal = Signal()
        self._hook = after_gc(self._signal._push)
        self._finalizer = weakref.finalize(self, _teardown, self._hook, self._signal)

    def after_gc(self):
        """Return the Signal that receives a token after every collection."""
        return self._signal

    @property
    def closed(self):
        return not self._finalizer.alive

    def close(self):
        """
        Stop and release the notifier. Receivers blocked on the signal wake up
        with end-of-stream. Safe to call more than once and from any thread.
        """
        self._finalizer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __iter__(self):
        return iter(self._signal)

    def __repr__(self):
        state = 'closed' if self.closed else 'armed'
        return f"<GCNotifier {state}>"


def subscribe():
    """Create and arm a GCNotifier, returning (signal, notifier)."""
    notifier = GCNotifier()
    return notifier.after_gc(), notifier
