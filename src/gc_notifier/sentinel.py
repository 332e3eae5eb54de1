"""
Self re-arming garbage collection hook
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

How it works:
- A sentinel object references itself, so reference counting can never free
  it; only a cycle of the garbage collector can
- A weak reference to the sentinel carries the callback; CPython runs it when
  the collector clears the sentinel, i.e. once per collection
- The callback arms a fresh sentinel before calling the user function, which
  turns the single-shot weakref callback into one call per collection

What we NEVER do in the callback:
- Take a lock (the collector may run while any lock is held by this thread)
- I/O or logging
- Catch exceptions raised by the user function
"""

import weakref


class _Sentinel:
    """Throwaway object that only the cyclic collector can reclaim."""

    __slots__ = ('cycle', '__weakref__')

    def __init__(self):
        self.cycle = self


# Armed engines are rooted here so that they keep firing when the caller drops
# its handle. set.add/set.discard do not run Python code, which keeps them
# safe to call from inside a collection.
_live = set()


class AfterGC:
    """
    Call a function after every garbage collection cycle until stopped.

    Low level interface: the function runs inside the collector, in whatever
    thread triggered the collection. It must be quick, must not block and must
    not raise. If it needs to do real work it should hand off to another
    thread (see GCNotifier for a safer alternative).
    """

    __slots__ = ('_fn', '_stopped', '_ref', '__weakref__')

    def __init__(self, fn):
        self._fn = fn
        self._stopped = False
        self._ref = None
        _live.add(self)
        self._arm()

    def _arm(self):
        self._ref = weakref.ref(_Sentinel(), self._fire)

    def _fire(self, _ref):
        if self._stopped:
            _live.discard(self)
            return
        self._arm()
        self._fn()

    @property
    def stopped(self):
        return self._stopped

    def stop(self):
        """Stop calling the function. Idempotent and safe from any thread."""
        self._stopped = True
        _live.discard(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def __repr__(self):
        state = 'stopped' if self._stopped else 'armed'
        return f"<AfterGC {self._fn!r} {state}>"


def after_gc(fn):
    """
    Execute fn after each garbage collection cycle.

    Returns the AfterGC handle; call its stop() method to stop the
    notifications. If stop() is never called, fn keeps running after every
    collection until the process exits.
    """
    return AfterGC(fn)


def live_count():
    """Number of armed AfterGC hooks in the process."""
    return len(_live)
