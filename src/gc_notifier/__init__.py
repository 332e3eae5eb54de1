"""
pygcnotifier - Garbage collection cycle notifications for Python
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

Receive a notification after every garbage collection cycle, so that
long-running programs can drop speculative memory (caches, pools, buffers)
when it is convenient instead of when it is full.

Python does not guarantee that a collection will ever run: a short-lived
process, or one that calls gc.disable() and never gc.collect(), may receive
no notification at all.
"""

from .errors import AlreadyRegistered, InvalidIdentity, NotRegistered, RegistryError
from .notifier import GCNotifier, Signal, subscribe
from .registry import Pointer, PointerResetRegistry, add, register, remove, unregister
from .sentinel import AfterGC, after_gc

__version__ = "0.1.0"

__all__ = [
    "AfterGC",
    "AlreadyRegistered",
    "GCNotifier",
    "InvalidIdentity",
    "NotRegistered",
    "Pointer",
    "PointerResetRegistry",
    "RegistryError",
    "Signal",
    "add",
    "after_gc",
    "register",
    "remove",
    "subscribe",
    "unregister",
]
