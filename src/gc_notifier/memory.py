"""
Process memory utilities for pygcnotifier
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

Used by the heap supervisor, never from inside a collection:
- NEVER calls gc.get_objects() - this scans the entire object graph
- Uses psutil for process and system memory measurement
"""

import ctypes
import ctypes.util
import logging
import os
import sys
from typing import Optional, Protocol

import psutil

logger = logging.getLogger(__name__)


class _MemoryProcess(Protocol):
    def memory_info(self):
        ...


_libc = None


def get_memory_usage() -> int:
    """Get current process memory usage (RSS) in bytes."""
    process: _MemoryProcess = psutil.Process(os.getpid())
    return process.memory_info().rss


def get_available_memory() -> Optional[int]:
    """
    Get the memory available to new allocations system-wide, in bytes.

    Returns None when psutil cannot read it on this platform.
    """
    try:
        return psutil.virtual_memory().available
    except (psutil.Error, OSError) as exc:
        logger.debug("Cannot read system memory: %s", exc)
        return None


def release_os_memory() -> bool:
    """
    Return freed heap pages to the operating system.

    Only glibc exposes this (malloc_trim); returns False elsewhere.
    """
    global _libc
    if not sys.platform.startswith("linux"):
        return False
    if _libc is None:
        name = ctypes.util.find_library("c") or "libc.so.6"
        try:
            _libc = ctypes.CDLL(name)
        except OSError as exc:
            logger.debug("Cannot load %s: %s", name, exc)
            return False
    trim = getattr(_libc, "malloc_trim", None)
    if trim is None:
        return False
    trim(0)
    return True
