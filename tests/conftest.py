# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar
"""Pytest configuration and fixtures."""

import gc
import sys
import time
import pytest
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def clean_gc_state():
    """Disable automatic collections so only gc.collect() fires hooks."""
    original_callbacks = list(gc.callbacks)
    was_enabled = gc.isenabled()
    gc.disable()
    gc.collect()

    yield

    gc.callbacks.clear()
    gc.callbacks.extend(original_callbacks)
    if was_enabled:
        gc.enable()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""
    def _wait_for(predicate, timeout=5.0, interval=0.005):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait_for


@pytest.fixture
def sample_script(tmp_path):
    """Create a sample Python script for testing."""
    script = tmp_path / "sample.py"
    script.write_text("""
import gc

# Force some GC activity
objects = []
for i in range(1000):
    node = [i] * 100
    node.append(node)
    objects.append(node)
    if i % 100 == 0:
        objects.clear()
gc.collect()

print("Sample script completed")
""")
    return script
