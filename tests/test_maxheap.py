# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar
"""Tests for the heap-size supervisor."""

import pytest
from unittest.mock import patch

from gc_notifier import maxheap
from gc_notifier.maxheap import (
    ACTION_COLLECT,
    ACTION_NONE,
    ACTION_RELEASE,
    UNLIMITED,
    HeapSupervisor,
    parse_limits,
)

MB = 1024 * 1024


@pytest.fixture
def restore_limits():
    original = maxheap.get_limits()
    yield
    maxheap.set_limits(*original)


class TestParseLimits:
    """Tests for PYMAXHEAP parsing."""

    def test_unset(self):
        """Test that a missing value means no limits."""
        assert parse_limits(None) == (UNLIMITED, UNLIMITED)
        assert parse_limits("") == (UNLIMITED, UNLIMITED)

    def test_single_threshold(self):
        """Test that a single value is used for both bounds."""
        assert parse_limits("1000") == (1000, 1000)

    def test_band(self):
        """Test parsing both bounds."""
        assert parse_limits("100:2000") == (100, 2000)

    def test_open_bounds(self):
        """Test that an empty side means no bound on that side."""
        assert parse_limits("100:") == (100, UNLIMITED)
        assert parse_limits(":2000") == (0, 2000)
        assert parse_limits(":") == (0, UNLIMITED)

    def test_whitespace_trimmed(self):
        """Test that surrounding whitespace is ignored."""
        assert parse_limits("  100:200\n") == (100, 200)

    @pytest.mark.parametrize("value", ["1:2:3", "abc", "10:abc", "-5", "1.5:2", "+5", "1 0", "²"])
    def test_malformed_means_unlimited(self, value):
        """Test that parse failures disable the supervisor."""
        assert parse_limits(value) == (UNLIMITED, UNLIMITED)

    def test_overflow_means_unlimited(self):
        """Test that values beyond 64 bits are rejected."""
        assert parse_limits(str(2**64)) == (UNLIMITED, UNLIMITED)

    def test_low_above_high_is_returned_as_is(self):
        """Test that parsing does not reorder bounds; set_limits rejects them."""
        assert parse_limits("5:3") == (5, 3)


class TestLimits:
    """Tests for the process-wide limits."""

    def test_set_get(self, restore_limits):
        maxheap.set_limits(10, 20)
        assert maxheap.get_limits() == (10, 20)

    def test_low_above_high_ignored(self, restore_limits):
        """Test that inverted limits leave the previous ones in place."""
        maxheap.set_limits(10, 20)
        maxheap.set_limits(30, 20)
        assert maxheap.get_limits() == (10, 20)

    def test_load_from_env(self, restore_limits, monkeypatch):
        monkeypatch.setenv(maxheap.ENV_VAR, "100:200")
        assert maxheap.load_limits_from_env() == (100, 200)
        assert maxheap.get_limits() == (100, 200)

    def test_load_from_env_unset(self, restore_limits, monkeypatch):
        monkeypatch.delenv(maxheap.ENV_VAR, raising=False)
        assert maxheap.load_limits_from_env() == (UNLIMITED, UNLIMITED)


class TestSupervisorInit:
    """Tests for HeapSupervisor configuration."""

    def test_defaults(self, restore_limits):
        maxheap.set_limits(UNLIMITED, UNLIMITED)
        supervisor = HeapSupervisor()

        assert supervisor.interval == maxheap.DEFAULT_INTERVAL
        assert supervisor.limits == (UNLIMITED, UNLIMITED)
        assert supervisor.running is False

    def test_explicit_limits_override_global(self, restore_limits):
        maxheap.set_limits(1, 2)
        supervisor = HeapSupervisor(low=10, high=20)
        assert supervisor.limits == (10, 20)

    def test_half_limits_rejected(self):
        with pytest.raises(ValueError):
            HeapSupervisor(low=10)

    def test_inverted_limits_rejected(self):
        with pytest.raises(ValueError):
            HeapSupervisor(low=20, high=10)


class TestSupervisorCheck:
    """Tests for one enforcement tick."""

    def test_idle_when_unlimited(self):
        supervisor = HeapSupervisor(low=UNLIMITED, high=UNLIMITED)
        with patch.object(maxheap, 'get_memory_usage') as usage:
            assert supervisor.check() == ACTION_NONE
            usage.assert_not_called()

    def test_single_threshold_under(self):
        supervisor = HeapSupervisor(low=100 * MB, high=100 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=50 * MB), \
                patch.object(maxheap.gc, 'collect') as collect:
            assert supervisor.check() == ACTION_NONE
            collect.assert_not_called()

    def test_single_threshold_over(self):
        supervisor = HeapSupervisor(low=100 * MB, high=100 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=150 * MB), \
                patch.object(maxheap.gc, 'collect', return_value=0) as collect:
            assert supervisor.check() == ACTION_COLLECT
            collect.assert_called_once_with()
        assert supervisor.collections == 1

    def test_band_within_budget(self):
        """Test that plenty of available memory raises the budget to high."""
        supervisor = HeapSupervisor(low=100 * MB, high=500 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=300 * MB), \
                patch.object(maxheap, 'get_available_memory', return_value=4000 * MB), \
                patch.object(maxheap.gc, 'collect') as collect:
            assert supervisor.check() == ACTION_NONE
            collect.assert_not_called()

    def test_band_over_high(self):
        """Test that usage above high collects without releasing."""
        supervisor = HeapSupervisor(low=100 * MB, high=500 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=600 * MB), \
                patch.object(maxheap, 'get_available_memory', return_value=4000 * MB), \
                patch.object(maxheap, 'release_os_memory') as release, \
                patch.object(maxheap.gc, 'collect', return_value=0):
            assert supervisor.check() == ACTION_COLLECT
            release.assert_not_called()

    def test_band_low_memory_releases(self):
        """Test that a memory-starved system also returns pages to the OS."""
        supervisor = HeapSupervisor(low=100 * MB, high=300 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=400 * MB), \
                patch.object(maxheap, 'get_available_memory', return_value=10 * MB), \
                patch.object(maxheap, 'release_os_memory', return_value=True) as release, \
                patch.object(maxheap.gc, 'collect', return_value=0) as collect:
            assert supervisor.check() == ACTION_RELEASE
            collect.assert_called_once_with()
            release.assert_called_once_with()
        assert supervisor.collections == 1
        assert supervisor.releases == 1

    def test_band_release_unsupported(self):
        """Test that a platform without malloc_trim reports a plain collection."""
        supervisor = HeapSupervisor(low=100 * MB, high=300 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=400 * MB), \
                patch.object(maxheap, 'get_available_memory', return_value=10 * MB), \
                patch.object(maxheap, 'release_os_memory', return_value=False), \
                patch.object(maxheap.gc, 'collect', return_value=0):
            assert supervisor.check() == ACTION_COLLECT
        assert supervisor.releases == 0

    def test_band_unknown_available_falls_back_to_low(self):
        supervisor = HeapSupervisor(low=100 * MB, high=500 * MB)
        with patch.object(maxheap, 'get_memory_usage', return_value=150 * MB), \
                patch.object(maxheap, 'get_available_memory', return_value=None), \
                patch.object(maxheap.gc, 'collect', return_value=0) as collect:
            assert supervisor.check() == ACTION_COLLECT
            collect.assert_called_once_with()


class TestSupervisorThread:
    """Tests for the background polling thread."""

    def test_start_stop(self, wait_for):
        supervisor = HeapSupervisor(interval=0.01, low=UNLIMITED, high=UNLIMITED)
        with patch.object(HeapSupervisor, 'check', return_value=ACTION_NONE) as check:
            supervisor.start()
            assert supervisor.running is True
            assert wait_for(lambda: check.call_count >= 2)
            supervisor.stop(timeout=5)

        assert supervisor.running is False

    def test_start_twice_is_noop(self):
        supervisor = HeapSupervisor(interval=10, low=UNLIMITED, high=UNLIMITED)
        supervisor.start()
        thread = supervisor._thread
        supervisor.start()

        assert supervisor._thread is thread
        supervisor.stop(timeout=5)

    def test_start_from_env(self, restore_limits, monkeypatch):
        monkeypatch.setenv(maxheap.ENV_VAR, "")
        supervisor = maxheap.start_from_env(interval=10)
        try:
            assert supervisor.running is True
            assert maxheap.start_from_env(interval=10) is supervisor
        finally:
            maxheap.stop()
        assert supervisor.running is False
