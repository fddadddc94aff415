"""
Tests for the per-position lock registry.

Source: tradejournal/services/locks.py
"""

import threading

import pytest

from tradejournal.services.locks import PositionLockRegistry


class TestPositionLockRegistry:
    def test_entries_dropped_after_release(self):
        registry = PositionLockRegistry()
        with registry.hold("pos-b", "pos-a"):
            assert registry.active_ids() == ["pos-a", "pos-b"]
        assert registry.active_ids() == []

    def test_duplicate_ids_held_once(self):
        registry = PositionLockRegistry()
        with registry.hold("pos-a", "pos-a"):
            assert registry.active_ids() == ["pos-a"]
        assert registry.active_ids() == []

    def test_waiter_keeps_entry_alive(self):
        registry = PositionLockRegistry()
        entered = threading.Event()

        def wait_for_lock():
            with registry.hold("pos-a"):
                entered.set()

        waiter = threading.Thread(target=wait_for_lock)
        with registry.hold("pos-a"):
            waiter.start()
            assert not entered.wait(timeout=0.2)
        waiter.join()

        assert entered.is_set()
        assert registry.active_ids() == []

    def test_released_on_error(self):
        registry = PositionLockRegistry()
        with pytest.raises(RuntimeError):
            with registry.hold("pos-a"):
                raise RuntimeError("boom")
        with registry.hold("pos-a"):
            assert registry.active_ids() == ["pos-a"]
