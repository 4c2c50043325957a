"""Tests pour src/data/sync/scheduler.py (planification des passes)."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

from src.data.sync.models import SyncResult
from src.data.sync.scheduler import StatSyncScheduler


class FakeEngine:
    """Moteur factice : compte les passes et peut simuler une passe en cours."""

    def __init__(self, idle: bool = True):
        self.idle = idle
        self.calls = 0
        self.ran = threading.Event()

    def is_idle(self) -> bool:
        return self.idle

    async def sync_all(self) -> SyncResult:
        self.calls += 1
        self.ran.set()
        return SyncResult()

    def run_blocking(self) -> SyncResult:
        self.calls += 1
        self.ran.set()
        return SyncResult()


class TestStatSyncScheduler:
    def test_disabled_when_interval_not_positive(self):
        for interval in (0, -5):
            scheduler = StatSyncScheduler(FakeEngine(), interval_minutes=interval)
            assert scheduler.enabled is False
            assert scheduler.start() is False
            assert scheduler.running is False

    def test_first_pass_after_initial_delay(self):
        engine = FakeEngine()
        scheduler = StatSyncScheduler(engine, interval_minutes=60, initial_delay_seconds=0.05)
        try:
            assert scheduler.start() is True
            assert scheduler.running is True
            assert engine.ran.wait(timeout=5)
        finally:
            scheduler.stop()
        assert scheduler.running is False
        assert engine.calls == 1

    def test_start_twice(self):
        scheduler = StatSyncScheduler(FakeEngine(), interval_minutes=60, initial_delay_seconds=60)
        try:
            assert scheduler.start() is True
            assert scheduler.start() is False
        finally:
            scheduler.stop()

    def test_stop_before_first_pass(self):
        engine = FakeEngine()
        scheduler = StatSyncScheduler(engine, interval_minutes=60, initial_delay_seconds=60)
        scheduler.start()
        started = time.monotonic()
        scheduler.stop()
        assert time.monotonic() - started < 3
        assert engine.calls == 0

    def test_busy_engine_skips_tick(self):
        engine = FakeEngine(idle=False)
        scheduler = StatSyncScheduler(engine, interval_minutes=60, initial_delay_seconds=0.0)
        try:
            scheduler.start()
            time.sleep(0.2)
        finally:
            scheduler.stop()
        assert engine.calls == 0

    def test_trigger_now_busy(self):
        engine = MagicMock()
        engine.is_idle.return_value = False
        scheduler = StatSyncScheduler(engine, interval_minutes=5)
        assert scheduler.trigger_now() is False
        engine.run_blocking.assert_not_called()

    def test_trigger_now_without_loop(self):
        engine = FakeEngine()
        scheduler = StatSyncScheduler(engine, interval_minutes=0)
        assert scheduler.trigger_now() is True
        assert engine.ran.wait(timeout=5)

    def test_trigger_now_with_running_loop(self):
        engine = FakeEngine()
        scheduler = StatSyncScheduler(engine, interval_minutes=60, initial_delay_seconds=60)
        try:
            scheduler.start()
            assert scheduler.trigger_now() is True
            assert engine.ran.wait(timeout=5)
        finally:
            scheduler.stop()
        assert engine.calls == 1
