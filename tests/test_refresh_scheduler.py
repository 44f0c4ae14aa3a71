"""
Tests for engine/refresh_scheduler.py -- debounce and single-flight rules.

A fake clock drives the scheduler so no test sleeps.
"""

from unittest.mock import MagicMock

import pytest

from engine.refresh_scheduler import RefreshScheduler


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestDebounce:
    def test_burst_collapses_into_one_run(self, clock):
        action = MagicMock()
        scheduler = RefreshScheduler(action, delay=1.0, clock=clock)

        for _ in range(5):
            scheduler.request()
            clock.advance(0.2)
        assert scheduler.run_due() is False

        clock.advance(1.0)
        assert scheduler.run_due() is True
        action.assert_called_once_with()
        assert not scheduler.pending

    def test_each_request_pushes_deadline(self, clock):
        scheduler = RefreshScheduler(MagicMock(), delay=1.0, clock=clock)
        scheduler.request()
        clock.advance(0.9)
        scheduler.request()
        assert scheduler.time_until_due() == pytest.approx(1.0)

    def test_idle_has_no_deadline(self, clock):
        scheduler = RefreshScheduler(MagicMock(), clock=clock)
        assert scheduler.time_until_due() is None
        assert scheduler.run_due() is False

    def test_cancel(self, clock):
        action = MagicMock()
        scheduler = RefreshScheduler(action, delay=1.0, clock=clock)
        scheduler.request()
        scheduler.cancel()
        clock.advance(5)
        assert scheduler.run_due() is False
        action.assert_not_called()

    def test_flush_ignores_window(self, clock):
        action = MagicMock()
        scheduler = RefreshScheduler(action, delay=10.0, clock=clock)
        assert scheduler.flush() is False
        scheduler.request()
        assert scheduler.flush() is True
        action.assert_called_once()

    def test_negative_delay_clamped(self, clock):
        assert RefreshScheduler(MagicMock(), delay=-3, clock=clock).delay == 0.0


class TestSingleFlight:
    def test_request_during_run_queues_one_rerun(self, clock):
        scheduler = None
        calls = []

        def action():
            calls.append(clock())
            if len(calls) == 1:
                scheduler.request()
                scheduler.request()
                assert scheduler.run_due() is False

        scheduler = RefreshScheduler(action, delay=1.0, clock=clock)
        scheduler.request()
        clock.advance(1.0)
        scheduler.run_due()

        assert scheduler.pending
        assert scheduler.time_until_due() == pytest.approx(1.0)
        clock.advance(1.0)
        assert scheduler.run_due() is True
        assert len(calls) == 2
        assert scheduler.run_count == 2
        assert not scheduler.pending

    def test_drop_mode_discards_and_counts(self, clock):
        scheduler = None
        results = []

        def action():
            results.append(scheduler.request())

        scheduler = RefreshScheduler(action, delay=1.0, drop_while_running=True, clock=clock)
        scheduler.request()
        scheduler.flush()

        assert results == [False]
        assert scheduler.dropped_count == 1
        assert not scheduler.pending

    def test_running_flag_visible_inside_action(self, clock):
        seen = []
        scheduler = RefreshScheduler(lambda: seen.append(scheduler.running), clock=clock)
        scheduler.request()
        scheduler.flush()
        assert seen == [True]
        assert scheduler.running is False


class TestFailures:
    def test_failed_action_is_logged_and_scheduler_recovers(self, clock, caplog):
        action = MagicMock(side_effect=[RuntimeError("disk gone"), None])
        scheduler = RefreshScheduler(action, delay=0, clock=clock)

        scheduler.request()
        with caplog.at_level("ERROR"):
            assert scheduler.run_due() is True
        assert "Refresh failed" in caplog.text
        assert scheduler.running is False

        scheduler.request()
        assert scheduler.run_due() is True
        assert action.call_count == 2
