"""Tests for the background refresh timers."""

import threading
from unittest.mock import MagicMock

from agentwatch.models import ProjectDirectory
from agentwatch.monitor import Monitor, PeriodicTask


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    def test_runs_until_stopped(self):
        ran = threading.Event()
        func = MagicMock(side_effect=ran.set)
        task = PeriodicTask('test', 0.01, func)

        task.start()
        assert ran.wait(timeout=2)
        task.stop()

        assert not task.is_running()
        assert func.call_count >= 1

    def test_failed_run_does_not_stop_loop(self):
        calls = []
        done = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError('boom')
            done.set()

        task = PeriodicTask('flaky', 0.01, flaky)
        task.start()
        assert done.wait(timeout=2)
        task.stop()

        assert len(calls) >= 2

    def test_run_once_logs_exception(self, caplog):
        task = PeriodicTask('broken', 1, MagicMock(side_effect=ValueError('bad')))

        task.run_once()

        assert 'broken refresh failed' in caplog.text

    def test_start_twice_keeps_one_thread(self):
        task = PeriodicTask('test', 10, MagicMock())
        task.start()
        thread = task._thread
        task.start()

        assert task._thread is thread
        task.stop()

    def test_stop_without_start(self):
        task = PeriodicTask('test', 1, MagicMock())
        task.stop()
        assert not task.is_running()


class TestMonitor:
    """Tests for Monitor."""

    def make_monitor(self):
        process_monitor = MagicMock()
        repository = MagicMock()
        repository.get_projects.return_value = [
            ProjectDirectory('-a', '/a'),
            ProjectDirectory('-b', '/b'),
        ]
        repository.prune_cache.return_value = 0
        return Monitor(process_monitor, repository, process_interval=0.01, session_interval=0.01)

    def test_refresh_projects_prunes_cache(self):
        monitor = self.make_monitor()

        monitor.refresh_projects()

        assert monitor.project_count == 2
        monitor.repository.prune_cache.assert_called_once()

    def test_start_and_stop(self):
        monitor = self.make_monitor()
        refreshed = threading.Event()
        monitor.process_monitor.refresh.side_effect = lambda: refreshed.set()

        monitor.start()
        assert monitor.is_running()
        assert refreshed.wait(timeout=2)
        monitor.stop()

        assert not monitor.is_running()
