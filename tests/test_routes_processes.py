"""Tests for process, health and log routes."""

import logging
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from agentwatch.detection.processes import ProcessCensus, ProcessMonitor
from agentwatch.detection.sampler import ResourceSampler
from agentwatch.logging_config import get_log_buffer_handler
from agentwatch.server import app

from conftest import FakeIntrospection, FakeProcess


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def process_monitor():
    introspection = FakeIntrospection({
        200: FakeProcess(name='claude', ppid=None, cwd='/Users/test/project'),
        201: FakeProcess(name='claude', ppid=200),
    })
    census = ProcessCensus(introspection, ResourceSampler(introspection, core_count=4))
    monitor = ProcessMonitor(census)
    with patch('agentwatch.routes.processes.get_process_monitor', return_value=monitor):
        yield monitor


class TestListProcesses:
    """Tests for GET /api/processes endpoint."""

    def test_returns_main_processes(self, client, process_monitor):
        response = client.get('/api/processes')

        assert response.status_code == 200
        data = response.json()
        assert [p['pid'] for p in data['processes']] == [200]
        assert data['processes'][0]['cwd'] == '/Users/test/project'
        assert data['stats']['totalProcesses'] == 1

    def test_include_helpers(self, client, process_monitor):
        response = client.get('/api/processes', params={'include_helpers': True})

        data = response.json()
        assert sorted(p['pid'] for p in data['processes']) == [200, 201]
        assert data['stats']['helperProcesses'] == 1

    def test_includes_timestamp(self, client, process_monitor):
        data = client.get('/api/processes').json()
        timestamp = datetime.fromisoformat(data['timestamp'])
        assert timestamp is not None

    def test_uses_background_result(self, client, process_monitor):
        """Once a census has run, requests serve the stored result."""
        process_monitor.refresh()
        del process_monitor.census.introspection.processes[200]

        data = client.get('/api/processes').json()

        assert [p['pid'] for p in data['processes']] == [200]

    def test_helper_choice_is_per_request(self, client, process_monitor):
        """Alternating requests neither leak helpers nor force a new census."""
        with patch.object(process_monitor, 'refresh', wraps=process_monitor.refresh) as refresh:
            with_helpers = client.get('/api/processes', params={'include_helpers': True}).json()
            without_helpers = client.get('/api/processes').json()
            client.get('/api/processes', params={'include_helpers': True})
            again_without = client.get('/api/processes').json()

        assert refresh.call_count == 1
        assert sorted(p['pid'] for p in with_helpers['processes']) == [200, 201]
        for data in (without_helpers, again_without):
            assert [p['isHelper'] for p in data['processes']] == [False]
            assert data['stats']['helperProcesses'] == 0
            assert data['stats']['totalProcesses'] == 1

    def test_request_does_not_change_monitor(self, client, process_monitor):
        process_monitor.refresh()
        client.get('/api/processes', params={'include_helpers': True})

        assert [p.pid for p in process_monitor.get_processes()] == [200]


class TestGetProcess:
    """Tests for GET /api/processes/{pid} endpoint."""

    def test_found(self, client, process_monitor):
        response = client.get('/api/processes/200')

        assert response.status_code == 200
        assert response.json()['pid'] == 200

    def test_not_found(self, client, process_monitor):
        assert client.get('/api/processes/999').status_code == 404

    def test_other_program_not_found(self, client, process_monitor):
        process_monitor.census.introspection.processes[300] = FakeProcess(name='zsh', exe='/bin/zsh')
        assert client.get('/api/processes/300').status_code == 404


class TestHealth:
    """Tests for GET /api/health endpoint."""

    @patch('agentwatch.server.get_monitor')
    def test_health(self, mock_get_monitor, client):
        monitor = MagicMock()
        monitor.is_running.return_value = False
        monitor.repository.cache.__len__.return_value = 3
        mock_get_monitor.return_value = monitor

        response = client.get('/api/health')

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ok'
        assert data['monitorRunning'] is False
        assert data['cachedSessions'] == 3


class TestLogs:
    """Tests for GET /api/logs endpoint."""

    @pytest.fixture(autouse=True)
    def buffer(self):
        handler = get_log_buffer_handler()
        handler.clear_buffer()
        for name, message in [
            ('agentwatch.census', 'census one'),
            ('agentwatch.cache', 'cache one'),
            ('agentwatch.census', 'census two'),
        ]:
            handler.emit(logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None))
        yield handler
        handler.clear_buffer()

    def test_recent_logs(self, client):
        data = client.get('/api/logs', params={'count': 2}).json()
        assert [e['message'] for e in data['logs']] == ['cache one', 'census two']

    def test_filter_by_namespace(self, client):
        data = client.get('/api/logs', params={'namespace': 'census'}).json()
        assert [e['message'] for e in data['logs']] == ['census one', 'census two']
        assert 'census' in data['namespaces']

    def test_count_bounds(self, client):
        assert client.get('/api/logs', params={'count': -1}).status_code == 422
