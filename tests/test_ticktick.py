"""
Tests for the TickTick API client and integration
"""

import json
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from integrations.ticktick import TickTickAPIError, TickTickClient, TickTickIntegration, make_device_header


def fake_response(status=200, text='{}'):
    response = Mock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    return response


@pytest.fixture
def client():
    return TickTickClient('ticktick.com', 'secret-token', timeout=5)


class TestTickTickClient:
    """HTTP request shaping and error mapping"""

    def test_missing_credentials(self):
        with pytest.raises(ValueError, match="Missing baseURL/token"):
            TickTickClient('ticktick.com', None)
        with pytest.raises(ValueError, match="Missing baseURL/token"):
            TickTickClient('', 'token')

    def test_api_root(self, client):
        assert client.api_root == "https://api.ticktick.com/api/v2"

    def test_headers_carry_token(self, client):
        headers = client.headers()
        assert headers['t'] == 'secret-token'
        assert headers['Cookie'] == "t=secret-token;"
        assert json.loads(headers['x-device'])['platform'] == 'web'

    def test_device_id_is_random(self):
        first = json.loads(make_device_header())['id']
        second = json.loads(make_device_header())['id']
        assert first.startswith('66') and len(first) == 24
        assert first != second

    @patch('integrations.ticktick.requests.request')
    def test_json_body_decoded(self, mock_request, client):
        mock_request.return_value = fake_response(text='{"username": "alice"}')

        assert client.fetch_status() == {'username': 'alice'}

        args, kwargs = mock_request.call_args
        assert args == ('GET', "https://api.ticktick.com/api/v2/user/status")
        assert kwargs['timeout'] == 5
        assert kwargs['json'] is None

    @patch('integrations.ticktick.requests.request')
    def test_non_json_body_is_none(self, mock_request, client):
        mock_request.return_value = fake_response(text='')
        assert client.fetch_projects() is None

    @patch('integrations.ticktick.requests.request')
    def test_http_error(self, mock_request, client):
        mock_request.return_value = fake_response(status=401, text='unauthorized')

        with pytest.raises(TickTickAPIError, match="HTTP 401 GET /batch/check/0 unauthorized"):
            client.fetch_sync(0)

    @patch('integrations.ticktick.requests.request')
    def test_error_body_truncated(self, mock_request, client):
        mock_request.return_value = fake_response(status=500, text='x' * 1000)

        with pytest.raises(TickTickAPIError) as excinfo:
            client.fetch_projects()
        assert str(excinfo.value).endswith('x' * 300)
        assert 'x' * 301 not in str(excinfo.value)

    @patch('integrations.ticktick.requests.request')
    def test_transport_error_wrapped(self, mock_request, client):
        mock_request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TickTickAPIError, match="GET /projects failed"):
            client.fetch_projects()

    @patch('integrations.ticktick.requests.request')
    def test_delete_payload(self, mock_request, client):
        mock_request.return_value = fake_response()

        client.delete_tasks([{'id': 't1', 'projectId': 'p1'}])

        args, kwargs = mock_request.call_args
        assert args == ('POST', "https://api.ticktick.com/api/v2/batch/task")
        assert kwargs['json']['delete'] == [{'taskId': 't1', 'projectId': 'p1'}]
        assert kwargs['json']['update'] == []
        assert kwargs['json']['add'] == []

    @patch('integrations.ticktick.requests.request')
    def test_update_payload(self, mock_request, client):
        mock_request.return_value = fake_response()
        record = {'id': 't1', 'projectId': 'p1', 'tags': ['材料'], 'desc': ''}

        client.update_tasks([record])

        payload = mock_request.call_args.kwargs['json']
        assert payload['update'] == [record]
        assert payload['delete'] == []


class TestTickTickIntegration:
    """Snapshot fetch and plan writes"""

    @pytest.fixture
    def fake_client(self):
        fake = MagicMock()
        fake.base_url = 'dida365.com'
        fake.fetch_status.return_value = {'username': 'alice', 'inboxId': 'inbox123'}
        fake.fetch_projects.return_value = [{'id': 'p1', 'name': 'Work'}]
        fake.fetch_sync.return_value = {'checkPoint': 7, 'syncTaskBean': {'update': []}}
        return fake

    def test_fetch_snapshot(self, fake_client):
        integration = TickTickIntegration({'checkpoint': 3}, {}, client=fake_client)

        snapshot = integration.fetch_snapshot()

        assert snapshot['status']['username'] == 'alice'
        assert snapshot['projects'] == [{'id': 'p1', 'name': 'Work'}]
        assert snapshot['sync']['checkPoint'] == 7
        fake_client.fetch_sync.assert_called_once_with(3)

    def test_fetch_snapshot_propagates_failure(self, fake_client):
        fake_client.fetch_projects.side_effect = TickTickAPIError("HTTP 500 GET /projects")
        integration = TickTickIntegration({}, {}, client=fake_client)

        with pytest.raises(TickTickAPIError):
            integration.fetch_snapshot()

    def test_delete_maps_tasks(self, fake_client, make_task):
        integration = TickTickIntegration({}, {}, client=fake_client)
        tasks = [make_task('t1', "a", project_id='p1'), make_task('t2', "b", project_id='p2')]

        assert integration.delete_tasks(tasks) == 2
        fake_client.delete_tasks.assert_called_once_with([
            {'id': 't1', 'projectId': 'p1'},
            {'id': 't2', 'projectId': 'p2'},
        ])

    def test_empty_batches_are_not_sent(self, fake_client):
        integration = TickTickIntegration({}, {}, client=fake_client)

        assert integration.delete_tasks([]) == 0
        assert integration.update_tasks([]) == 0
        fake_client.delete_tasks.assert_not_called()
        fake_client.update_tasks.assert_not_called()

    def test_update_sends_records(self, fake_client):
        integration = TickTickIntegration({}, {}, client=fake_client)
        records = [{'id': 't1', 'tags': ['待行动']}]

        assert integration.update_tasks(records) == 1
        fake_client.update_tasks.assert_called_once_with(records)

    def test_client_built_from_credentials(self):
        integration = TickTickIntegration(
            {'timeout': 10},
            {'baseURL': 'ticktick.com', 'token': 'tok', 'inboxID': 'inbox1'},
        )
        assert integration.client.api_root == "https://api.ticktick.com/api/v2"
        assert integration.client.timeout == 10

    def test_missing_token(self):
        with pytest.raises(ValueError):
            TickTickIntegration({}, {'baseURL': 'ticktick.com'})
