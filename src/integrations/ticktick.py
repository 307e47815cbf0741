"""
TickTick Integration

Talks to the TickTick / Dida365 web API (v2) to read a task snapshot and to
apply batch mutations.

Architecture:
- Independent reads (user status, projects, full sync) run concurrently and
  are joined before any planning happens
- Mutations are batch calls issued only after a plan is complete
- Failures surface as TickTickAPIError; nothing is retried
"""

import json
import logging
import secrets
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests


class TickTickAPIError(RuntimeError):
    """Raised when a TickTick API call fails"""


def make_device_header() -> str:
    """Build the x-device header the web client sends"""
    return json.dumps({
        'platform': 'web',
        'os': 'Windows 10',
        'device': 'Firefox 117.0',
        'name': '',
        'version': 6070,
        'id': f"66{secrets.token_hex(11)}",
        'channel': 'website',
        'campaign': '',
        'websocket': '',
    })


class TickTickClient:
    """Minimal HTTP client for the endpoints this tool needs"""

    def __init__(self, base_url: str, token: str, timeout: float = 30):
        if not base_url or not token:
            raise ValueError("Missing baseURL/token in config")

        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self.device = make_device_header()
        self.api_root = f"https://api.{base_url}/api/v2"

    def headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'User-Agent': 'Mozilla/5.0',
            'x-device': self.device,
            'Cookie': f"t={self.token};",
            't': self.token,
        }

    def request(self, method: str, endpoint: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """
        Issue one API call

        Returns:
            Decoded JSON body, or None when the body is not JSON

        Raises:
            TickTickAPIError: on transport errors or non-2xx responses
        """
        try:
            response = requests.request(
                method,
                f"{self.api_root}{endpoint}",
                headers=self.headers(),
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TickTickAPIError(f"{method} {endpoint} failed: {e}") from e

        text = response.text
        if not response.ok:
            raise TickTickAPIError(f"HTTP {response.status_code} {method} {endpoint} {text[:300]}")

        try:
            return json.loads(text)
        except ValueError:
            return None

    def fetch_status(self) -> Any:
        return self.request('GET', '/user/status')

    def fetch_projects(self) -> Any:
        return self.request('GET', '/projects')

    def fetch_sync(self, checkpoint: int = 0) -> Any:
        return self.request('GET', f"/batch/check/{checkpoint}")

    @staticmethod
    def _batch(delete: Optional[List[Dict]] = None, update: Optional[List[Dict]] = None) -> Dict[str, Any]:
        return {
            'add': [],
            'addAttachments': [],
            'delete': delete or [],
            'deleteAttachments': [],
            'updateAttachments': [],
            'update': update or [],
        }

    def delete_tasks(self, items: List[Dict[str, Any]]) -> Any:
        """Batch delete; items carry 'id' and 'projectId'"""
        payload = self._batch(delete=[
            {'taskId': item['id'], 'projectId': item['projectId']} for item in items
        ])
        return self.request('POST', '/batch/task', payload)

    def update_tasks(self, items: List[Dict[str, Any]]) -> Any:
        """Batch update with full task records"""
        return self.request('POST', '/batch/task', self._batch(update=items))


class TickTickIntegration:
    """Snapshot reads and plan writes against the live TickTick API"""

    def __init__(self, config: Dict[str, Any], credentials: Dict[str, Any],
                 client: Optional[TickTickClient] = None):
        """
        Initialize TickTick integration

        Args:
            config: 'ticktick' section of the main config
            credentials: baseURL/token/inboxID from TickTickSync's data.json
            client: Pre-built client (tests inject a fake here)
        """
        self.config = config
        self.credentials = credentials
        self.logger = logging.getLogger("TaskOrganizer.TickTick")
        self.client = client or TickTickClient(
            base_url=credentials.get('baseURL'),
            token=credentials.get('token'),
            timeout=config.get('timeout', 30),
        )

    def fetch_snapshot(self) -> Dict[str, Any]:
        """
        Fetch status, projects and a full sync in parallel

        Returns:
            Dict with 'status', 'projects' and 'sync' responses
        """
        checkpoint = self.config.get('checkpoint', 0)
        self.logger.info(f"Fetching snapshot from {self.client.base_url} (checkPoint={checkpoint})...")

        with ThreadPoolExecutor(max_workers=3) as pool:
            status_f = pool.submit(self.client.fetch_status)
            projects_f = pool.submit(self.client.fetch_projects)
            sync_f = pool.submit(self.client.fetch_sync, checkpoint)
            snapshot = {
                'status': status_f.result(),
                'projects': projects_f.result(),
                'sync': sync_f.result(),
            }

        self.logger.info("Snapshot fetched")
        return snapshot

    def delete_tasks(self, tasks: List[Any]) -> int:
        """
        Delete tasks in a single batch call

        Args:
            tasks: CanonicalTask objects (or dicts with id/projectId)

        Returns:
            Number of tasks sent for deletion
        """
        if not tasks:
            return 0

        items = [
            t if isinstance(t, dict) else {'id': t.id, 'projectId': t.project_id}
            for t in tasks
        ]
        self.logger.info(f"Deleting {len(items)} tasks...")
        self.client.delete_tasks(items)
        self.logger.info(f"✅ Deleted {len(items)} tasks")
        return len(items)

    def update_tasks(self, records: List[Dict[str, Any]]) -> int:
        """Write full mutated records back in a single batch call"""
        if not records:
            return 0

        self.logger.info(f"Updating {len(records)} tasks...")
        self.client.update_tasks(records)
        self.logger.info(f"✅ Updated {len(records)} tasks")
        return len(records)
