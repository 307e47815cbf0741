"""
Shared fixtures for the TaskOrganizer test suite

Run with: pytest tests/
"""

import sys
import logging
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from reconcile.models import CanonicalTask  # noqa: E402
from reconcile.normalize import clean_title, has_url  # noqa: E402

INBOX = 'inbox123'


def object_id(seconds: int, suffix: str = '0' * 16) -> str:
    """ObjectId-style task id whose first 8 hex digits encode seconds"""
    return f"{seconds:08x}{suffix}"


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers so every test logs to its own captured stderr"""
    yield
    logger = logging.getLogger("TaskOrganizer")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def make_task():
    """Factory for in-memory CanonicalTask records"""

    def _make(task_id, title, **kwargs):
        tags = list(kwargs.pop('tags', []))
        description = kwargs.pop('description', '')
        project_id = kwargs.pop('project_id', INBOX)
        is_inbox = kwargs.pop('is_inbox', project_id == INBOX)
        raw = {
            'id': task_id,
            'projectId': project_id,
            'title': title,
            'tags': list(tags),
            'desc': description,
            'status': 0,
        }
        return CanonicalTask(
            id=task_id,
            title_raw=title,
            title=clean_title(title),
            description=description,
            project_id=project_id,
            is_inbox=is_inbox,
            tags=tags,
            has_url=has_url(title),
            raw=raw,
            **kwargs,
        )

    return _make
