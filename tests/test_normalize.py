"""
Tests for raw record normalization
"""

from datetime import timezone

import pytest

from reconcile.models import STATUS_OPEN, STATUS_OTHER
from reconcile.normalize import (
    SnapshotError, clean_title, extract_cache_data, extract_sync_tasks, map_projects,
    normalize_tasks, object_id_time_ms, parse_ticktick_date, ymd_in_tz,
)
from zoneinfo import ZoneInfo

from conftest import INBOX, object_id


class TestDates:
    """TickTick timestamp parsing"""

    def test_compact_offset(self):
        parsed = parse_ticktick_date("2024-01-05T16:00:00.000+0000")
        assert parsed.tzinfo is not None
        assert parsed.astimezone(timezone.utc).hour == 16

    def test_zulu_suffix(self):
        parsed = parse_ticktick_date("2024-01-05T16:00:00Z")
        assert parsed.utcoffset().total_seconds() == 0

    def test_naive_is_utc(self):
        assert parse_ticktick_date("2024-01-05").tzinfo == timezone.utc

    def test_unparseable_is_none(self):
        assert parse_ticktick_date("next tuesday") is None
        assert parse_ticktick_date("") is None
        assert parse_ticktick_date(None) is None
        assert parse_ticktick_date(12345) is None

    def test_local_date_crosses_midnight(self):
        parsed = parse_ticktick_date("2024-01-05T16:00:00.000+0000")
        assert ymd_in_tz(parsed, ZoneInfo("Asia/Shanghai")) == "2024-01-06"
        assert ymd_in_tz(parsed, ZoneInfo("UTC")) == "2024-01-05"


class TestObjectIdTime:
    """Creation time embedded in ObjectId task ids"""

    def test_object_id(self):
        assert object_id_time_ms(object_id(1_700_000_000, 'f' * 16)) == 1_700_000_000_000

    def test_not_object_id(self):
        assert object_id_time_ms("12345") is None
        assert object_id_time_ms(None) is None
        assert object_id_time_ms("z" * 24) is None


class TestCleanTitle:
    """Link noise removal"""

    def test_obsidian_backlink_dropped(self):
        assert clean_title("Buy milk [link](obsidian://open?vault=x&file=y)") == "Buy milk"

    def test_markdown_link_keeps_text(self):
        assert clean_title("Read [great post](https://example.com/p) today") == "Read great post today"

    def test_bare_url_dropped(self):
        assert clean_title("看看 https://v.douyin.com/abc/   这个") == "看看 这个"

    def test_none(self):
        assert clean_title(None) == ""


class TestNormalizeTasks:
    """Full record conversion"""

    RAW = {
        'id': object_id(1_700_000_000, 'a' * 16),
        'projectId': INBOX,
        'title': "Read [post](https://example.com/p)",
        'desc': "notes",
        'status': 0,
        'priority': 3,
        'dueDate': "2024-01-05T16:00:00.000+0000",
        'startDate': "bad date",
        'modifiedTime': "2024-01-04T08:00:00.000+0000",
        'parentId': None,
        'tags': ['a', 'b'],
    }

    def test_fields(self):
        [task] = normalize_tasks([self.RAW], {INBOX: 'Inbox'}, INBOX, 'ticktick.com', 'Asia/Shanghai')

        assert task.id == self.RAW['id']
        assert task.title == "Read post"
        assert task.title_raw == self.RAW['title']
        assert task.description == "notes"
        assert task.status == STATUS_OPEN
        assert task.is_inbox is True
        assert task.project_name == 'Inbox'
        assert task.priority == 3
        assert task.due_local_date == "2024-01-06"
        assert task.start_local_date is None
        assert task.modified_at_ms == 1_704_355_200_000
        assert task.created_at_ms == 1_700_000_000_000
        assert task.parent_id is None
        assert task.tags == ['a', 'b']
        assert task.has_url is True
        assert task.url == f"https://ticktick.com/webapp/#p/{INBOX}/tasks/{self.RAW['id']}"
        assert task.raw is self.RAW

    def test_tags_are_copied(self):
        [task] = normalize_tasks([self.RAW], {}, INBOX, 'ticktick.com', 'UTC')
        task.tags.append('c')
        assert self.RAW['tags'] == ['a', 'b']

    def test_defaults_for_sparse_record(self):
        [task] = normalize_tasks(
            [{'id': 'abc', 'projectId': 'p1', 'content': 'From content', 'status': 2}],
            {}, INBOX, 'dida365.com', 'UTC'
        )
        assert task.title == 'From content'
        assert task.status == STATUS_OTHER
        assert task.is_inbox is False
        assert task.project_name == 'p1'
        assert task.priority == 0
        assert task.tags == []
        assert task.created_at_ms is None
        assert task.due_local_date is None

    def test_created_time_fallback(self):
        [task] = normalize_tasks(
            [{'id': 'abc', 'projectId': 'p1', 'title': 'x', 'createdTime': "2024-01-01T00:00:00.000+0000"}],
            {}, INBOX, 'ticktick.com', 'UTC'
        )
        assert task.created_at_ms == 1_704_067_200_000

    def test_subtask_parent(self):
        [task] = normalize_tasks(
            [{'id': 'abc', 'projectId': 'p1', 'title': 'x', 'parentId': 'root'}],
            {}, INBOX, 'ticktick.com', 'UTC'
        )
        assert task.is_subtask

    def test_missing_id_is_fatal(self):
        with pytest.raises(SnapshotError):
            normalize_tasks([{'title': 'no id'}], {}, INBOX, 'ticktick.com', 'UTC')


class TestSnapshotValidation:
    """Structural checks before the core runs"""

    def test_sync_tasks(self):
        assert extract_sync_tasks({'syncTaskBean': {'update': [{'id': '1'}]}}) == [{'id': '1'}]

    @pytest.mark.parametrize('sync', [None, {}, {'syncTaskBean': {}}, {'syncTaskBean': {'update': 'x'}}])
    def test_sync_tasks_missing(self, sync):
        with pytest.raises(SnapshotError, match="syncTaskBean.update"):
            extract_sync_tasks(sync)

    def test_cache_data(self):
        data = {
            'inboxID': INBOX,
            'baseURL': 'ticktick.com',
            'TickTickTasksData': {'tasks': [], 'projects': []},
        }
        assert extract_cache_data(data) == {
            'tasks': [], 'projects': [], 'inbox_id': INBOX, 'base_url': 'ticktick.com',
        }

    def test_cache_missing_tasks(self):
        with pytest.raises(SnapshotError, match="TickTickTasksData"):
            extract_cache_data({'inboxID': INBOX, 'baseURL': 'ticktick.com'})

    def test_cache_missing_inbox(self):
        with pytest.raises(SnapshotError, match="inboxID/baseURL"):
            extract_cache_data({'baseURL': 'x', 'TickTickTasksData': {'tasks': [], 'projects': []}})

    def test_map_projects(self):
        projects = [{'id': 'a', 'name': 'Work'}, {'id': 'b', 'title': 'Home'}, {'id': 'c'}, {}, None]
        assert map_projects(projects) == {'a': 'Work', 'b': 'Home', 'c': 'c'}
