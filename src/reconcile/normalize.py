"""
Normalizer

Converts raw TickTick task records (from the live sync API or from the
TickTickSync cache file) into CanonicalTask objects.

Date handling is permissive: anything that fails to parse becomes None.
Structural problems with the snapshot itself raise SnapshotError before any
task is touched.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from .models import CanonicalTask, STATUS_OPEN, STATUS_OTHER


class SnapshotError(ValueError):
    """Raised when a snapshot is missing structurally required fields"""


OBSIDIAN_LINK_RE = re.compile(r'\[[^\]]*\]\((obsidian://[^)]+)\)', re.IGNORECASE)
MARKDOWN_LINK_RE = re.compile(r'\[([^\]]+)\]\((https?://[^)\s]+)\)', re.IGNORECASE)
BARE_URL_RE = re.compile(r'https?://\S+', re.IGNORECASE)
URL_HINT_RE = re.compile(r'https?://|v\.douyin\.com|mp\.weixin\.qq\.com|x\.com/', re.IGNORECASE)
TZ_OFFSET_RE = re.compile(r'([+-]\d{2})(\d{2})$')
OBJECT_ID_RE = re.compile(r'^[0-9a-f]{24}$', re.IGNORECASE)


def parse_ticktick_date(value: Any) -> Optional[datetime]:
    """
    Parse a TickTick timestamp like '2024-01-05T16:00:00.000+0000'

    Returns:
        Timezone-aware datetime, or None if value is empty or unparseable
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    text = TZ_OFFSET_RE.sub(r'\1:\2', text)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    # Naive values are taken as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def ymd_in_tz(moment: datetime, tz: ZoneInfo) -> str:
    """Calendar date of moment as seen in tz, formatted YYYY-MM-DD"""
    return moment.astimezone(tz).strftime('%Y-%m-%d')


def to_epoch_ms(moment: Optional[datetime]) -> Optional[int]:
    if moment is None:
        return None
    return int(moment.timestamp() * 1000)


def object_id_time_ms(task_id: Any) -> Optional[int]:
    """Creation time embedded in a 24-hex-digit ObjectId, in epoch ms"""
    text = str(task_id or '')
    if not OBJECT_ID_RE.match(text):
        return None
    return int(text[:8], 16) * 1000


def clean_title(raw: Any) -> str:
    """
    Strip link noise from a task title

    - Obsidian backlinks injected by integrations are dropped entirely
    - Markdown links keep their text, lose their URL
    - Bare URLs are dropped and whitespace collapsed
    """
    text = str(raw or '')
    text = OBSIDIAN_LINK_RE.sub(' ', text)
    text = MARKDOWN_LINK_RE.sub(r'\1', text)
    text = BARE_URL_RE.sub(' ', text)
    return re.sub(r'\s+', ' ', text).strip()


def has_url(raw_title: str) -> bool:
    return bool(URL_HINT_RE.search(raw_title or ''))


def map_projects(projects: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, str]:
    """Map project id to display name (name, then title, then the id itself)"""
    names = {}
    for project in projects or []:
        if not isinstance(project, dict) or not project.get('id'):
            continue
        names[project['id']] = project.get('name') or project.get('title') or project['id']
    return names


def extract_sync_tasks(sync: Any) -> List[Dict[str, Any]]:
    """Pull the task list out of a /batch/check sync response"""
    bean = sync.get('syncTaskBean') if isinstance(sync, dict) else None
    tasks = bean.get('update') if isinstance(bean, dict) else None
    if not isinstance(tasks, list):
        raise SnapshotError("sync response does not contain syncTaskBean.update")
    return tasks


def extract_cache_data(data: Any) -> Dict[str, Any]:
    """
    Validate a TickTickSync data.json payload

    Returns:
        Dict with 'tasks', 'projects', 'inbox_id' and 'base_url'
    """
    store = data.get('TickTickTasksData') if isinstance(data, dict) else None
    tasks = store.get('tasks') if isinstance(store, dict) else None
    projects = store.get('projects') if isinstance(store, dict) else None
    if not isinstance(tasks, list) or not isinstance(projects, list):
        raise SnapshotError(
            "invalid TickTickSync data.json: missing TickTickTasksData.tasks/projects"
        )
    if not data.get('inboxID') or not data.get('baseURL'):
        raise SnapshotError("invalid TickTickSync data.json: missing inboxID/baseURL")

    return {
        'tasks': tasks,
        'projects': projects,
        'inbox_id': data['inboxID'],
        'base_url': data['baseURL'],
    }


def normalize_task(
    raw: Dict[str, Any],
    project_names: Dict[str, str],
    inbox_id: Optional[str],
    base_url: str,
    tz: ZoneInfo
) -> CanonicalTask:
    """Convert a single raw TickTick record into a CanonicalTask"""
    if not isinstance(raw, dict) or not raw.get('id'):
        raise SnapshotError(f"task record without id: {str(raw)[:120]}")

    task_id = str(raw['id'])
    project_id = raw.get('projectId')
    title_raw = raw.get('title') or raw.get('content') or ''
    due = parse_ticktick_date(raw.get('dueDate'))
    start = parse_ticktick_date(raw.get('startDate'))
    modified = parse_ticktick_date(raw.get('modifiedTime'))

    created_at_ms = object_id_time_ms(task_id)
    if created_at_ms is None:
        created_at_ms = to_epoch_ms(parse_ticktick_date(raw.get('createdTime')))

    tags = raw.get('tags')

    return CanonicalTask(
        id=task_id,
        title_raw=title_raw,
        title=clean_title(title_raw),
        description=raw.get('desc') or '',
        status=STATUS_OPEN if raw.get('status') == 0 else STATUS_OTHER,
        project_id=project_id,
        project_name=project_names.get(project_id, project_id),
        is_inbox=bool(inbox_id) and project_id == inbox_id,
        priority=raw.get('priority') or 0,
        due_date_raw=raw.get('dueDate') or '',
        due_local_date=ymd_in_tz(due, tz) if due else None,
        start_local_date=ymd_in_tz(start, tz) if start else None,
        modified_at_ms=to_epoch_ms(modified),
        created_at_ms=created_at_ms,
        parent_id=raw.get('parentId') or None,
        tags=list(tags) if isinstance(tags, list) else [],
        has_url=has_url(title_raw),
        url=f"https://{base_url}/webapp/#p/{project_id}/tasks/{task_id}",
        raw=raw,
    )


def normalize_tasks(
    raw_tasks: Iterable[Dict[str, Any]],
    project_names: Dict[str, str],
    inbox_id: Optional[str],
    base_url: str,
    tz_name: str
) -> List[CanonicalTask]:
    """
    Normalize a whole snapshot

    Args:
        raw_tasks: Task records exactly as TickTick returns them
        project_names: Project id to display name
        inbox_id: Id of the inbox project
        base_url: TickTick host (ticktick.com or dida365.com)
        tz_name: IANA timezone used to resolve calendar dates

    Returns:
        List of CanonicalTask in input order
    """
    tz = ZoneInfo(tz_name)
    return [normalize_task(raw, project_names, inbox_id, base_url, tz) for raw in raw_tasks]
