"""
Data model shared by the reconciliation core

All records are built fresh from one snapshot per run and never persisted
by the core itself.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

STATUS_OPEN = 'open'
STATUS_OTHER = 'other'


@dataclass
class CanonicalTask:
    """Normalized task record used by all core logic"""
    id: str
    title_raw: str
    title: str
    description: str = ''
    status: str = STATUS_OPEN  # open, other
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    is_inbox: bool = False
    priority: int = 0
    due_date_raw: str = ''
    due_local_date: Optional[str] = None  # YYYY-MM-DD in configured timezone
    start_local_date: Optional[str] = None
    modified_at_ms: Optional[int] = None
    created_at_ms: Optional[int] = None
    parent_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    has_url: bool = False
    url: str = ''
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN

    @property
    def is_subtask(self) -> bool:
        return bool(self.parent_id)

    def timestamp_ms(self) -> Optional[int]:
        """Creation time when known, else last modification time"""
        return self.created_at_ms or self.modified_at_ms or None


@dataclass
class DuplicateGroup:
    """One duplicate cluster: a keeper plus the records slated for removal"""
    keep: CanonicalTask
    remove: List[CanonicalTask]


@dataclass
class MergePair:
    """A short marker task matched to the full captured task it belongs to"""
    marker_task: CanonicalTask
    marker: str
    keep_task: CanonicalTask
    diff_ms: int


@dataclass
class ClassifyRow:
    """Audit row for one classified captured task"""
    id: str
    title: str
    class_type: str  # action, material
    reason: str
    changed: bool


@dataclass
class MergePlan:
    """
    Not-yet-applied mutations for messaging-captured tasks

    A task id appears in at most one of delete_tasks and update_tasks.
    update_tasks holds full raw records ready for write-back.
    """
    captured_count: int = 0
    merge_pairs: List[MergePair] = field(default_factory=list)
    classify_rows: List[ClassifyRow] = field(default_factory=list)
    class_counts: Dict[str, int] = field(default_factory=lambda: {'action': 0, 'material': 0})
    update_tasks: List[Dict[str, Any]] = field(default_factory=list)
    delete_tasks: List[CanonicalTask] = field(default_factory=list)
