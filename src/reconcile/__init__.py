"""
Pure reconciliation core: normalization, duplicate detection and merge planning

Nothing in this package performs I/O; it works on in-memory snapshots and
returns plans for the integrations to apply.
"""

from .models import (
    CanonicalTask, ClassifyRow, DuplicateGroup, MergePair, MergePlan,
    STATUS_OPEN, STATUS_OTHER,
)
from .normalize import SnapshotError, normalize_tasks
from .similarity import is_duplicate
from .clustering import detect_duplicates, pick_keeper
from .rules import ClassificationRules
from .wechat import build_wechat_plan

__all__ = [
    'CanonicalTask', 'ClassifyRow', 'DuplicateGroup', 'MergePair', 'MergePlan',
    'STATUS_OPEN', 'STATUS_OTHER', 'SnapshotError', 'normalize_tasks',
    'is_duplicate', 'detect_duplicates', 'pick_keeper',
    'ClassificationRules', 'build_wechat_plan',
]
