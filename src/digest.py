"""
Daily/weekly digest built from a normalized snapshot
"""

import re
from datetime import date, datetime, timedelta
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from reconcile.models import CanonicalTask

DEFAULT_THOUGHT_KEYWORDS = ['思考', '复盘', '反思', '总结', '回顾', '感谢']

DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def assert_date(text: str) -> str:
    """Validate a YYYY-MM-DD anchor date"""
    if not DATE_RE.match(text or ''):
        raise ValueError(f'Invalid date "{text}", expected YYYY-MM-DD')
    return text


def today_in_tz(tz_name: str) -> str:
    return datetime.now(ZoneInfo(tz_name)).strftime('%Y-%m-%d')


def add_days(ymd: str, days: int) -> str:
    return (date.fromisoformat(ymd) + timedelta(days=days)).isoformat()


def compare_by_due_then_priority(a: CanonicalTask, b: CanonicalTask) -> int:
    """Dated before undated, earlier due first, then higher priority first"""
    if a.due_local_date and b.due_local_date:
        if a.due_local_date != b.due_local_date:
            return -1 if a.due_local_date < b.due_local_date else 1
    elif a.due_local_date and not b.due_local_date:
        return -1
    elif not a.due_local_date and b.due_local_date:
        return 1
    return (b.priority or 0) - (a.priority or 0)


def build_digest(
    tasks: Iterable[CanonicalTask],
    today: str,
    days: int,
    thought_keywords: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Bucket open tasks into digest sections

    Args:
        tasks: Normalized snapshot
        today: Anchor date (YYYY-MM-DD)
        days: Size of the look-ahead window
        thought_keywords: Words marking reflection tasks

    Returns:
        Dict with today/end/days, counts and the four task lists
    """
    end = add_days(today, days)
    keywords = thought_keywords if thought_keywords is not None else DEFAULT_THOUGHT_KEYWORDS
    thought_re = re.compile('|'.join(re.escape(k) for k in keywords), re.IGNORECASE) if keywords else None

    todo = sorted((t for t in tasks if t.is_open), key=cmp_to_key(compare_by_due_then_priority))
    inbox_todo = [t for t in todo if t.is_inbox]
    today_todo = [t for t in todo if t.due_local_date == today]
    next_days_todo = [
        t for t in todo
        if t.due_local_date and today < t.due_local_date <= end
    ]
    next_days_thoughts = [
        t for t in next_days_todo
        if thought_re and thought_re.search(f"{t.title} {t.description}")
    ]

    return {
        'today': today,
        'end': end,
        'days': days,
        'counts': {
            'total_todo': len(todo),
            'inbox_todo': len(inbox_todo),
            'today_todo': len(today_todo),
            'next_days_todo': len(next_days_todo),
            'next_days_thoughts': len(next_days_thoughts),
        },
        'inbox_todo': inbox_todo,
        'today_todo': today_todo,
        'next_days_todo': next_days_todo,
        'next_days_thoughts': next_days_thoughts,
    }
