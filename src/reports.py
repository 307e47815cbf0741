"""
Report rendering: Markdown via Jinja2 templates, JSON via plain dumps
"""

import json
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List

from jinja2 import Template

from reconcile.models import DuplicateGroup, MergePlan

TEMPLATE_OPTIONS = {'trim_blocks': True, 'lstrip_blocks': True}

DIGEST_TEMPLATE = Template(
    """# TickTick {{ 'Live ' if live else '' }}Digest ({{ digest.today }}, {{ meta.tz }})
{% if live %}
User: {{ meta.user }}
Server: {{ meta.base_url }}
Sync checkPoint: {{ meta.checkpoint }}
{% else %}
Source: {{ meta.source }}
{% endif %}

{% for name, items in sections %}
## {{ name }} ({{ items|length }})
{% if not items %}
- (empty)
{% else %}
{% for t in items[:limit] %}
- [ ] {{ t.title }}{% if t.due_local_date %} due:{{ t.due_local_date }}{% endif %} [open]({{ t.url }})
{% endfor %}
{% if items|length > limit %}
- ... {{ items|length - limit }} more
{% endif %}
{% endif %}

{% endfor %}
""",
    **TEMPLATE_OPTIONS,
)

DEDUPE_TEMPLATE = Template(
    """# TickTick Dedupe ({{ 'APPLIED' if apply else 'DRY-RUN' }})
User: {{ meta.user }}
Server: {{ meta.base_url }}
Duplicate groups: {{ groups|length }}
Tasks to delete: {{ remove_count }}
{% if apply %}
Deleted: {{ deleted_count }}
{% endif %}

{% if not groups %}
- No duplicates detected under current rules.
{% endif %}
{% for group in groups %}
## Group {{ loop.index }}
- keep: {{ group.keep.title }} ({{ group.keep.id }})
{% for task in group.remove %}
- delete: {{ task.title }} ({{ task.id }})
{% endfor %}

{% endfor %}
""",
    **TEMPLATE_OPTIONS,
)

WECHAT_TEMPLATE = Template(
    """# TickTick WeChat Organizer ({{ 'APPLIED' if apply else 'DRY-RUN' }})
User: {{ meta.user }}
Server: {{ meta.base_url }}
WeChat tasks: {{ plan.captured_count }}
Merge pairs: {{ plan.merge_pairs|length }}
Classified: action={{ plan.class_counts.get('action', 0) }}, material={{ plan.class_counts.get('material', 0) }}
Planned updates={{ plan.update_tasks|length }}, planned deletes={{ plan.delete_tasks|length }}
{% if apply %}
Applied updates={{ applied.updated }}, applied deletes={{ applied.deleted }}
{% endif %}

{% if plan.merge_pairs %}
## Merge Preview
{% for pair in plan.merge_pairs %}
- {{ pair.marker_task.title }} ({{ pair.marker_task.id }}) -> {{ pair.keep_task.title }} ({{ pair.keep_task.id }})
{% endfor %}

{% endif %}
## Classification Preview
{% for row in plan.classify_rows[:limit] %}
- [{{ row.class_type }}] {{ row.title }} ({{ row.id }}) reason={{ row.reason }}
{% endfor %}
{% if plan.classify_rows|length > limit %}
- ... {{ plan.classify_rows|length - limit }} more
{% endif %}
""",
    **TEMPLATE_OPTIONS,
)


def render_digest_md(meta: Dict[str, Any], digest: Dict[str, Any], limit: int, live: bool = True) -> str:
    days = digest['days']
    sections = [
        ('Inbox Todo', digest['inbox_todo']),
        ('Today Todo', digest['today_todo']),
        (f'Next {days} Days Todo', digest['next_days_todo']),
        (f'Next {days} Days Thoughts', digest['next_days_thoughts']),
    ]
    return DIGEST_TEMPLATE.render(
        meta=meta, digest=digest, sections=sections, limit=limit, live=live
    ).rstrip() + '\n'


def render_dedupe_md(meta: Dict[str, Any], groups: List[DuplicateGroup],
                     apply: bool, deleted_count: int) -> str:
    return DEDUPE_TEMPLATE.render(
        meta=meta,
        groups=groups,
        apply=apply,
        deleted_count=deleted_count,
        remove_count=sum(len(g.remove) for g in groups),
    ).rstrip() + '\n'


def render_wechat_md(meta: Dict[str, Any], plan: MergePlan, apply: bool,
                     applied: Dict[str, int], limit: int = 30) -> str:
    return WECHAT_TEMPLATE.render(
        meta=meta, plan=plan, apply=apply, applied=applied, limit=limit
    ).rstrip() + '\n'


def to_jsonable(value: Any) -> Any:
    """Recursively turn dataclasses into plain dicts/lists"""
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def render_json(payload: Dict[str, Any]) -> str:
    return json.dumps(to_jsonable(payload), ensure_ascii=False, indent=2, default=str)
