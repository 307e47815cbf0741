"""
Merge Planner for WeChat-captured tasks

The WeChat clipper sometimes produces two records for one capture: a short
marker ("待投递", "好素材", ...) and the full task holding the link, created
moments apart. This planner pairs markers with their full task, classifies
every captured task as action or material, and returns a plan. Nothing is
mutated here; the plan is applied (or discarded) by the caller.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from .models import CanonicalTask, ClassifyRow, MergePair, MergePlan
from .normalize import clean_title
from .rules import CLASS_ACTION, CLASS_MATERIAL, ClassificationRules

logger = logging.getLogger("TaskOrganizer.Reconcile")


def detect_marker_label(text: str, rules: ClassificationRules) -> Optional[str]:
    """
    Return the marker label a title carries, if it is short enough to be one

    Args:
        text: Task title (raw or cleaned)
        rules: Active rule table

    Returns:
        The first matching label, or None
    """
    compact = re.sub(r'\s+', '', clean_title(text))
    if not compact:
        return None

    for label in rules.marker_labels:
        if compact == label or (label in compact and len(compact) <= rules.marker_max_length):
            return label
    return None


def classify_task(
    task: CanonicalTask,
    rules: ClassificationRules,
    hinted_class: Optional[str] = None
) -> Tuple[str, str]:
    """
    Resolve the class of a captured task

    Order: marker hint, action keywords, material keywords, has URL,
    has due date, then action as the fallback.

    Returns:
        (class_type, reason)
    """
    if hinted_class:
        return hinted_class, 'marker_hint'

    text = f"{task.title} {task.description}".lower()

    if rules.action_pattern and rules.action_pattern.search(text):
        return CLASS_ACTION, 'keyword_action'
    if rules.material_pattern and rules.material_pattern.search(text):
        return CLASS_MATERIAL, 'keyword_material'
    if task.has_url:
        return CLASS_MATERIAL, 'has_url'
    if task.due_local_date:
        return CLASS_ACTION, 'has_due'
    return CLASS_ACTION, 'fallback_action'


def normalize_class_tags(tags: Sequence[str], class_type: str, rules: ClassificationRules) -> List[str]:
    """Drop both classification tags, then append the resolved one"""
    result = [t for t in tags if t not in rules.class_tags]
    tag = rules.tag_for(class_type)
    if tag not in result:
        result.append(tag)
    return result


def prefix_description(desc: str, marker: str, rules: ClassificationRules) -> str:
    """Prefix the marker note to a description unless it is already there"""
    prefix = f"{rules.desc_prefix}{marker}"
    desc = desc or ''
    if prefix in desc:
        return desc
    if not desc:
        return prefix
    return f"{prefix}\n{desc}"


def described_marker(desc: str, rules: ClassificationRules) -> Optional[str]:
    """Marker label recorded in a description by an earlier merge"""
    for label in rules.marker_labels:
        if f"{rules.desc_prefix}{label}" in (desc or ''):
            return label
    return None


def is_captured_task(task: CanonicalTask, rules: ClassificationRules) -> bool:
    return (
        task.is_open
        and task.is_inbox
        and (rules.capture_tag in task.tags or rules.capture_tag.lower() in (task.title_raw or '').lower())
    )


def _pair_markers(
    markers: List[Tuple[CanonicalTask, str]],
    full_tasks: List[CanonicalTask],
    window_ms: float
) -> List[MergePair]:
    """
    Greedy nearest-timestamp pairing, markers processed in input order

    A full task claimed by an earlier marker is never reconsidered.
    """
    used = set()
    pairs = []

    for marker_task, label in markers:
        marker_time = marker_task.timestamp_ms()
        if not marker_time:
            continue

        best: Optional[Tuple[CanonicalTask, int]] = None
        for candidate in full_tasks:
            if candidate.id in used:
                continue
            if candidate.project_id != marker_task.project_id or not candidate.has_url:
                continue
            candidate_time = candidate.timestamp_ms()
            if not candidate_time:
                continue
            diff = abs(candidate_time - marker_time)
            if diff > window_ms:
                continue
            if best is None or diff < best[1]:
                best = (candidate, diff)

        if best is None:
            logger.debug(f"Marker '{marker_task.title}' ({marker_task.id}) has no partner")
            continue

        used.add(best[0].id)
        pairs.append(MergePair(marker_task=marker_task, marker=label, keep_task=best[0], diff_ms=best[1]))

    return pairs


def build_wechat_plan(
    tasks: Sequence[CanonicalTask],
    window_seconds: float = 180,
    rules: Optional[ClassificationRules] = None
) -> MergePlan:
    """
    Plan marker merges and classification for WeChat-captured tasks

    Args:
        tasks: Normalized snapshot
        window_seconds: Maximum creation-time gap between a marker and its full task
        rules: Rule table (defaults to the built-in Chinese rules)

    Returns:
        MergePlan with delete_tasks = matched markers and update_tasks = full
        records whose tags or description actually change
    """
    rules = rules or ClassificationRules()
    captured = [t for t in tasks if is_captured_task(t, rules)]

    markers = []
    full_tasks = []
    for task in captured:
        label = detect_marker_label(task.title, rules)
        if label:
            markers.append((task, label))
        else:
            full_tasks.append(task)

    pairs = _pair_markers(markers, full_tasks, window_seconds * 1000)

    deletes: Dict[str, CanonicalTask] = {}
    hints: Dict[str, str] = {}
    for pair in pairs:
        deletes[pair.marker_task.id] = pair.marker_task
        hints[pair.keep_task.id] = pair.marker

    plan = MergePlan(captured_count=len(captured), merge_pairs=pairs)
    updates: Dict[str, dict] = {}

    for task in captured:
        if task.id in deletes:
            continue

        marker = hints.get(task.id)
        hinted_class = (
            rules.marker_class(marker)
            or rules.marker_class(detect_marker_label(task.title, rules))
            or rules.marker_class(described_marker(task.description, rules))
        )
        class_type, reason = classify_task(task, rules, hinted_class)
        plan.class_counts[class_type] = plan.class_counts.get(class_type, 0) + 1

        original_tags = task.raw.get('tags') if isinstance(task.raw.get('tags'), list) else []
        original_desc = task.raw.get('desc') or ''

        next_tags = normalize_class_tags(task.tags, class_type, rules)
        next_desc = prefix_description(original_desc, marker, rules) if marker else original_desc

        changed = next_tags != list(original_tags) or next_desc != original_desc
        if changed:
            updates[task.id] = {**task.raw, 'tags': next_tags, 'desc': next_desc}

        logger.debug(f"Classified '{task.title[:40]}' as {class_type} ({reason}), changed={changed}")
        plan.classify_rows.append(ClassifyRow(
            id=task.id,
            title=task.title,
            class_type=class_type,
            reason=reason,
            changed=changed,
        ))

    plan.update_tasks = list(updates.values())
    plan.delete_tasks = list(deletes.values())

    logger.info(
        f"WeChat plan: {len(captured)} captured, {len(pairs)} merge pairs, "
        f"{len(plan.update_tasks)} updates, {len(plan.delete_tasks)} deletes"
    )
    return plan
