"""
Clustering Engine

Groups open tasks into duplicate clusters with an array-backed union-find.
Pairwise checks only happen inside a (project, due date) bucket.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from .models import CanonicalTask, DuplicateGroup
from .similarity import is_duplicate, normalize_title

logger = logging.getLogger("TaskOrganizer.Reconcile")

SCOPES = ('inbox', 'all')


class UnionFind:
    """Disjoint-set over integer indices with path compression and union by rank"""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]

        # Path compression
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]

        return root

    def union(self, a: int, b: int) -> None:
        ra = self.find(a)
        rb = self.find(b)
        if ra == rb:
            return

        if self.rank[ra] < self.rank[rb]:
            self.parent[ra] = rb
        elif self.rank[ra] > self.rank[rb]:
            self.parent[rb] = ra
        else:
            self.parent[rb] = ra
            self.rank[ra] += 1


def _keeper_key(task: CanonicalTask) -> Tuple[int, int, str]:
    return (-len(normalize_title(task.title)), -(task.priority or 0), task.id)


def pick_keeper(tasks: Sequence[CanonicalTask]) -> CanonicalTask:
    """
    Choose the record that represents a duplicate cluster

    Longest normalized title wins (least truncated copy), then highest
    priority, then lowest id so the choice never depends on input order.
    """
    return min(tasks, key=_keeper_key)


def bucket_key(task: CanonicalTask) -> Tuple[str, str]:
    return (str(task.project_id), task.due_local_date or 'none')


def detect_duplicates(
    tasks: Sequence[CanonicalTask],
    scope: str = 'inbox',
    window_hours: float = 12
) -> List[DuplicateGroup]:
    """
    Find duplicate clusters among open tasks

    Args:
        tasks: Normalized snapshot
        scope: 'inbox' to consider inbox tasks only, 'all' for every project
        window_hours: Maximum gap between modification times of duplicates

    Returns:
        Duplicate groups, largest removal set first. Empty when nothing matches.
    """
    if scope not in SCOPES:
        raise ValueError(f"scope must be one of {', '.join(SCOPES)}: {scope!r}")

    candidates = [t for t in tasks if t.is_open and (scope == 'all' or t.is_inbox)]
    window_ms = window_hours * 3600 * 1000
    uf = UnionFind(len(candidates))

    buckets: Dict[Tuple[str, str], List[int]] = {}
    for idx, task in enumerate(candidates):
        buckets.setdefault(bucket_key(task), []).append(idx)

    comparisons = 0
    for indices in buckets.values():
        for pos, ia in enumerate(indices):
            for ib in indices[pos + 1:]:
                comparisons += 1
                if is_duplicate(candidates[ia], candidates[ib], window_ms):
                    logger.debug(
                        f"Duplicate pair: '{candidates[ia].title[:40]}' ≈ "
                        f"'{candidates[ib].title[:40]}'"
                    )
                    uf.union(ia, ib)

    clusters: Dict[int, List[CanonicalTask]] = {}
    for idx, task in enumerate(candidates):
        clusters.setdefault(uf.find(idx), []).append(task)

    groups = []
    for members in clusters.values():
        if len(members) < 2:
            continue
        keep = pick_keeper(members)
        remove = [t for t in members if t.id != keep.id]
        if remove:
            groups.append(DuplicateGroup(keep=keep, remove=remove))

    groups.sort(key=lambda g: len(g.remove), reverse=True)

    logger.info(
        f"Dedupe: {len(candidates)} candidates in {len(buckets)} buckets, "
        f"{comparisons} comparisons → {len(groups)} duplicate groups"
    )
    return groups
