"""Derived plan state: banned content, relations between selections and earliest times."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Deque, Dict, List, Set, Tuple

from subjectplan.engine.options import Content, Course, Decision, Option, Subject
from subjectplan.engine.time import EARLY, IMPOSSIBLE, Time

if TYPE_CHECKING:  # pragma: no cover
    from subjectplan.engine.plan import Plan

LOGGER = logging.getLogger("subjectplan.propagation")


class Importance(str, Enum):
    OPTIONAL = "optional"
    COMPULSORY = "compulsory"


@dataclass(frozen=True)
class Relation:
    """``source`` depends on the selected content ``dest``."""

    source: Content
    importance: Importance
    dest: Content

    def __str__(self) -> str:
        return f"{self.source} - {self.dest} ({self.importance.value})"


def refresh_banned_contents(plan: "Plan") -> Dict[Content, List[Content]]:
    """Rebuild ``plan.banned_contents`` from selections and presented decisions."""
    banned: Dict[Content, List[Content]] = {}

    def add(content: Content, reason: Option) -> None:
        reasons = list(reason.reasons) if isinstance(reason, Decision) else [reason]
        banned.setdefault(content, []).extend(reasons)

    # NCCW lists may be asymmetric; each one is applied as listed.
    for subject in plan.selected_subjects:
        for content in subject.nccws:
            add(content, subject)
    for course in plan.selected_courses:
        for content in course.nccws:
            add(content, course)
    for decision in plan.decisions:
        for content in decision.forced_bans():
            add(content, decision)

    plan.banned_contents = banned
    return banned


def refresh_relations(plan: "Plan") -> Set[Relation]:
    """Record which selected content depends on which other selected content."""
    relations: Set[Relation] = set()
    selected: List[Content] = [*plan.selected_subjects, *plan.selected_courses]
    for content in selected:
        pending: Deque[Tuple[Decision, Importance]] = deque(
            [(content.prerequisites, Importance.COMPULSORY), (content.corequisites, Importance.COMPULSORY)]
        )
        while pending:
            requisite, importance = pending.popleft()
            if requisite.elective:
                continue
            if importance is Importance.COMPULSORY and requisite.must_pick_all():
                importance = Importance.COMPULSORY
            else:
                importance = Importance.OPTIONAL
            for option in requisite.options:
                if isinstance(option, Decision):
                    pending.append((option, importance))
                elif option in plan.selected_subjects:
                    relations.add(Relation(content, importance, option))
    plan.relations = relations
    return relations


def refresh_earliest_times(plan: "Plan") -> Dict[Subject, Time]:
    """Propagate earliest completion times through the requisite graph until stable.

    Every subject starts at ``EARLY`` and in the worklist; whenever a subject's
    time moves, the subjects whose requisites mention it are queued again. Times
    only ever move forward and stop at ``IMPOSSIBLE`` so the loop terminates on
    cyclic graphs.
    """
    started = time.perf_counter()
    registry = plan.registry
    plan.earliest_completion_times = {}
    queue: Deque[Subject] = deque(registry.all_subjects())
    visits = 0
    while queue:
        current = queue.popleft()
        visits += 1
        after_prerequisites = current.prerequisites.earliest_completion_time(plan).next()
        with_corequisites = current.corequisites.earliest_completion_time(plan)
        evaluated = max(after_prerequisites, with_corequisites)
        if current in plan.banned_contents or IMPOSSIBLE < evaluated:
            evaluated = IMPOSSIBLE
        first_year = plan.first_year_of(current)
        while (
            evaluated.year < first_year
            or evaluated.session not in current.sessions
            or plan.get_max_credit_points(evaluated) < current.credit_points()
        ):
            evaluated = evaluated.next()
            if IMPOSSIBLE < evaluated:
                evaluated = IMPOSSIBLE
                break
        previous = plan.earliest_completion_times.get(current, EARLY)
        plan.earliest_completion_times[current] = evaluated
        if previous != evaluated:
            queue.extend(registry.parents_of(current))
    LOGGER.debug(f"Earliest times settled after {visits} visits in {(time.perf_counter() - started) * 1000:.1f}ms")
    return plan.earliest_completion_times


def is_above(plan: "Plan", parent: Content, child: Content, *, compulsory_only: bool = False) -> int:
    """Length of the shortest relation path from ``parent`` to ``child``, or -1."""
    visited: Set[Content] = set()
    pending: Deque[Tuple[Content, int]] = deque([(parent, 0)])
    edges: Dict[Content, List[Relation]] = {}
    for relation in plan.relations:
        if compulsory_only and relation.importance is not Importance.COMPULSORY:
            continue
        edges.setdefault(relation.source, []).append(relation)
    while pending:
        current, size = pending.popleft()
        if current in visited:
            continue
        visited.add(current)
        if current is child:
            return size
        for relation in edges.get(current, ()):
            pending.append((relation.dest, size + 1))
    return -1


def is_course_requisite(plan: "Plan", subject: Subject) -> bool:
    return any(isinstance(relation.source, Course) and relation.dest is subject for relation in plan.relations)


__all__ = [
    "Importance",
    "Relation",
    "is_above",
    "is_course_requisite",
    "refresh_banned_contents",
    "refresh_earliest_times",
    "refresh_relations",
]
