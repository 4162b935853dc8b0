"""Greedy semester-by-semester placement of selected subjects."""

from __future__ import annotations

import logging
import time as timer
from typing import TYPE_CHECKING, Dict, List, Optional

from subjectplan.core.errors import PlanInvariantError
from subjectplan.engine.options import Content, Decision, Subject
from subjectplan.engine.propagation import Importance, is_above, is_course_requisite
from subjectplan.engine.time import FIRST, Time

if TYPE_CHECKING:  # pragma: no cover
    from subjectplan.engine.plan import Plan

LOGGER = logging.getLogger("subjectplan.scheduler")


class Scheduler:
    """Assigns every selected subject of a plan to a time slot.

    Semesters are filled in order. Within a semester the best eligible subject
    is placed repeatedly until nothing else fits.
    """

    def __init__(self, plan: "Plan"):
        self.plan = plan

    def order(self) -> Dict[Subject, Time]:
        plan = self.plan
        started = timer.perf_counter()

        for subject, forced in list(plan.forced_times.items()):
            if subject not in plan.selected_subjects or not subject.allowed_during(plan, forced):
                LOGGER.info(f"Dropping forced time {forced} for {subject.code}")
                del plan.forced_times[subject]

        plan.assigned_times = {}
        semester = FIRST
        while semester in plan.max_credit_points or self._remaining():
            if semester not in plan.max_credit_points:
                plan.add_year()
            capacity = plan.get_max_credit_points(semester)
            used = sum(subject.credit_points() for subject in plan.subjects_at(semester))
            while used < capacity:
                chosen = self._pick(semester, capacity - used)
                if chosen is None:
                    break
                plan.assigned_times[chosen] = semester
                used += chosen.credit_points()
            semester = semester.next()

        unplaced = self._remaining()
        if unplaced:
            raise PlanInvariantError(
                "Not every selected subject was placed: " + ", ".join(subject.code for subject in unplaced)
            )
        LOGGER.debug(f"Ordered {len(plan.assigned_times)} subjects in {(timer.perf_counter() - started) * 1000:.1f}ms")
        return plan.assigned_times

    def _remaining(self) -> List[Subject]:
        plan = self.plan
        remaining = [subject for subject in plan.selected_subjects if subject not in plan.assigned_times]
        return sorted(remaining, key=lambda subject: subject.level)

    def _pick(self, semester: Time, room: int) -> Optional[Subject]:
        plan = self.plan
        remaining = self._remaining()
        candidates = [
            subject
            for subject in remaining
            if not (subject in plan.forced_times and semester < plan.forced_times[subject])
            and subject.allowed_during(plan, semester)
            and subject.credit_points() <= room
        ]
        forced = [
            subject
            for subject in candidates
            if subject in plan.forced_times and plan.forced_times[subject] <= semester
        ]
        if forced:
            candidates = forced
        else:
            candidates = [subject for subject in candidates if self.requisites_have_been_selected(subject, semester)]
        if not candidates:
            return None

        def dependants(subject: Subject) -> int:
            return sum(max(0, is_above(plan, other, subject)) for other in remaining)

        return min(
            candidates,
            key=lambda subject: (
                plan.forced_times[subject] if forced else FIRST,
                -dependants(subject),
                len(subject.sessions),
                subject.level,
                subject.prerequisites.size_of_elective() + subject.corequisites.size_of_elective(),
                0 if is_course_requisite(plan, subject) else 1,
            ),
        )

    def requisites_have_been_selected(
        self,
        subject: Subject,
        time: Time,
        requisite: Optional[Decision] = None,
    ) -> bool:
        """True when every requisite option that has to come first is already placed."""
        plan = self.plan
        if requisite is None:
            if subject.prerequisites.is_completed() and subject.corequisites.is_completed():
                # No real requisites: spread subjects out by their level.
                return time.as_number() // 2 >= subject.level - 1
            return self.requisites_have_been_selected(
                subject, time.previous(), subject.prerequisites
            ) and self.requisites_have_been_selected(subject, time, subject.corequisites)

        if requisite.has_been_completed(plan, time):
            return True
        if requisite.elective:
            return subject.level <= time.next().year
        placed = plan.selected_subjects_so_far(time)
        for option in requisite.options:
            if isinstance(option, Content):
                if option not in placed and self.option_must_come_before(subject, option):
                    return False
            elif not self.requisites_have_been_selected(subject, time, option):
                return False
        return True

    def option_must_come_before(self, parent: Subject, child: Content) -> bool:
        plan = self.plan
        edges = [relation for relation in plan.relations if relation.source is parent and relation.dest is child]
        if not edges:
            return False
        if any(relation.importance is Importance.COMPULSORY for relation in edges):
            return is_above(plan, child, parent, compulsory_only=True) < 0
        return is_above(plan, child, parent) < 0


__all__ = ["Scheduler"]
