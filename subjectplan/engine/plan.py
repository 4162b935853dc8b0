"""Mutable study plan: the user's inputs plus everything derived from them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set

from subjectplan.core.config import PlannerConfig
from subjectplan.core.errors import PlanInvariantError
from subjectplan.engine import propagation
from subjectplan.engine.options import UNLIMITED, Content, Course, Decision, Subject
from subjectplan.engine.propagation import Relation
from subjectplan.engine.scheduler import Scheduler
from subjectplan.engine.time import IMPOSSIBLE, Session, Time

if TYPE_CHECKING:  # pragma: no cover
    from subjectplan.registry import ContentRegistry

LOGGER = logging.getLogger("subjectplan.plan")


class Plan:
    """Selections, capacities and forced times, with the state derived from them.

    Only three things are inputs: the selected content, the forced times and the
    per-session capacities. Decisions, bans, relations, earliest times and the
    schedule are recomputed from those whenever they change. A plan is not
    thread-safe; use one per user session.
    """

    def __init__(self, registry: "ContentRegistry", config: Optional[PlannerConfig] = None):
        self.registry = registry
        self.config = config or PlannerConfig()
        self.decisions: List[Decision] = []
        self.selected_subjects: List[Subject] = []
        self.selected_courses: List[Course] = []
        self.assigned_times: Dict[Subject, Time] = {}
        self.forced_times: Dict[Subject, Time] = {}
        self.max_credit_points: Dict[Time, int] = {}
        self.banned_contents: Dict[Content, List[Content]] = {}
        self.relations: Set[Relation] = set()
        self.earliest_completion_times: Dict[Subject, Time] = {}
        # Subjects whose credit-point feasibility is currently being evaluated.
        self.credit_guard: Set[Content] = set()
        self.add_year()
        self.refresh_earliest_times()

    # ------------------------------------------------------------------ selections

    def is_selected(self, content: Content) -> bool:
        return content in self.selected_subjects or content in self.selected_courses

    def add_content(self, content: Content) -> List[Content]:
        return self.add_contents([content])

    def add_contents(self, contents: Iterable[Content]) -> List[Content]:
        """Select content and reschedule. Returns what was actually new."""
        added: List[Content] = []
        for content in contents:
            if self.is_selected(content) or content in added:
                continue
            if isinstance(content, Subject):
                self.selected_subjects.append(content)
            elif isinstance(content, Course):
                self.selected_courses.append(content)
            else:
                raise TypeError(f"Cannot select {content!r}")
            added.append(content)
        if not added:
            return added
        self.refresh_banned_contents()
        self.refresh_relations()
        self.order()
        return added

    def remove_content(self, content: Content) -> None:
        if isinstance(content, Subject) and content in self.selected_subjects:
            self.selected_subjects.remove(content)
            self.forced_times.pop(content, None)
        elif isinstance(content, Course) and content in self.selected_courses:
            self.selected_courses.remove(content)
        self.refresh_banned_contents()
        self.refresh_relations()
        self.order()

    # ------------------------------------------------------------------ decisions

    def add_decision(self, decision: Decision) -> None:
        self.decisions.append(decision)
        self.refresh_banned_contents()

    def remove_decision(self, decision: Decision) -> bool:
        """Drop exactly this decision object; equal decisions with other reasons stay."""
        kept = [existing for existing in self.decisions if existing is not decision]
        if len(kept) == len(self.decisions):
            return False
        self.decisions = kept
        self.refresh_banned_contents()
        return True

    def replace_decision(self, old: Decision, new: Decision) -> None:
        self.decisions = [new if existing is old else existing for existing in self.decisions]

    def clear_decisions(self) -> None:
        self.decisions = []
        self.refresh_banned_contents()

    # ------------------------------------------------------------------ time and capacity

    def add_year(self) -> int:
        """Append another academic year of capacity."""
        year = max((time.year for time in self.max_credit_points), default=0) + 1
        if year > self.config.max_years:
            raise PlanInvariantError(f"Plan would need more than {self.config.max_years} years")
        for session in Session:
            if year == 1 or year > self.config.default_years:
                value = self.config.capacities.for_session(session)
            else:
                value = self.get_max_credit_points(Time(year - 1, session))
            self.max_credit_points[Time(year, session)] = value
        LOGGER.debug(f"Added year {year} to the plan")
        return year

    def get_max_credit_points(self, time: Time) -> int:
        if time.year <= 0:
            raise ValueError("Year must be positive")
        for year in range(time.year, 0, -1):
            value = self.max_credit_points.get(Time(year, time.session))
            if value is not None:
                return value
        return self.config.capacities.for_session(time.session)

    def set_max_credit_points(
        self,
        credit_points: int,
        *,
        time: Optional[Time] = None,
        session: Optional[Session] = None,
    ) -> None:
        """Change capacity for one time, one session of every year, or both main sessions."""
        if credit_points < 0:
            raise ValueError("Capacity cannot be negative")
        if time is not None:
            LOGGER.info(f"Setting capacity of {time} to {credit_points}cp")
            self.max_credit_points[time] = credit_points
        else:
            sessions = {session} if session is not None else {Session.S1, Session.S2}
            for key in [key for key in self.max_credit_points if key.session in sessions]:
                self.max_credit_points[key] = credit_points
        self.refresh_earliest_times()
        self.order()

    def force_time(self, subject: Subject, time: Time) -> None:
        self.forced_times[subject] = time
        self.order()

    def unforce_time(self, subject: Subject) -> None:
        if self.forced_times.pop(subject, None) is not None:
            self.order()

    def forced_time(self, subject: Subject) -> Optional[Time]:
        return self.forced_times.get(subject)

    def first_year_of(self, subject: Subject) -> int:
        """The first plan year in which ``subject`` runs at all."""
        if subject.earliest_year is None:
            return 1
        return max(1, subject.earliest_year - self.config.first_year_offset + 1)

    def chosen_time(self, subject: Subject) -> Time:
        return self.assigned_times.get(subject, IMPOSSIBLE)

    # ------------------------------------------------------------------ derived state

    def refresh_banned_contents(self) -> None:
        propagation.refresh_banned_contents(self)

    def refresh_relations(self) -> None:
        propagation.refresh_relations(self)

    def refresh_earliest_times(self) -> None:
        propagation.refresh_earliest_times(self)

    def order(self) -> None:
        Scheduler(self).order()

    # ------------------------------------------------------------------ queries

    def subjects_at(self, time: Time) -> List[Subject]:
        return [subject for subject in self.selected_subjects if self.assigned_times.get(subject) == time]

    def selected_subjects_so_far(self, time: Time) -> List[Subject]:
        return [
            subject
            for subject in self.selected_subjects
            if subject in self.assigned_times and self.assigned_times[subject] <= time
        ]

    def notable_times(self) -> List[Time]:
        """Main sessions plus any other session that has something scheduled."""
        return sorted(
            time
            for time in self.max_credit_points
            if time.session in (Session.S1, Session.S2) or self.subjects_at(time)
        )

    @property
    def subjects_in_order(self) -> Dict[Time, List[Subject]]:
        return {time: self.subjects_at(time) for time in self.notable_times()}

    def remaining_credit_points(self) -> int:
        """Credit points still needed for the first selected course."""
        if not self.selected_courses:
            return UNLIMITED
        taken = sum(subject.credit_points() for subject in self.selected_subjects)
        return self.selected_courses[0].credit_points() - taken

    def max_subjects_per_session(self) -> int:
        counts: Dict[Time, int] = {}
        for subject in self.selected_subjects:
            time = self.assigned_times[subject]
            counts[time] = counts.get(time, 0) + 1
        return max(counts.values(), default=0)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot of the plan."""
        return {
            "courses": [course.code for course in self.selected_courses],
            "subjects": [subject.code for subject in self.selected_subjects],
            "decisions": [str(decision) for decision in self.decisions],
            "schedule": {
                str(time): [subject.code for subject in subjects]
                for time, subjects in self.subjects_in_order.items()
                if subjects
            },
            "banned": {
                content.code: sorted({reason.code for reason in reasons})
                for content, reasons in self.banned_contents.items()
            },
        }

    def __str__(self) -> str:
        slots = [self.subjects_at(time) for time in sorted(self.max_credit_points)]
        return " ".join("[" + " ".join(subject.code for subject in slot) + "]" for slot in slots if slot)


__all__ = ["Plan"]
