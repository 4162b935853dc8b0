"""Fixed-point analysis that turns selections into open decisions."""

from __future__ import annotations

import functools
import logging
import time as timer
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Tuple

from subjectplan.core.errors import PlanInvariantError
from subjectplan.core.provenance import AnalysisEvent, AnalysisLogger, AnalysisStage
from subjectplan.engine.options import Content, Course, Decision, Option, Selection, Subject, sum_credit_points_at_least
from subjectplan.engine.plan import Plan
from subjectplan.engine.time import Session, Time

LOGGER = logging.getLogger("subjectplan.decider")


class Decider:
    """Applies user mutations to a plan and re-derives its decisions.

    Every mutation runs a full analysis: the requisites of everything selected
    are reduced against the plan, choices with only one possible outcome are
    selected automatically, and whatever is left is presented as an open
    decision.
    """

    def __init__(self, plan: Plan, provenance: Optional[AnalysisLogger] = None):
        self.plan = plan
        self.provenance = provenance
        self.passes = 0
        # Presented decisions replaced by a copy carrying extra reasons, keyed by id.
        self._merged: Dict[int, Decision] = {}

    # ------------------------------------------------------------------ mutations

    def add_content(self, content: Content) -> None:
        self.add_contents([content])

    def add_contents(self, contents: Iterable[Content]) -> None:
        self.plan.add_contents(contents)
        self.analyze()

    def remove_content(self, content: Content) -> None:
        self.plan.remove_content(content)
        self.analyze()

    def force_subject(self, subject: Subject, time: Time) -> None:
        self.plan.force_time(subject, time)
        self.analyze()

    def unforce_subject(self, subject: Subject) -> None:
        self.plan.unforce_time(subject)
        self.analyze()

    def set_max_credit_points(
        self,
        credit_points: int,
        *,
        time: Optional[Time] = None,
        session: Optional[Session] = None,
    ) -> None:
        self.plan.set_max_credit_points(credit_points, time=time, session=session)
        self.analyze()

    # ------------------------------------------------------------------ analysis

    def analyze(self) -> List[Decision]:
        """Re-derive the plan's open decisions until no new selection is forced."""
        plan = self.plan
        started = timer.perf_counter()
        self.passes = 0
        self._trace(
            AnalysisStage.START,
            "Analysis started",
            payload={
                "courses": [course.code for course in plan.selected_courses],
                "subjects": [subject.code for subject in plan.selected_subjects],
            },
        )

        new_information = True
        while new_information:
            new_information = False
            self.passes += 1
            plan.clear_decisions()
            plan.refresh_earliest_times()
            sweep_started = timer.perf_counter()

            pending: Deque[Decision] = deque(self._initial_decisions())
            while pending:
                decision = pending.popleft()
                banned_before = set(plan.banned_contents)
                plan.remove_decision(decision)

                if (
                    decision.selection is not Selection.CP
                    and decision.must_pick_all()
                    and all(isinstance(option, Decision) for option in decision.options)
                ):
                    pending.extend(decision.options)  # type: ignore[arg-type]
                    continue

                remaining = decision.remaining(plan).simplified()
                if remaining.is_completed():
                    continue
                if remaining.is_banned():
                    raise PlanInvariantError(f"'{decision}' got banned even though it needs to be completed")

                if remaining.must_pick_all():
                    contents = [
                        option
                        for option in remaining.options
                        if isinstance(option, Content) and not plan.is_selected(option)
                    ]
                    plan.add_contents(contents)
                    for content in contents:
                        pending.append(content.prerequisites)
                        pending.append(content.corequisites)
                    pending.extend(option for option in remaining.options if isinstance(option, Decision))
                    if contents:
                        LOGGER.debug(f"Selected {', '.join(content.code for content in contents)} to satisfy '{decision}'")
                        self._trace(
                            AnalysisStage.SELECTION,
                            f"Selected content required by '{decision}'",
                            selected=[content.code for content in contents],
                        )
                        new_information = True
                        break
                else:
                    plan.add_decision(remaining)
                    if set(plan.banned_contents) - banned_before:
                        requeue = [
                            presented
                            for presented in plan.decisions
                            if not any(presented is queued for queued in pending)
                        ]
                        pending.extend(requeue)
                        plan.refresh_earliest_times()

            LOGGER.debug(f"Making decisions: {(timer.perf_counter() - sweep_started) * 1000:.1f}ms")

        prune_started = timer.perf_counter()
        self.remove_covered_decisions()
        plan.decisions.sort(key=functools.cmp_to_key(self._compare))
        LOGGER.debug(f"Removing repetition: {(timer.perf_counter() - prune_started) * 1000:.1f}ms")

        schedule_started = timer.perf_counter()
        plan.order()
        LOGGER.debug(f"Scheduling: {(timer.perf_counter() - schedule_started) * 1000:.1f}ms")

        elapsed = (timer.perf_counter() - started) * 1000
        LOGGER.info(f"Analysis finished after {self.passes} passes with {len(plan.decisions)} open decisions")
        self._trace(
            AnalysisStage.COMPLETE,
            "Analysis finished",
            decisions=[str(decision) for decision in plan.decisions],
            payload={
                "banned": sorted(content.code for content in plan.banned_contents),
                "elapsed_ms": round(elapsed, 3),
            },
        )
        return plan.decisions

    def _initial_decisions(self) -> List[Decision]:
        plan = self.plan
        decisions: List[Decision] = []
        if plan.selected_courses:
            requirements = [course.prerequisites for course in plan.selected_courses]
            combined = Decision(
                requirements,
                Selection.CP,
                sum(requirement.credit_points() for requirement in requirements),
                prerequisite_reasons=plan.selected_courses,
            )
            decisions.append(combined.simplified())
            decisions.extend(course.corequisites for course in plan.selected_courses)
        for subject in plan.selected_subjects:
            decisions.append(subject.prerequisites)
            decisions.append(subject.corequisites)
        return decisions

    def remove_covered_decisions(self) -> None:
        """Drop presented decisions that another presented decision already implies."""
        plan = self.plan
        self._merged = {}
        # Non-unique decisions are checked first.
        for snapshot in sorted(plan.decisions, key=lambda decision: decision.unique()):
            current = snapshot
            while id(current) in self._merged:
                current = self._merged[id(current)]
            if any(existing is current for existing in plan.decisions) and self.covered_by(current):
                plan.remove_decision(current)
        self._merged = {}

    def covered_by(self, decision: Decision) -> bool:
        """True when another presented decision already implies ``decision``.

        Covering decisions take over the covered decision's reasons. Two equal
        decisions cover each other, so the second one checked keeps both sets
        of reasons.
        """
        plan = self.plan
        others = [other for other in plan.decisions if other is not decision]

        if decision.elective and not decision.unique():

            def absorbs(option: Option) -> bool:
                return (
                    isinstance(option, Decision)
                    and option.unique()
                    and (
                        option.has_same_options(decision)
                        or all(decision.contains(sub) for sub in option.options)
                    )
                )

            if sum_credit_points_at_least(others, absorbs, decision.credit_points()):
                return True

        found = False
        for other in others:
            if decision.unique() and other.unique():
                continue
            if not other.unique() and decision.unique() and not other.only_pick_one():
                continue
            if other.covers(decision):
                merged = other.with_reasons_from(decision)
                plan.replace_decision(other, merged)
                self._merged[id(other)] = merged
                found = True
        return found

    def _compare(self, first: Decision, second: Decision) -> int:
        def has_course(decision: Decision) -> int:
            return 1 if any(isinstance(option, Course) for option in decision.options) else 0

        compare = has_course(second) - has_course(first)
        if compare == 0:
            compare = int(first.elective) - int(second.elective)
        if compare == 0:
            compare = second.level - first.level
        if compare == 0:
            compare = len(first.options) - len(second.options)
        if compare == 0 and first.selection is Selection.CP and second.selection is Selection.CP:
            compare = first.credit_points() - second.credit_points()
        if compare == 0:
            compare = (
                first.required_completion_time(self.plan).as_number()
                - second.required_completion_time(self.plan).as_number()
            )
        if compare == 0:
            first_text, second_text = str(first), str(second)
            compare = (first_text > second_text) - (first_text < second_text)
        return compare

    # ------------------------------------------------------------------ presentation queries

    def next_decision(self, original: Optional[Decision]) -> Tuple[Optional[Decision], bool]:
        """Pick the decision to show after ``original`` was acted on.

        Returns the decision and whether the caller should keep its search filter.
        """
        decisions = self.plan.decisions
        if original is not None:
            refinements = [
                decision
                for decision in decisions
                if all(option in original.options for option in decision.options)
            ]
            if refinements:
                return max(refinements, key=lambda decision: len(decision.options)), True
            for decision in decisions:
                if decision.elective:
                    continue
                if any(isinstance(reason, Subject) and reason in decision.reasons for reason in original.reasons):
                    return decision, False
        return (decisions[0] if decisions else None), False

    def is_available(self, option: Option) -> bool:
        """Whether ``option`` could still fit; used to grey out choices."""
        plan = self.plan
        if option.has_been_banned(plan):
            return False
        fits, _ = option.enough_credit_points(plan, plan.remaining_credit_points())
        return fits

    def recommendations(self, content: Content) -> List[Content]:
        plan = self.plan
        selected = [*plan.selected_subjects, *plan.selected_courses]
        return plan.registry.recommendations_for(content, selected)

    def _trace(
        self,
        stage: AnalysisStage,
        message: str,
        *,
        selected: Optional[List[str]] = None,
        decisions: Optional[List[str]] = None,
        payload: Optional[dict] = None,
    ) -> None:
        if self.provenance is None:
            return
        self.provenance.log(
            AnalysisEvent(
                stage=stage,
                message=message,
                pass_number=self.passes,
                selected=selected or [],
                decisions=decisions or [],
                payload=payload or {},
            )
        )


__all__ = ["Decider"]
