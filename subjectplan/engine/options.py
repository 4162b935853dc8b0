"""Content and the requisite decision algebra.

Every selectable unit (a :class:`Subject` or a :class:`Course`) and every
structured choice over them (a :class:`Decision`) is an :class:`Option`. The
algebra answers, for a given :class:`~subjectplan.engine.plan.Plan`:

* has the option been completed by a required time,
* has it been banned (rendered impossible),
* how many credit points does satisfying it take,
* when could it be completed at the earliest,
* what does it look like once a piece of content is taken out of play.

Decisions are immutable values. Reduction and simplification always build new
decisions; equality is structural so decisions rebuilt on every analysis pass
still compare equal to the ones the user has already seen.
"""

from __future__ import annotations

import copy
import re
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from subjectplan.core.errors import PlanInvariantError
from subjectplan.engine.time import ALL, EARLY, IMPOSSIBLE, Session, Time

if TYPE_CHECKING:  # pragma: no cover
    from subjectplan.engine.plan import Plan

UNLIMITED = sys.maxsize
DEFAULT_LEVEL = 1000

_CODE_PATTERN = re.compile(r"^[A-Za-z]{4}(\d{4})$")


class Selection(str, Enum):
    """How the options of a decision combine."""

    OR = "or"
    AND = "and"
    CP = "cp"

    @classmethod
    def choices(cls) -> List[str]:
        return [member.value for member in cls]


class CourseKind(str, Enum):
    DEGREE = "degree"
    MAJOR = "major"
    MINOR = "minor"
    SPECIALISATION = "specialisation"
    COURSE = "course"

    @classmethod
    def choices(cls) -> List[str]:
        return [member.value for member in cls]


def sum_credit_points_at_least(
    options: Iterable["Option"],
    predicate: Callable[["Option"], bool],
    minimum: int,
) -> bool:
    """True when the options matching ``predicate`` carry at least ``minimum`` credit points."""
    if minimum <= 0:
        return True
    total = 0
    for option in options:
        if not predicate(option):
            continue
        total += option.credit_points()
        if total >= minimum:
            return True
    return False


class Option(ABC):
    """Anything a requisite can ask for."""

    @abstractmethod
    def has_been_completed(self, plan: "Plan", required_time: Time) -> bool:
        ...

    @abstractmethod
    def has_been_banned(self, plan: "Plan") -> bool:
        ...

    @abstractmethod
    def credit_points(self) -> int:
        ...

    @abstractmethod
    def earliest_completion_time(self, plan: "Plan") -> Time:
        ...

    @abstractmethod
    def enough_credit_points(self, plan: "Plan", available: int) -> Tuple[bool, int]:
        """Return ``(fits, required)`` where ``required`` never overestimates the true cost."""

    @abstractmethod
    def forced_bans(self) -> List["Content"]:
        ...

    @abstractmethod
    def covers(self, other: "Option") -> bool:
        ...

    @abstractmethod
    def has_same_options(self, other: "Option") -> bool:
        ...

    @abstractmethod
    def without_content(self, content: "Content", designated: bool) -> "Option":
        ...

    @property
    @abstractmethod
    def level(self) -> int:
        ...


class Content(Option):
    """An atomic, named, selectable unit. Identity is the object itself."""

    def __init__(self, code: str, name: str = ""):
        self.code = code
        self.name = name or code
        self._prerequisites: Optional[Decision] = None
        self._corequisites: Optional[Decision] = None
        self._nccws: Tuple[Content, ...] = ()

    def attach_requisites(
        self,
        prerequisites: "Decision",
        corequisites: "Decision",
        nccws: Iterable["Content"] = (),
    ) -> None:
        """Set the requisite decisions and mutually exclusive content. Allowed exactly once."""
        if self._prerequisites is not None or self._corequisites is not None:
            raise PlanInvariantError(f"Requisites of {self.code} have already been attached")
        self._prerequisites = prerequisites
        self._corequisites = corequisites
        self._nccws = tuple(nccws)

    @property
    def prerequisites(self) -> "Decision":
        if self._prerequisites is None:
            raise PlanInvariantError(f"Requisites of {self.code} were never attached")
        return self._prerequisites

    @property
    def corequisites(self) -> "Decision":
        if self._corequisites is None:
            raise PlanInvariantError(f"Requisites of {self.code} were never attached")
        return self._corequisites

    @property
    def nccws(self) -> Tuple["Content", ...]:
        return self._nccws

    @property
    def nccw_codes(self) -> List[str]:
        return [content.code for content in self._nccws]

    def forced_bans(self) -> List["Content"]:
        return list(self._nccws)

    def has_same_options(self, other: Option) -> bool:
        if isinstance(other, Decision):
            return len(other.options) == 1 and other.options[0] is self
        return other is self

    def covers(self, other: Option) -> bool:
        if isinstance(other, Decision):
            return other.only_pick_one() and any(self.covers(option) for option in other.options)
        return other is self

    def without_content(self, content: "Content", designated: bool) -> Option:
        if content is self:
            return CompletedDecision(self) if designated else ImpossibleDecision(self)
        return self

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code}>"


class Subject(Content):
    """A unit of study worth some credit points, offered in some sessions."""

    def __init__(
        self,
        code: str,
        name: str = "",
        *,
        credit_points: int = 10,
        sessions: Iterable[Session] = (Session.S1, Session.S2),
        earliest_year: Optional[int] = None,
        level: Optional[int] = None,
    ):
        super().__init__(code, name)
        self._credit_points = credit_points
        self.sessions = frozenset(sessions)
        self.earliest_year = earliest_year
        self._level = level if level is not None else level_from_code(code)

    @property
    def level(self) -> int:
        return self._level

    def credit_points(self) -> int:
        return self._credit_points

    def has_been_completed(self, plan: "Plan", required_time: Time) -> bool:
        if self not in plan.selected_subjects:
            return False
        assigned = plan.assigned_times.get(self)
        return assigned is not None and assigned <= required_time

    def has_been_banned(self, plan: "Plan") -> bool:
        return IMPOSSIBLE <= self.earliest_completion_time(plan)

    def earliest_completion_time(self, plan: "Plan") -> Time:
        return plan.earliest_completion_times.get(self, EARLY)

    def allowed_during(self, plan: "Plan", time: Time) -> bool:
        return self.earliest_completion_time(plan) <= time and time.session in self.sessions

    def enough_credit_points(self, plan: "Plan", available: int) -> Tuple[bool, int]:
        if available == UNLIMITED:
            return True, 0
        if available < 0:
            return False, 0
        if self.has_been_completed(plan, ALL):
            return True, 0
        # Requisite cycles count as satisfiable.
        if self in plan.credit_guard:
            return True, 0
        plan.credit_guard.add(self)
        try:
            required = self.credit_points()
            fits, prerequisite_cost = self.prerequisites.enough_credit_points(plan, available - required)
            if not fits:
                return False, required
            fits, corequisite_cost = self.corequisites.enough_credit_points(plan, available - required)
            if not fits:
                return False, required
            required += max(prerequisite_cost, corequisite_cost)
            return required <= available, required
        finally:
            plan.credit_guard.discard(self)


class Course(Content):
    """A qualification, major, minor or specialisation."""

    def __init__(self, code: str, name: str = "", *, kind: CourseKind = CourseKind.COURSE):
        super().__init__(code, name)
        self.kind = CourseKind(kind)

    @property
    def is_degree(self) -> bool:
        return self.kind is CourseKind.DEGREE

    @property
    def level(self) -> int:
        return DEFAULT_LEVEL

    def credit_points(self) -> int:
        return self.prerequisites.credit_points()

    def has_been_completed(self, plan: "Plan", required_time: Time) -> bool:
        return self in plan.selected_courses

    def has_been_banned(self, plan: "Plan") -> bool:
        if not self.is_degree or self in plan.selected_courses:
            return False
        return any(course.is_degree for course in plan.selected_courses)

    def earliest_completion_time(self, plan: "Plan") -> Time:
        return IMPOSSIBLE if self.has_been_banned(plan) else EARLY

    def enough_credit_points(self, plan: "Plan", available: int) -> Tuple[bool, int]:
        if self.has_been_banned(plan):
            return False, 0
        if self in plan.selected_courses:
            return True, 0
        if available == UNLIMITED:
            return True, 0
        if available < 0:
            return False, 0
        return self.prerequisites.enough_credit_points(plan, available)


def level_from_code(code: str) -> int:
    match = _CODE_PATTERN.match(code)
    if not match:
        return 1
    return max(1, int(match.group(1)) // 1000)


def _unique(contents: Iterable[Content]) -> Tuple[Content, ...]:
    seen: List[Content] = []
    for content in contents:
        if not any(content is existing for existing in seen):
            seen.append(content)
    return tuple(seen)


class Decision(Option):
    """A structured choice over child options.

    Args:
        options: Ordered child options (content or nested decisions).
        selection: ``OR`` picks one, ``AND`` picks all, ``CP`` picks enough
            options to reach ``credit_points``.
        credit_points: Required for ``CP`` decisions, forbidden otherwise.
        prerequisite_reasons: Content this decision is a prerequisite of.
        corequisite_reasons: Content this decision is a corequisite of.
        elective: Marks an open credit-point requirement rather than an
            enumerated list.
        label: Origin text shown in place of the generated description.
    """

    def __init__(
        self,
        options: Sequence[Option] = (),
        selection: Selection = Selection.OR,
        credit_points: Optional[int] = None,
        *,
        prerequisite_reasons: Iterable[Content] = (),
        corequisite_reasons: Iterable[Content] = (),
        elective: bool = False,
        label: Optional[str] = None,
    ):
        selection = Selection(selection)
        if credit_points is not None and selection is not Selection.CP:
            raise ValueError("credit_points are only allowed for CP selections")
        if credit_points is None and selection is Selection.CP:
            raise ValueError("credit_points are required for CP selections")
        self.options: Tuple[Option, ...] = tuple(options)
        self.selection = selection
        self._credit_points = credit_points
        self.prerequisite_reasons: Tuple[Content, ...] = _unique(prerequisite_reasons)
        self.corequisite_reasons: Tuple[Content, ...] = _unique(corequisite_reasons)
        self.elective = elective
        self.label = label
        self._hash: Optional[int] = None

    @classmethod
    def for_content(
        cls,
        reason: Content,
        options: Sequence[Option],
        selection: Selection = Selection.OR,
        credit_points: Optional[int] = None,
        *,
        corequisite: bool = False,
        elective: bool = False,
        label: Optional[str] = None,
    ) -> "Decision":
        """Build the requisite decision of ``reason``."""
        if corequisite:
            return cls(options, selection, credit_points, corequisite_reasons=(reason,), elective=elective, label=label)
        return cls(options, selection, credit_points, prerequisite_reasons=(reason,), elective=elective, label=label)

    def derive(
        self,
        options: Sequence[Option],
        selection: Selection,
        credit_points: Optional[int] = None,
    ) -> "Decision":
        """Build a decision that inherits this decision's reasons.

        A CP decision whose options are all content (or already complete)
        keeps this decision's elective flag and label.
        """
        inherit = selection is Selection.CP and all(
            not isinstance(option, Decision) or option.is_completed() for option in options
        )
        return Decision(
            options,
            selection,
            credit_points,
            prerequisite_reasons=self.prerequisite_reasons,
            corequisite_reasons=self.corequisite_reasons,
            elective=self.elective if inherit else False,
            label=self.label if inherit else None,
        )

    def with_reasons_from(self, other: "Decision") -> "Decision":
        """Return a copy that also carries ``other``'s reasons."""
        merged = copy.copy(self)
        merged.prerequisite_reasons = _unique(self.prerequisite_reasons + other.prerequisite_reasons)
        merged.corequisite_reasons = _unique(self.corequisite_reasons + other.corequisite_reasons)
        return merged

    @property
    def reasons(self) -> Tuple[Content, ...]:
        return self.prerequisite_reasons + self.corequisite_reasons

    @property
    def level(self) -> int:
        if not self.options:
            return DEFAULT_LEVEL
        return self.options[0].level

    def credit_points(self) -> int:
        if self.selection is Selection.CP:
            return int(self._credit_points)
        if self.selection is Selection.AND:
            return sum(option.credit_points() for option in self.options)
        values = {option.credit_points() for option in self.options}
        if len(values) == 1:
            return values.pop()
        raise ValueError(f"Credit points of '{self}' are ambiguous")

    def unique(self) -> bool:
        """Content chosen for a course requirement cannot double-count toward another course."""
        return any(isinstance(reason, Course) for reason in self.prerequisite_reasons)

    def only_pick_one(self) -> bool:
        if self.selection is Selection.OR:
            return True
        if self.selection is Selection.AND:
            return len(self.options) == 1
        target = self.credit_points()
        return target != 0 and all(option.credit_points() >= target for option in self.options)

    def must_pick_all(self) -> bool:
        if self.selection is Selection.OR:
            return len(self.options) == 1
        if self.selection is Selection.AND:
            return True
        return self.credit_points() == sum(option.credit_points() for option in self.options)

    # ------------------------------------------------------------------ state

    def is_completed(self) -> bool:
        """Completed regardless of any plan."""
        if self.selection is Selection.OR:
            return any(isinstance(option, Decision) and option.is_completed() for option in self.options)
        if self.selection is Selection.AND:
            return all(isinstance(option, Decision) and option.is_completed() for option in self.options)
        return self.credit_points() <= 0

    def is_banned(self) -> bool:
        """Banned regardless of any plan."""
        if self.selection is Selection.OR:
            return all(isinstance(option, Decision) and option.is_banned() for option in self.options)
        if self.selection is Selection.AND:
            return any(isinstance(option, Decision) and option.is_banned() for option in self.options)
        return not sum_credit_points_at_least(
            self.options,
            lambda option: not (isinstance(option, Decision) and option.is_banned()),
            self.credit_points(),
        )

    def has_been_completed(self, plan: "Plan", required_time: Time) -> bool:
        if self.is_completed():
            return True
        if self.unique():
            raise PlanInvariantError("Completion of a course-rooted decision depends on the other course decisions")
        return self._combine(lambda option: option.has_been_completed(plan, required_time))

    def has_been_completed_ignoring_electives(self, plan: "Plan", required_time: Time) -> bool:
        if self.elective:
            return True

        def completed(option: Option) -> bool:
            if isinstance(option, Decision):
                return option.has_been_completed_ignoring_electives(plan, required_time)
            return option.has_been_completed(plan, required_time)

        return self._combine(completed)

    def _combine(self, satisfied: Callable[[Option], bool]) -> bool:
        if self.selection is Selection.OR:
            return any(satisfied(option) for option in self.options)
        if self.selection is Selection.AND:
            return all(satisfied(option) for option in self.options)
        return sum_credit_points_at_least(self.options, satisfied, self.credit_points())

    def has_been_banned(self, plan: "Plan") -> bool:
        if self.elective:
            return False
        if self.is_banned():
            return True
        if self.selection is Selection.OR:
            return all(option.has_been_banned(plan) for option in self.options)
        if self.selection is Selection.AND:
            return any(option.has_been_banned(plan) for option in self.options)
        return not sum_credit_points_at_least(
            self.options, lambda option: not option.has_been_banned(plan), self.credit_points()
        )

    # ------------------------------------------------------------------ bans

    def forced_bans(self) -> List[Content]:
        if self.elective or not self.options:
            return []
        if self.selection is Selection.OR:
            bans = self.options[0].forced_bans()
            for option in self.options[1:]:
                others = option.forced_bans()
                bans = [content for content in bans if any(content is other for other in others)]
            return bans
        if self.selection is Selection.AND:
            return list(_unique(content for option in self.options for content in option.forced_bans()))
        counts: Dict[Content, int] = {}
        for option in self.options:
            for content in option.forced_bans():
                counts[content] = counts.get(content, 0) + content.credit_points()
        total = sum(option.credit_points() for option in self.options)
        target = self.credit_points()
        return [content for content, weight in counts.items() if total - weight < target]

    # ------------------------------------------------------------------ reduction

    def required_completion_time(self, plan: "Plan") -> Time:
        """The time by which this decision has to be resolved."""
        by_prerequisites = ALL
        subjects = [reason for reason in self.prerequisite_reasons if isinstance(reason, Subject)]
        if subjects:
            by_prerequisites = min(plan.chosen_time(subject) for subject in subjects).previous()
        by_corequisites = ALL
        subjects = [reason for reason in self.corequisite_reasons if isinstance(reason, Subject)]
        if subjects:
            by_corequisites = min(plan.chosen_time(subject) for subject in subjects)
        return min(by_prerequisites, by_corequisites)

    def remaining(self, plan: "Plan") -> "Decision":
        """Reduce this decision by what the plan has already selected or banned."""
        required_time = self.required_completion_time(plan)
        remaining: List[Option] = []
        if self.selection is Selection.OR:
            for option in self.options:
                if isinstance(option, Content):
                    if option.has_been_completed(plan, required_time):
                        return CompletedDecision(self)
                    if option.has_been_banned(plan):
                        continue
                    remaining.append(option)
                else:
                    remaining.append(option.remaining(plan))
            return self.derive(remaining, Selection.OR)

        if self.selection is Selection.AND:
            for option in self.options:
                if isinstance(option, Content):
                    if option.has_been_completed(plan, required_time):
                        continue
                    if option.has_been_banned(plan):
                        return ImpossibleDecision(self)
                    remaining.append(option)
                else:
                    reduced_option = option.remaining(plan)
                    if reduced_option.is_banned():
                        return ImpossibleDecision(self)
                    remaining.append(reduced_option)
            return self.derive(remaining, Selection.AND)

        reduced: Decision = self
        taken: List[Content] = [
            subject for subject in plan.selected_subjects if subject.has_been_completed(plan, required_time)
        ]
        taken.extend(plan.selected_courses)
        for content in taken:
            reduced = reduced.without_content(content, True).simplified()
        return reduced.remove_banned_subjects(plan)

    def contains(self, value: Option) -> bool:
        return any(
            option is value or (isinstance(option, Decision) and option.contains(value))
            for option in self.options
        )

    def without_content(self, content: Content, designated: bool) -> "Decision":
        """Take ``content`` out of play, optionally letting one branch absorb its credit points."""
        if not self.contains(content):
            return self
        if self.selection is not Selection.CP:
            raise PlanInvariantError("Only CP decisions can give up content; reduce other decisions instead")
        results: List[Decision] = []
        if designated:
            relevant = [
                option
                for option in self.options
                if option is content or (isinstance(option, Decision) and option.contains(content))
            ]
            designations: List[Option] = []
            for candidate in relevant:
                keep = True
                if isinstance(candidate, Decision):
                    for other in relevant:
                        if other is candidate:
                            continue
                        if not isinstance(other, Decision):
                            keep = False
                            continue
                        if all(option in candidate.options for option in other.options):
                            keep = False
                        has_courses = any(isinstance(option, Course) for option in candidate.options)
                        if not has_courses and any(isinstance(option, Course) for option in other.options):
                            keep = False
                if keep:
                    designations.append(candidate)

            target = max(0, self.credit_points() - content.credit_points())
            for designation in designations:
                options = [
                    option.without_content(content, False)
                    for option in self.options
                    if option is not designation
                ]
                options.append(designation.without_content(content, True))
                results.append(self.derive(options, Selection.CP, target))

        if not results:
            options = [
                option.without_content(content, False)
                for option in self.options
                if option is not content
            ]
            results.append(self.derive(options, Selection.CP, self.credit_points()))
        return self.derive(results, Selection.CP, results[0].credit_points()).simplified()

    def remove_banned_subjects(self, plan: "Plan") -> "Decision":
        remaining: List[Option] = []
        for option in self.options:
            if isinstance(option, Decision):
                remaining.append(option.remove_banned_subjects(plan))
            elif not option.has_been_banned(plan) and not any(option is reason for reason in self.reasons):
                remaining.append(option)
        if self.selection is Selection.AND and len(remaining) < len(self.options):
            return ImpossibleDecision(self)
        return self.derive(remaining, self.selection, self._target())

    def _target(self) -> Optional[int]:
        return self.credit_points() if self.selection is Selection.CP else None

    # ------------------------------------------------------------------ simplification

    def simplified(self) -> "Decision":
        """Return an equivalent decision that is easier to present."""
        if self.is_completed():
            return CompletedDecision(self)
        simple: List[Option] = []
        for option in self.options:
            if isinstance(option, Content):
                # Zero-credit content never helps reach a credit-point target.
                if self.selection is Selection.CP and option.credit_points() == 0:
                    continue
                simple.append(option)
                continue
            reduced = option.simplified()
            if reduced.is_banned():
                if self.selection is Selection.AND:
                    return ImpossibleDecision(self)
                continue
            if reduced.is_completed():
                continue
            simple.append(reduced)

        if len(simple) == 1 and isinstance(simple[0], Decision):
            return simple[0]

        selection = self.selection
        if selection is Selection.OR or (
            selection is Selection.CP and all(option.credit_points() >= self.credit_points() for option in self.options)
        ):
            rearranged = False
            for nested in [option for option in simple if isinstance(option, Decision) and option.only_pick_one()]:
                if nested.elective:
                    selection = Selection.CP
                simple.remove(nested)
                simple.extend(nested.options)
                rearranged = True
            if rearranged:
                simple = _distinct(simple)

        if selection is Selection.AND or (
            selection is Selection.CP
            and sum(option.credit_points() for option in self.options) == self.credit_points()
        ):
            for nested in [
                option
                for option in simple
                if isinstance(option, Decision)
                and (option.selection is selection or option.only_pick_one())
                and option.must_pick_all()
            ]:
                simple.remove(nested)
                simple.extend(nested.options)

        if (
            selection is Selection.OR
            or (selection is Selection.CP and all(option.credit_points() >= self.credit_points() for option in simple))
        ) and simple and all(isinstance(option, Decision) for option in simple):
            factored = self._factor_common_options(simple, selection)
            if factored is not None:
                simple = factored
                if selection is Selection.OR:
                    selection = Selection.AND

        if (
            simple
            and all(isinstance(option, Subject) for option in simple)
            and not self.unique()
            and not self.elective
            and (
                selection is Selection.OR
                or (selection is Selection.CP and all(option.credit_points() >= self.credit_points() for option in simple))
            )
        ):
            # Drop options that already require one of their siblings.
            so_far = self.derive(simple, selection, self.credit_points() if selection is Selection.CP else None)
            pruned = [
                option
                for option in simple
                if not option.prerequisites.covers(so_far) and not option.corequisites.covers(so_far)
            ]
            if pruned:
                simple = pruned

        return self.derive(simple, selection, self.credit_points() if selection is Selection.CP else None)

    def _factor_common_options(self, simple: List[Option], selection: Selection) -> Optional[List[Option]]:
        """Rewrite ``(A and B) or (A and C)`` as ``A and (B or C)``; None when nothing is shared."""
        branches: List[Decision] = []
        for option in simple:
            assert isinstance(option, Decision)
            branches.append(option if option.must_pick_all() else option.derive([option], Selection.AND))

        common = [
            option
            for option in branches[0].options
            if all(any(other.has_same_options(option) for other in branch.options) for branch in branches)
        ]
        if not common:
            return None

        factored: List[Option] = []
        for option in common:
            if not isinstance(option, Decision):
                factored.append(option)
                continue
            kinds = set()
            smallest: Optional[int] = None
            for branch in branches:
                found = next(sub for sub in branch.options if sub.has_same_options(option))
                if not isinstance(found, Decision):
                    kinds.add(Selection.OR)
                    continue
                kinds.add(found.selection)
                if found.selection is Selection.CP and (smallest is None or found.credit_points() < smallest):
                    smallest = found.credit_points()
            if Selection.AND in kinds:
                raise PlanInvariantError(f"Shared option '{option}' should have been flattened")
            kind = Selection.CP
            if Selection.OR in kinds:
                if Selection.CP in kinds:
                    smallest = min(sub.credit_points() for sub in option.options)
                    if smallest == 0:
                        raise PlanInvariantError(f"'{option}' cannot be expressed as a credit-point choice")
                else:
                    kind = Selection.OR
            factored.append(option.derive(option.options, kind, smallest if kind is Selection.CP else None))

        leftovers: List[Decision] = []
        for branch in branches:
            excluded: List[Option] = [
                option
                for option in branch.options
                if not any(option.has_same_options(shared) for shared in factored)
            ]
            for shared in factored:
                if not isinstance(shared, Decision):
                    continue
                relevant = next(sub for sub in branch.options if sub.has_same_options(shared))
                if not isinstance(relevant, Decision):
                    continue
                if relevant.selection is Selection.AND:
                    raise PlanInvariantError(f"Shared option '{relevant}' should have been flattened")
                if relevant.selection is Selection.CP:
                    if shared.selection is not Selection.CP:
                        raise PlanInvariantError(f"'{shared}' and '{relevant}' disagree on how to pick")
                    extra = relevant.credit_points() - shared.credit_points()
                    if extra <= 0:
                        continue
                    excluded.append(self.derive(shared.options, Selection.CP, extra))
            leftovers.append(self.derive(excluded, Selection.AND))

        rest = self.derive(
            leftovers,
            selection,
            leftovers[0].credit_points() if selection is Selection.CP else None,
        ).simplified()
        factored.append(rest)
        return factored

    # ------------------------------------------------------------------ comparison

    def has_same_options(self, other: Option) -> bool:
        if isinstance(other, Decision):
            if len(self.options) != len(other.options):
                return False
            if self.options == other.options:
                return True
            return all(any(option == theirs for theirs in other.options) for option in self.options)
        return len(self.options) == 1 and self.options[0] is other

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Decision):
            return NotImplemented if not isinstance(other, Option) else False
        if self.must_pick_all() != other.must_pick_all():
            return False
        if self.only_pick_one() != other.only_pick_one():
            return False
        if (
            self.selection is Selection.CP
            and other.selection is Selection.CP
            and self.credit_points() != other.credit_points()
        ):
            return False
        return self.has_same_options(other)

    def __hash__(self) -> int:
        if self._hash is None:
            pick_one = self.only_pick_one()
            pick_all = self.must_pick_all()
            target = self.credit_points() if not pick_one and not pick_all else None
            self._hash = hash((pick_one, pick_all, target, frozenset(self.options)))
        return self._hash

    def covers(self, other: Option) -> bool:
        """True when satisfying this decision always satisfies ``other``."""
        if not isinstance(other, Decision):
            return self.must_pick_all() and any(option is other for option in self.options)
        if other.is_completed():
            return True
        pick_one = self.only_pick_one()
        pick_all = self.must_pick_all()
        if pick_one and all(option.covers(other) for option in self.options):
            return True
        if pick_all and any(option.covers(other) for option in self.options):
            return True
        if not pick_one and not pick_all:
            target = self.credit_points()

            def outside(option: Option) -> bool:
                return option not in other.options

            if other.selection is Selection.OR:
                if target > 0 and not sum_credit_points_at_least(self.options, outside, target):
                    return True
            elif other.selection is Selection.CP and target >= other.credit_points():
                if self.has_same_options(other):
                    return True
                # Pigeonhole: too few points outside ``other`` to avoid it.
                if not sum_credit_points_at_least(self.options, outside, target - other.credit_points() + 1):
                    return True

        if other.selection is Selection.OR:
            return any(self.covers(option) for option in other.options)
        if other.selection is Selection.AND:
            return all(self.covers(option) for option in other.options)
        if self.elective:
            return False
        return sum_credit_points_at_least(other.options, self.covers, other.credit_points())

    # ------------------------------------------------------------------ time and size

    def earliest_completion_time(self, plan: "Plan") -> Time:
        if any(isinstance(reason, Course) for reason in self.reasons):
            raise PlanInvariantError("Earliest completion time only applies to subject requisites")
        if self.is_banned():
            return IMPOSSIBLE
        if self.elective:
            collected = 0
            lower_bound = EARLY
            while collected < self.credit_points():
                lower_bound = lower_bound.next()
                collected += plan.get_max_credit_points(lower_bound)
                if IMPOSSIBLE <= lower_bound:
                    return IMPOSSIBLE
            return lower_bound
        if self.selection is Selection.OR:
            return min(option.earliest_completion_time(plan) for option in self.options)
        if self.selection is Selection.AND:
            if not self.options:
                return EARLY
            return max(option.earliest_completion_time(plan) for option in self.options)

        distribution: Dict[Time, int] = {}
        for option in self.options:
            time = option.earliest_completion_time(plan)
            distribution[time] = distribution.get(time, 0) + option.credit_points()
        collected = 0
        for time in sorted(distribution):
            collected += distribution[time]
            if collected >= self.credit_points():
                return time
        raise PlanInvariantError(f"'{self}' can never reach its credit-point target")

    def size_of_elective(self) -> int:
        if self.elective:
            return self.credit_points()
        return sum(option.size_of_elective() for option in self.options if isinstance(option, Decision))

    def enough_credit_points(self, plan: "Plan", available: int) -> Tuple[bool, int]:
        if available == UNLIMITED:
            return True, 0
        if available < 0:
            return False, 0
        if self.elective:
            return True, 0

        if self.selection is Selection.OR:
            smallest: Optional[int] = None
            for option in self.options:
                limit = available if smallest is None else smallest
                fits, result = option.enough_credit_points(plan, limit)
                if fits and (smallest is None or result < smallest):
                    smallest = result
                if smallest == 0:
                    break
            required = UNLIMITED if smallest is None else smallest

        elif self.selection is Selection.AND:
            required = sum(
                option.credit_points()
                for option in self.options
                if isinstance(option, Subject) and not option.has_been_completed(plan, ALL)
            )
            for option in self.options:
                _, result = option.enough_credit_points(plan, available)
                required = max(required, result)

        else:
            target = self.credit_points()
            required = target - sum(
                option.credit_points()
                for option in self.options
                if isinstance(option, Subject) and option.has_been_completed(plan, ALL)
            )
            distribution: Dict[int, List[Option]] = {}
            answer: Optional[int] = None
            for option in self.options:
                limit = available if answer is None else answer
                fits, result = option.enough_credit_points(plan, limit)
                if not fits:
                    continue
                distribution.setdefault(result, []).append(option)
                used = 0
                answer = 0
                for cost in sorted(distribution):
                    answer = cost
                    for recorded in distribution[cost]:
                        used += recorded.credit_points()
                        if used >= target:
                            break
                    if used >= target:
                        break
                if used < target:
                    answer = None
                elif answer < required:
                    break
            if answer is not None and answer > required:
                required = answer

        return required <= available, required

    # ------------------------------------------------------------------ text

    def __str__(self) -> str:
        if self.label:
            return self.label
        if self.selection is Selection.CP:
            return f"{self.credit_points()}cp from " + " or ".join(_wrapped(option) for option in self.options)
        joiner = f" {self.selection.name} "
        return joiner.join(_wrapped(option) for option in self.options)

    def __repr__(self) -> str:
        return f"<Decision {self}>"


def _wrapped(option: Option) -> str:
    if isinstance(option, Decision) and len(option.options) > 1 and not option.label:
        return f"({option})"
    return str(option)


def _distinct(options: List[Option]) -> List[Option]:
    result: List[Option] = []
    for option in options:
        if not any(option is kept or option == kept for kept in result):
            result.append(option)
    return result


def _reason_lists(reason: Option) -> Dict[str, Tuple[Content, ...]]:
    if isinstance(reason, Decision):
        return {
            "prerequisite_reasons": reason.prerequisite_reasons,
            "corequisite_reasons": reason.corequisite_reasons,
        }
    assert isinstance(reason, Content)
    return {"prerequisite_reasons": (reason,), "corequisite_reasons": ()}


class CompletedDecision(Decision):
    """A decision that is already satisfied."""

    def __init__(self, reason: Option):
        super().__init__((), Selection.CP, 0, **_reason_lists(reason))

    def is_completed(self) -> bool:
        return True

    def is_banned(self) -> bool:
        return False

    def __str__(self) -> str:
        return "[complete]"


class ImpossibleDecision(Decision):
    """A decision that can never be satisfied."""

    def __init__(self, reason: Option):
        super().__init__((), Selection.OR, None, **_reason_lists(reason))

    def is_completed(self) -> bool:
        return False

    def is_banned(self) -> bool:
        return True

    def __str__(self) -> str:
        return "[impossible]"


__all__ = [
    "ALL",
    "CompletedDecision",
    "Content",
    "Course",
    "CourseKind",
    "DEFAULT_LEVEL",
    "Decision",
    "ImpossibleDecision",
    "Option",
    "Selection",
    "Subject",
    "UNLIMITED",
    "level_from_code",
    "sum_credit_points_at_least",
]
