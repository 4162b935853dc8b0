"""Requisite decision algebra, plan state, scheduler and analysis loop."""

from subjectplan.engine.decider import Decider
from subjectplan.engine.options import (
    CompletedDecision,
    Content,
    Course,
    CourseKind,
    Decision,
    ImpossibleDecision,
    Option,
    Selection,
    Subject,
)
from subjectplan.engine.plan import Plan
from subjectplan.engine.propagation import Importance, Relation
from subjectplan.engine.time import EARLY, FIRST, IMPOSSIBLE, Session, Time

__all__ = [
    "CompletedDecision",
    "Content",
    "Course",
    "CourseKind",
    "Decider",
    "Decision",
    "EARLY",
    "FIRST",
    "IMPOSSIBLE",
    "ImpossibleDecision",
    "Importance",
    "Option",
    "Plan",
    "Relation",
    "Selection",
    "Session",
    "Subject",
    "Time",
]
