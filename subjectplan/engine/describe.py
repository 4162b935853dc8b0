"""Human-readable text for decisions, used by the CLI and any front end."""

from __future__ import annotations

from typing import List, Sequence

from subjectplan.engine.options import Content, Course, CourseKind, Decision, Option, Selection, Subject

_COURSE_INSTRUCTIONS = {
    CourseKind.MINOR: "Select a Minor",
    CourseKind.MAJOR: "Select a Major",
    CourseKind.SPECIALISATION: "Select a Specialisation",
    CourseKind.DEGREE: "Select a Degree",
    CourseKind.COURSE: "Select a Course",
}


def describe(option: Option) -> str:
    return str(option)


def list_contents(contents: Sequence[Content]) -> str:
    """Subjects by code, courses by name."""
    return ", ".join(
        content.code if isinstance(content, Subject) else content.name.replace(",", "")
        for content in contents
    )


def _level_phrase(subjects: Sequence[Subject]) -> str:
    lowest = min(subject.level for subject in subjects)
    or_above = any(subject.level > lowest for subject in subjects)
    if lowest == 1 and or_above:
        return ""
    phrase = f" at {lowest}000 level"
    if or_above:
        phrase += " or above"
    return phrase


def _unit_prefixes(subjects: Sequence[Subject]) -> List[str]:
    prefixes: List[str] = []
    for subject in subjects:
        prefix = subject.code[:4].upper()
        if prefix not in prefixes:
            prefixes.append(prefix)
    return prefixes


def instruction(decision: Decision) -> str:
    """Tell the user what to do with a decision, e.g. ``"Select 2 from COMP units:"``."""
    courses = [option for option in decision.options if isinstance(option, Course)]
    if courses:
        return _COURSE_INSTRUCTIONS[courses[0].kind]
    if decision.selection is Selection.OR:
        return "Choose 1:"
    if decision.must_pick_all():
        return "You need to satisfy all of these. Pick one to focus on:"

    output = "Select "
    sizes = {option.credit_points() for option in decision.options}
    if len(sizes) == 1 and next(iter(sizes)) > 0:
        output += str(decision.credit_points() // next(iter(sizes)))
    else:
        output += f"{decision.credit_points()} Credit Points"

    subjects = [option for option in decision.options if isinstance(option, Subject)]
    all_subjects = bool(subjects) and len(subjects) == len(decision.options)
    if decision.elective and all_subjects:
        output += " of Electives" + _level_phrase(subjects)
    elif all_subjects:
        prefixes = _unit_prefixes(subjects)
        if len(prefixes) < 3:
            output += " from " + " or ".join(prefixes) + " unit"
            if not decision.only_pick_one():
                output += "s"
    return output + ":"


def list_item(decision: Decision) -> str:
    """Short label for a decision inside a list of decisions."""
    if any(isinstance(option, Decision) for option in decision.options):
        return describe(decision)
    courses = [option for option in decision.options if isinstance(option, Course)]
    if courses:
        return courses[0].kind.value.title()
    if len(decision.options) < 5:
        if decision.only_pick_one():
            return " or ".join(str(option) for option in decision.options)
        return describe(decision)

    subjects = [option for option in decision.options if isinstance(option, Subject)]
    if decision.elective:
        output = f"{decision.credit_points()} Credit Points"
        if decision.unique():
            output += " of Electives"
    else:
        output = ""
        if decision.selection is Selection.OR:
            output += "1 "
        else:
            sizes = {option.credit_points() for option in decision.options}
            if len(sizes) == 1 and next(iter(sizes)) > 0:
                size = next(iter(sizes))
                output += f"{-(-decision.credit_points() // size)} "
        prefixes = _unit_prefixes(subjects)
        if len(prefixes) < 3:
            output += " or ".join(prefixes) + " "
        output += "unit"
        if not decision.only_pick_one():
            output += "s"
    if subjects:
        output += _level_phrase(subjects)
    return output


def reason_description(decision: Decision) -> str:
    """Explain where a decision comes from, e.g. ``"Prerequisite to COMP2010"``."""
    parts: List[str] = []
    courses = [reason for reason in decision.reasons if isinstance(reason, Course)]
    prerequisites = [reason for reason in decision.prerequisite_reasons if isinstance(reason, Subject)]
    corequisites = [reason for reason in decision.corequisite_reasons if isinstance(reason, Subject)]
    if courses:
        parts.append("Requisite to " + list_contents(courses))
    if prerequisites:
        parts.append("Prerequisite to " + list_contents(prerequisites))
    if corequisites:
        parts.append("Corequisite to " + list_contents(corequisites))
    return " & ".join(parts)


__all__ = ["describe", "instruction", "list_contents", "list_item", "reason_description"]
