"""Load subject catalogs from YAML and link them into a content registry.

A catalog document looks like::

    subjects:
      - code: COMP1010
        name: Fundamentals of Computer Science
        credit_points: 10
        sessions: [S1, S2]
        prerequisites: COMP1000
        corequisites: {or: [MATH1010, MATH1015]}
        nccws: [COMP1350]
    courses:
      - code: BIT
        name: Bachelor of Information Technology
        kind: degree
        components:
          - {and: [COMP1000, COMP1010]}
          - {elective: 40, level: 2}
        max_level_1000: 100
    recommendations:
      - for: COMP1010
        recommend: [MATH1010]

Requisite trees are a subject/course code, ``{or: [...]}``, ``{and: [...]}``,
``{cp: N, from: [...]}`` or ``{elective: N, level: L}`` (an open credit-point
requirement over every subject at or above level ``L``, optionally limited to
codes starting with ``prefix``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import yaml

from subjectplan.core.errors import CatalogError, PlanInvariantError
from subjectplan.engine.options import Content, Course, CourseKind, Decision, Option, Selection, Subject, level_from_code
from subjectplan.engine.time import Session
from subjectplan.registry import ContentRegistry

LOGGER = logging.getLogger("subjectplan.catalog")

_COMBINATORS = ("or", "and")


@dataclass
class Catalog:
    path: Optional[Path]
    subjects: List[Dict[str, Any]] = field(default_factory=list)
    courses: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def codes(self) -> List[str]:
        return [str(entry.get("code", "")).strip().upper() for entry in [*self.subjects, *self.courses]]


def load_catalog(path: Path) -> Catalog:
    path = path.expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise CatalogError(f"Expected mapping at root of {path}, received {type(data)}")
    return catalog_from_mapping(data, path=path)


def catalog_from_mapping(data: Dict[str, Any], *, path: Optional[Path] = None) -> Catalog:
    return Catalog(
        path=path,
        subjects=list(data.get("subjects") or []),
        courses=list(data.get("courses") or []),
        recommendations=list(data.get("recommendations") or []),
    )


def validate_catalog(catalog: Catalog) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []

    codes = _unique_codes(catalog, errors)
    subject_levels = {
        _code(entry): _entry_level(entry) for entry in catalog.subjects if _code(entry)
    }
    credit_points = {_code(entry): _credit_points(entry) for entry in catalog.subjects if _code(entry)}

    for entry in catalog.subjects:
        code = _code(entry)
        for session in entry.get("sessions", ["S1", "S2"]) or []:
            try:
                Session.parse(str(session))
            except ValueError:
                errors.append(f"Subject {code} is offered in unknown session {session}")
        if _credit_points(entry) < 0:
            errors.append(f"Subject {code} has negative credit points")
        for key in ("prerequisites", "corequisites"):
            _check_tree(entry.get(key), f"Subject {code} {key}", codes, credit_points, subject_levels, errors, warnings)
        for nccw in entry.get("nccws", []) or []:
            if str(nccw).upper() not in codes:
                warnings.append(f"Subject {code} lists unknown NCCW {nccw}")

    course_codes = {_code(entry) for entry in catalog.courses}
    declared: set[str] = set()
    for entry in catalog.courses:
        code = _code(entry)
        kind = str(entry.get("kind", CourseKind.COURSE.value)).lower()
        if kind not in CourseKind.choices():
            errors.append(f"Course {code} has unknown kind {kind}")
        components = entry.get("components") or []
        if not components:
            warnings.append(f"Course {code} has no components")
        for component in components:
            _check_tree(component, f"Course {code} component", codes, credit_points, subject_levels, errors, warnings)
            for nested in sorted(_tree_codes(component) & course_codes - declared):
                errors.append(f"Course {nested} must be declared before {code}, which includes it")
        declared.add(code)
        for nccw in entry.get("nccws", []) or []:
            if str(nccw).upper() not in codes:
                warnings.append(f"Course {code} lists unknown NCCW {nccw}")

    # Asymmetric NCCWs are kept as listed; only flag them.
    nccws = {
        _code(entry): {str(item).upper() for item in entry.get("nccws", []) or []}
        for entry in catalog.subjects
    }
    for code, excluded in nccws.items():
        for other in sorted(excluded):
            if other in nccws and code not in nccws[other]:
                warnings.append(f"NCCW {code} -> {other} is not listed the other way around")

    for recommendation in catalog.recommendations:
        reason = str(recommendation.get("for", "")).upper()
        if reason not in codes:
            warnings.append(f"Recommendation targets unknown content {reason}")
        for code in recommendation.get("recommend", []) or []:
            if str(code).upper() not in codes:
                warnings.append(f"Recommendation for {reason} lists unknown content {code}")

    return errors, warnings


def build_registry(catalog: Catalog, *, strict: bool = True) -> ContentRegistry:
    """Create content objects, attach their requisites and index them."""
    errors, warnings = validate_catalog(catalog)
    for warning in warnings:
        LOGGER.warning(warning)
    if errors and strict:
        raise CatalogError("; ".join(errors))

    contents: Dict[str, Content] = {}
    for entry in catalog.subjects:
        code = _code(entry)
        contents[code] = Subject(
            code,
            str(entry.get("name", code)),
            credit_points=_credit_points(entry),
            sessions=[Session.parse(str(session)) for session in entry.get("sessions", ["S1", "S2"]) or []],
            earliest_year=entry.get("earliest_year"),
            level=entry.get("level"),
        )
    for entry in catalog.courses:
        code = _code(entry)
        contents[code] = Course(
            code,
            str(entry.get("name", code)),
            kind=CourseKind(str(entry.get("kind", CourseKind.COURSE.value)).lower()),
        )

    builder = _RequisiteBuilder(contents)
    for entry in catalog.subjects:
        subject = contents[_code(entry)]
        subject.attach_requisites(
            builder.requisite(entry.get("prerequisites"), subject),
            builder.requisite(entry.get("corequisites"), subject, corequisite=True),
            builder.resolve_all(entry.get("nccws", []) or []),
        )
    for entry in catalog.courses:
        course = contents[_code(entry)]
        assert isinstance(course, Course)
        course.attach_requisites(*builder.course_requisites(entry, course), builder.resolve_all(entry.get("nccws", []) or []))

    pairs: List[Tuple[Content, Content]] = []
    for recommendation in catalog.recommendations:
        reason = contents.get(str(recommendation.get("for", "")).upper())
        if reason is None:
            continue
        for recommended in builder.resolve_all(recommendation.get("recommend", []) or []):
            pairs.append((reason, recommended))

    registry = ContentRegistry(contents.values(), pairs)
    LOGGER.info(f"Loaded {len(registry.all_subjects())} subjects and {len(registry.all_courses())} courses")
    return registry


def load_registry(path: Path, *, strict: bool = True) -> ContentRegistry:
    return build_registry(load_catalog(path), strict=strict)


class _RequisiteBuilder:
    def __init__(self, contents: Dict[str, Content]):
        self.contents = contents

    def resolve_all(self, codes: Iterable[Any]) -> List[Content]:
        resolved = []
        for code in codes:
            content = self.contents.get(str(code).strip().upper())
            if content is None:
                LOGGER.warning(f"Ignoring unknown content code {code}")
                continue
            resolved.append(content)
        return resolved

    def requisite(self, node: Any, owner: Content, *, corequisite: bool = False) -> Decision:
        built = self.build(node, owner, corequisite=corequisite) if node else None
        if built is None:
            return Decision.for_content(owner, [], Selection.AND, corequisite=corequisite)
        if isinstance(built, Decision):
            return built
        return Decision.for_content(owner, [built], Selection.AND, corequisite=corequisite)

    def course_requisites(self, entry: Dict[str, Any], course: Course) -> Tuple[Decision, Decision]:
        components: List[Option] = []
        for node in entry.get("components") or []:
            built = self.build(node, course)
            if built is not None:
                components.append(self.credit_form(built, course))
        if entry.get("credit_points") is not None:
            total = int(entry["credit_points"])
        else:
            total = sum(self._points(component, course) for component in components)
        prerequisites = Decision.for_content(course, components, Selection.CP, total)

        corequisites = Decision.for_content(course, [], Selection.AND, corequisite=True)
        first_level_cap = entry.get("max_level_1000")
        if first_level_cap is not None and total - int(first_level_cap) > 0:
            target = total - int(first_level_cap)
            options = self._subjects_from_level(2, None, exclude=course)
            corequisites = Decision.for_content(
                course,
                options,
                Selection.CP,
                target,
                corequisite=True,
                elective=True,
                label=f"{target}cp at 2000 level or above",
            )
        return prerequisites, corequisites

    def credit_form(self, option: Option, owner: Content) -> Option:
        """Rewrite a choice that sits under a credit-point decision as one.

        ``A and B`` becomes a choice of all of their credit points, ``A or B`` a
        choice of the smallest option's credit points. Selected content can then
        be taken out of the choice one piece at a time.
        """
        if not isinstance(option, Decision) or option.selection is Selection.CP:
            return option
        children = [self.credit_form(child, owner) for child in option.options]
        points = [self._points(child, owner) for child in children]
        if option.selection is Selection.AND:
            target = sum(points)
        elif points:
            target = min(points)
        else:
            return option
        return option.derive(children, Selection.CP, target)

    def _points(self, option: Option, owner: Content) -> int:
        try:
            return option.credit_points()
        except PlanInvariantError as exc:
            raise CatalogError(f"{option} must be declared before {owner.code}, which includes it") from exc
        except ValueError as exc:
            raise CatalogError(f"{owner.code} needs an explicit credit_points value: {exc}") from exc

    def build(self, node: Any, owner: Content, *, corequisite: bool = False) -> Optional[Option]:
        if isinstance(node, str):
            content = self.contents.get(node.strip().upper())
            if content is None:
                LOGGER.warning(f"{owner.code} refers to unknown content {node}")
            return content
        if isinstance(node, list):
            node = {"and": node}
        if not isinstance(node, dict):
            raise CatalogError(f"Cannot read requisite of {owner.code}: {node!r}")

        if "elective" in node:
            target = int(node["elective"])
            level = int(node.get("level", 1))
            prefix = node.get("prefix")
            options = self._subjects_from_level(level, prefix, exclude=owner)
            label = node.get("label") or (
                f"{target}cp" + (f" from {prefix} units" if prefix else "") + f" at {level}000 level or above"
            )
            return Decision.for_content(
                owner, options, Selection.CP, target, corequisite=corequisite, elective=True, label=label
            )

        if "cp" in node:
            children = [
                self.credit_form(child, owner) for child in self._children(node.get("from") or [], owner, corequisite)
            ]
            return Decision.for_content(
                owner, children, Selection.CP, int(node["cp"]), corequisite=corequisite, label=node.get("label")
            )

        for key in _COMBINATORS:
            if key in node:
                children = self._children(node[key] or [], owner, corequisite)
                return Decision.for_content(
                    owner, children, Selection(key), corequisite=corequisite, label=node.get("label")
                )
        raise CatalogError(f"Unknown requisite form for {owner.code}: {sorted(node)}")

    def _children(self, nodes: Sequence[Any], owner: Content, corequisite: bool) -> List[Option]:
        children: List[Option] = []
        for child in nodes:
            built = self.build(child, owner, corequisite=corequisite)
            if built is not None:
                children.append(built)
        return children

    def _subjects_from_level(self, level: int, prefix: Optional[str], *, exclude: Content) -> List[Option]:
        return [
            content
            for content in self.contents.values()
            if isinstance(content, Subject)
            and content is not exclude
            and content.level >= level
            and (not prefix or content.code.upper().startswith(str(prefix).upper()))
        ]


def _code(entry: Dict[str, Any]) -> str:
    return str(entry.get("code", "")).strip().upper()


def _credit_points(entry: Dict[str, Any]) -> int:
    return int(entry.get("credit_points", 10))


def _entry_level(entry: Dict[str, Any]) -> int:
    if entry.get("level") is not None:
        return int(entry["level"])
    return level_from_code(_code(entry))


def _tree_codes(node: Any) -> set[str]:
    if isinstance(node, str):
        return {node.strip().upper()}
    if isinstance(node, list):
        return set().union(*(_tree_codes(child) for child in node))
    if isinstance(node, dict):
        children = node.get("from") or node.get("or") or node.get("and") or []
        return set().union(*(_tree_codes(child) for child in children))
    return set()


def _unique_codes(catalog: Catalog, errors: list[str]) -> set[str]:
    seen: set[str] = set()
    for entry in [*catalog.subjects, *catalog.courses]:
        code = _code(entry)
        if not code:
            errors.append(f"Catalog entry missing code: {entry}")
            continue
        if code in seen:
            errors.append(f"Duplicate content code {code}")
        seen.add(code)
    return seen


def _check_tree(
    node: Any,
    where: str,
    codes: set[str],
    credit_points: Dict[str, int],
    levels: Dict[str, int],
    errors: list[str],
    warnings: list[str],
) -> Optional[int]:
    """Validate a requisite tree and return its credit-point value when it is known."""
    if node is None or node == [] or node == {}:
        return 0
    if isinstance(node, str):
        code = node.strip().upper()
        if code not in codes:
            warnings.append(f"{where} refers to unknown content {node}")
            return None
        return credit_points.get(code)
    if isinstance(node, list):
        node = {"and": node}
    if not isinstance(node, dict):
        errors.append(f"{where} has an unreadable requisite {node!r}")
        return None

    if "elective" in node:
        target = int(node["elective"])
        level = int(node.get("level", 1))
        prefix = str(node.get("prefix") or "").upper()
        pool = sum(
            points
            for code, points in credit_points.items()
            if levels.get(code, 1) >= level and code.startswith(prefix)
        )
        if pool < target:
            warnings.append(f"{where} elective needs {target}cp but only {pool}cp is available")
        return target

    if "cp" in node:
        target = int(node["cp"])
        if target < 0:
            errors.append(f"{where} has a negative credit-point target")
        values = [_check_tree(child, where, codes, credit_points, levels, errors, warnings) for child in node.get("from") or []]
        known = [value for value in values if value is not None]
        if len(known) == len(values) and sum(known) < target:
            errors.append(f"{where} needs {target}cp but its options only add up to {sum(known)}cp")
        return target

    for key in _COMBINATORS:
        if key in node:
            values = [_check_tree(child, where, codes, credit_points, levels, errors, warnings) for child in node[key] or []]
            if any(value is None for value in values):
                return None
            if key == "and":
                return sum(values)
            return values[0] if values and len(set(values)) == 1 else None

    errors.append(f"{where} uses an unknown selection {sorted(node)}; expected one of {Selection.choices() + ['elective']}")
    return None


__all__ = [
    "Catalog",
    "build_registry",
    "catalog_from_mapping",
    "load_catalog",
    "load_registry",
    "validate_catalog",
]
