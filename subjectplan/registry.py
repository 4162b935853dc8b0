"""Read-only lookup of the content graph the planner works over."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from subjectplan.engine.options import Content, Course, Decision, Subject


class ContentRegistry:
    """Every subject and course of a catalog, indexed by code.

    Content must have its requisites attached before it is registered. The
    reverse index from a subject to the subjects that list it as a requisite is
    built once here and never changes afterwards.
    """

    def __init__(
        self,
        contents: Iterable[Content],
        recommendations: Iterable[Tuple[Content, Content]] = (),
    ):
        self._by_code: Dict[str, Content] = {}
        for content in contents:
            if content.code in self._by_code:
                raise ValueError(f"Duplicate content code: {content.code}")
            self._by_code[content.code] = content
        self._subjects: Tuple[Subject, ...] = tuple(
            content for content in self._by_code.values() if isinstance(content, Subject)
        )
        self._courses: Tuple[Course, ...] = tuple(
            content for content in self._by_code.values() if isinstance(content, Course)
        )
        self._recommendations: Dict[Content, List[Content]] = {}
        for reason, recommended in recommendations:
            self._recommendations.setdefault(reason, []).append(recommended)
        self._parents = self._link_parents()

    def _link_parents(self) -> Dict[Subject, Tuple[Subject, ...]]:
        parents: Dict[Subject, List[Subject]] = {}

        def visit(decision: Decision, parent: Subject) -> None:
            if decision.elective:
                return
            for option in decision.options:
                if isinstance(option, Decision):
                    visit(option, parent)
                elif isinstance(option, Subject):
                    bucket = parents.setdefault(option, [])
                    if parent not in bucket:
                        bucket.append(parent)

        for subject in self._subjects:
            visit(subject.prerequisites, subject)
            visit(subject.corequisites, subject)
        return {subject: tuple(found) for subject, found in parents.items()}

    def lookup(self, code: str) -> Optional[Content]:
        return self._by_code.get(code.strip().upper()) or self._by_code.get(code)

    def __getitem__(self, code: str) -> Content:
        content = self.lookup(code)
        if content is None:
            raise KeyError(code)
        return content

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.lookup(code) is not None

    def __iter__(self) -> Iterator[Content]:
        return iter(self._by_code.values())

    def __len__(self) -> int:
        return len(self._by_code)

    def all_subjects(self) -> Tuple[Subject, ...]:
        return self._subjects

    def all_courses(self) -> Tuple[Course, ...]:
        return self._courses

    def parents_of(self, subject: Subject) -> Tuple[Subject, ...]:
        """Subjects whose requisites mention ``subject`` outside of electives."""
        return self._parents.get(subject, ())

    def recommendations_for(self, content: Content, already_selected: Sequence[Content]) -> List[Content]:
        return [
            recommended
            for recommended in self._recommendations.get(content, [])
            if recommended not in already_selected
        ]


__all__ = ["ContentRegistry"]
