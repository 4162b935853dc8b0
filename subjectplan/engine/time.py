"""Discrete academic time: a year plus a teaching session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List


class Session(IntEnum):
    """Teaching periods within a year, in calendar order."""

    S1 = 0
    WV = 1
    S2 = 2
    S3 = 3

    @property
    def full_name(self) -> str:
        return _FULL_NAMES[self]

    @classmethod
    def parse(cls, code: str) -> "Session":
        """Parse an offering code such as ``S1``, ``FY1`` or ``WV``."""
        key = code.strip().upper()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return cls[key]
        except KeyError as exc:
            raise ValueError(f"Unknown session code: {code!r}") from exc

    @classmethod
    def choices(cls) -> List[str]:
        return [member.name for member in cls]


_FULL_NAMES = {
    Session.S1: "Session 1",
    Session.WV: "Winter Vacation",
    Session.S2: "Session 2",
    Session.S3: "Session 3",
}

# Full-year offerings run across both main sessions.
_ALIASES = {"FY1": Session.S1, "FY2": Session.S2}


@dataclass(frozen=True, order=True)
class Time:
    year: int
    session: Session

    def next(self) -> "Time":
        if self.session == Session.S3:
            return Time(self.year + 1, Session.S1)
        return Time(self.year, Session(self.session + 1))

    def previous(self) -> "Time":
        if self.session == Session.S1:
            return Time(self.year - 1, Session.S3)
        return Time(self.year, Session(self.session - 1))

    def as_number(self) -> int:
        return (self.year - 1) * len(Session) + int(self.session)

    @classmethod
    def parse(cls, text: str) -> "Time":
        """Parse ``"2:S1"`` or ``"2 S1"`` into a Time."""
        cleaned = text.replace(":", " ").split()
        if len(cleaned) != 2:
            raise ValueError(f"Expected '<year>:<session>', got {text!r}")
        return cls(int(cleaned[0]), Session.parse(cleaned[1]))

    def __str__(self) -> str:
        return f"Year {self.year} {self.session.full_name}"


FIRST = Time(1, Session.S1)
EARLY = FIRST.previous()
IMPOSSIBLE = Time(100, Session.S1)
ALL = IMPOSSIBLE


__all__ = ["ALL", "EARLY", "FIRST", "IMPOSSIBLE", "Session", "Time"]
