"""JSONL trace of planning analyses, one record per stage of a run."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnalysisStage(str, Enum):
    START = "analysis.start"
    SELECTION = "analysis.selection"
    COMPLETE = "analysis.complete"

    @classmethod
    def choices(cls) -> List[str]:
        return [member.value for member in cls]


class AnalysisEvent(BaseModel):
    """What one stage of an analysis saw or changed."""

    model_config = ConfigDict(extra="forbid")

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stage: AnalysisStage
    message: str = Field(..., description="Human-readable description of the event.")
    pass_number: int = Field(default=0, ge=0, description="Analysis pass the event belongs to; 0 outside the loop.")
    selected: List[str] = Field(default_factory=list, description="Codes of content selected at this stage.")
    decisions: List[str] = Field(default_factory=list, description="Open decisions, as shown to the user.")
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("selected", mode="before")
    @classmethod
    def upper_codes(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [str(code).strip().upper() for code in value]
        return value


class AnalysisLogger:
    """Append-only JSONL log of analysis runs."""

    def __init__(self, output_path: Path):
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: AnalysisEvent | Dict[str, Any]) -> AnalysisEvent:
        """Write a single event to disk and return the normalized object."""
        if not isinstance(event, AnalysisEvent):
            event = AnalysisEvent(**event)
        line = event.model_dump_json()
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        return event

    def extend(self, events: Iterable[AnalysisEvent | Dict[str, Any]]) -> None:
        """Batch-write multiple events."""
        for event in events:
            self.log(event)

    def read(self, stage: Optional[AnalysisStage | str] = None) -> List[AnalysisEvent]:
        """Every recorded event, optionally only those of one stage."""
        if not self.output_path.exists():
            return []
        with self.output_path.open("r", encoding="utf-8") as handle:
            events = [AnalysisEvent.model_validate_json(line) for line in handle if line.strip()]
        if stage is None:
            return events
        wanted = AnalysisStage(stage)
        return [event for event in events if event.stage is wanted]

    def runs(self) -> List[List[AnalysisEvent]]:
        """Events grouped per analysis, each group opened by a start event."""
        grouped: List[List[AnalysisEvent]] = []
        for event in self.read():
            if event.stage is AnalysisStage.START or not grouped:
                grouped.append([])
            grouped[-1].append(event)
        return grouped

    def selections(self) -> List[str]:
        """Codes selected automatically over the whole log, in order."""
        return [code for event in self.read(AnalysisStage.SELECTION) for code in event.selected]


__all__ = ["AnalysisEvent", "AnalysisLogger", "AnalysisStage"]
