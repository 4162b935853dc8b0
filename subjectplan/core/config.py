"""
Typed configuration for the planning engine.

The defaults mirror a standard Australian academic calendar: two full sessions,
a short winter vacation and an optional summer session.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class SessionCapacities(BaseModel):
    """Default credit-point cap for each session of a fresh academic year."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    s1: int = Field(default=40, ge=0, alias="S1")
    wv: int = Field(default=10, ge=0, alias="WV")
    s2: int = Field(default=40, ge=0, alias="S2")
    s3: int = Field(default=20, ge=0, alias="S3")

    @model_validator(mode="before")
    @classmethod
    def normalise_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(key).upper(): value for key, value in data.items()}
        return data

    def for_session(self, session: int | str) -> int:
        """Return the cap for a session given by index (0-3) or code."""
        key = session if isinstance(session, str) else ("S1", "WV", "S2", "S3")[int(session)]
        return int(getattr(self, key.lower()))


class PlannerConfig(BaseModel):
    """Everything the planner needs besides the catalog itself."""

    capacities: SessionCapacities = Field(default_factory=SessionCapacities)
    max_years: int = Field(default=90, ge=1, description="Plans may never grow past this year.")
    default_years: int = Field(
        default=20,
        ge=1,
        description="Years after this use the default capacities instead of copying the previous year.",
    )
    first_year_offset: int = Field(
        default=2020,
        description="Calendar year that corresponds to year 1 of a plan.",
    )
    log_level: str = "INFO"
    provenance_path: Optional[Path] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("provenance_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        return Path(value).expanduser()

    def with_capacity(self, session: int | str, credit_points: int) -> "PlannerConfig":
        """Return a copy with one session's default cap replaced."""
        key = session if isinstance(session, str) else ("S1", "WV", "S2", "S3")[int(session)]
        payload = self.capacities.model_dump(by_alias=True)
        payload[key.upper()] = credit_points
        return self.model_copy(update={"capacities": SessionCapacities.model_validate(payload)})


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def load_planner_config(path: Path) -> PlannerConfig:
    """Load planner settings, resolving relative paths against the file's directory."""
    path = path.expanduser().resolve()
    data = read_yaml_file(path)
    trace = data.get("provenance_path")
    if trace:
        trace_path = Path(trace).expanduser()
        if not trace_path.is_absolute():
            trace_path = path.parent / trace_path
        data["provenance_path"] = str(trace_path.resolve())
    try:
        return PlannerConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid planner config in {path}") from exc


__all__ = [
    "PlannerConfig",
    "SessionCapacities",
    "load_planner_config",
    "read_yaml_file",
]
