"""Planner settings and trace records must stay on the Pydantic v2 API."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import pytest
from pydantic import BaseModel

from subjectplan.core.config import PlannerConfig, SessionCapacities
from subjectplan.core.provenance import AnalysisEvent

TARGET_DIRS: tuple[str, ...] = ("subjectplan", "tests")
LEGACY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("legacy decorator", re.compile(r"@(?:root_)?validator\b")),
    ("legacy import", re.compile(r"\bfrom\s+pydantic\s+import\b[^\n]*\bvalidator\b")),
    ("legacy direct reference", re.compile(r"\bpydantic\.(?:root_)?validator\b")),
    ("legacy config class", re.compile(r"^\s+class Config:", re.MULTILINE)),
    ("legacy parsing", re.compile(r"\.(?:parse_obj|parse_raw|parse_file|update_forward_refs)\(")),
)


def _python_files(base_dirs: Iterable[Path]) -> Iterable[Path]:
    for directory in base_dirs:
        if not directory.exists():
            continue
        yield from directory.rglob("*.py")


def test_no_v1_pydantic_usage() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    target_roots = [repo_root / directory for directory in TARGET_DIRS]
    this_file = Path(__file__).resolve()
    offenders: list[str] = []

    for path in _python_files(target_roots):
        if path == this_file:
            continue
        text = path.read_text(encoding="utf-8")
        for label, pattern in LEGACY_PATTERNS:
            if pattern.search(text):
                relative_path = path.relative_to(repo_root)
                offenders.append(f"{relative_path} -> {label}")
                break

    if offenders:
        formatted = "\n".join(offenders)
        pytest.fail(f"Legacy Pydantic usage detected:\n{formatted}")


@pytest.mark.parametrize(
    ("model", "kind", "name"),
    [
        (SessionCapacities, "model_validators", "normalise_keys"),
        (PlannerConfig, "field_validators", "upper_level"),
        (PlannerConfig, "field_validators", "coerce_path"),
        (AnalysisEvent, "field_validators", "upper_codes"),
    ],
)
def test_planner_models_register_v2_validators(model: type[BaseModel], kind: str, name: str) -> None:
    decorators = model.__pydantic_decorators__
    assert name in getattr(decorators, kind)
    assert not decorators.validators
    assert not decorators.root_validators


def test_session_capacities_are_frozen() -> None:
    capacities = SessionCapacities(S1=30)
    assert SessionCapacities.model_config.get("frozen") is True
    with pytest.raises(ValueError):
        capacities.s1 = 20
    assert capacities.s1 == 30
