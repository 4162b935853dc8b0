from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from subjectplan.catalog import build_registry, catalog_from_mapping
from subjectplan.core.config import PlannerConfig
from subjectplan.engine.decider import Decider
from subjectplan.engine.plan import Plan
from subjectplan.registry import ContentRegistry

SAMPLE_CATALOG = Path(__file__).resolve().parents[1] / "data" / "catalogs" / "sample.yaml"


@pytest.fixture
def make_registry() -> Callable[..., ContentRegistry]:
    def _make(subjects: List[Dict[str, Any]], courses: List[Dict[str, Any]] | None = None, **extra: Any) -> ContentRegistry:
        data = {"subjects": subjects, "courses": courses or [], **extra}
        return build_registry(catalog_from_mapping(data))

    return _make


@pytest.fixture
def make_decider() -> Callable[..., Decider]:
    def _make(registry: ContentRegistry, config: PlannerConfig | None = None, **kwargs: Any) -> Decider:
        return Decider(Plan(registry, config), **kwargs)

    return _make


@pytest.fixture
def sample_catalog() -> Path:
    return SAMPLE_CATALOG
