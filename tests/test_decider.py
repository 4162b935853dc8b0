from __future__ import annotations

from pathlib import Path

import pytest

from subjectplan.core.errors import PlanInvariantError
from subjectplan.core.provenance import AnalysisLogger, AnalysisStage
from subjectplan.engine.options import Selection
from subjectplan.engine.time import Session, Time

CHAIN = [
    {"code": "COMP1000"},
    {"code": "COMP1010"},
    {"code": "COMP1300", "nccws": ["COMP1350"]},
    {"code": "COMP1350", "nccws": ["COMP1300"]},
    {"code": "COMP2000", "prerequisites": {"or": ["COMP1000", "COMP1010"]}},
    {"code": "COMP2010", "prerequisites": "COMP1000"},
    {"code": "COMP2020", "prerequisites": {"or": ["COMP1350", "COMP1010"]}},
    {"code": "COMP2030", "prerequisites": {"cp": 10, "from": ["COMP1000", "COMP1010", "COMP1300"]}},
    {"code": "COMP2040", "prerequisites": {"cp": 10, "from": ["COMP1000", "COMP1010"]}},
    {"code": "COMP2050", "prerequisites": "COMP1350"},
]

DEGREE = {
    "code": "BIT",
    "name": "Bachelor of Information Technology",
    "kind": "degree",
    "components": [
        {"and": ["COMP1000", "COMP1010"]},
        {"cp": 10, "from": ["COMP2000", "COMP2010"]},
    ],
}


@pytest.fixture
def registry(make_registry):
    return make_registry(CHAIN, [DEGREE])


def test_subject_without_requisites_leaves_nothing_to_decide(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_content(registry["COMP1000"])

    assert decider.plan.decisions == []
    assert decider.plan.assigned_times[registry["COMP1000"]] == Time(1, Session.S1)


def test_open_choice_is_presented_until_it_is_made(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_content(registry["COMP2000"])

    assert [str(decision) for decision in decider.plan.decisions] == ["COMP1000 OR COMP1010"]
    decision = decider.plan.decisions[0]
    assert decision.selection is Selection.OR
    assert decision.prerequisite_reasons == (registry["COMP2000"],)

    decider.add_content(registry["COMP1000"])

    plan = decider.plan
    assert plan.decisions == []
    assert plan.assigned_times[registry["COMP1000"]] < plan.assigned_times[registry["COMP2000"]]


def test_single_requisite_is_selected_automatically(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_content(registry["COMP2010"])

    plan = decider.plan
    assert registry["COMP1000"] in plan.selected_subjects
    assert plan.decisions == []
    assert decider.passes == 2
    assert plan.assigned_times[registry["COMP1000"]] == Time(1, Session.S1)
    assert plan.assigned_times[registry["COMP2010"]] == Time(1, Session.S2)


def test_nccw_leaves_only_one_viable_option(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_contents([registry["COMP1300"], registry["COMP2020"]])

    plan = decider.plan
    assert plan.banned_contents[registry["COMP1350"]] == [registry["COMP1300"]]
    assert registry["COMP1010"] in plan.selected_subjects
    assert registry["COMP1350"] not in plan.selected_subjects
    assert plan.decisions == []


def test_banned_requirement_stops_the_analysis(registry, make_decider) -> None:
    decider = make_decider(registry)

    with pytest.raises(PlanInvariantError):
        decider.add_contents([registry["COMP1300"], registry["COMP2050"]])


def test_narrower_choice_absorbs_the_broader_one(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_contents([registry["COMP2030"], registry["COMP2040"]])

    decisions = decider.plan.decisions
    assert len(decisions) == 1
    remaining = decisions[0]
    assert set(remaining.options) == {registry["COMP1000"], registry["COMP1010"]}
    assert set(remaining.prerequisite_reasons) == {registry["COMP2030"], registry["COMP2040"]}


def test_analysis_is_idempotent(registry, make_decider) -> None:
    decider = make_decider(registry)
    decider.add_contents([registry["COMP2000"], registry["COMP2030"]])
    first = [str(decision) for decision in decider.plan.decisions]

    second = [str(decision) for decision in decider.analyze()]

    assert first == second


def test_degree_selects_its_core_subjects(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_content(registry["BIT"])

    plan = decider.plan
    assert {subject.code for subject in plan.selected_subjects} == {"COMP1000", "COMP1010"}
    assert [str(decision) for decision in plan.decisions] == ["10cp from COMP2000 or COMP2010"]
    decision = plan.decisions[0]
    assert decision.unique()
    assert decision.reasons == (registry["BIT"],)
    assert plan.remaining_credit_points() == 10


def test_removing_content_reopens_decisions(registry, make_decider) -> None:
    decider = make_decider(registry)
    decider.add_contents([registry["COMP2000"], registry["COMP1010"]])
    assert decider.plan.decisions == []

    decider.remove_content(registry["COMP1010"])

    assert [str(decision) for decision in decider.plan.decisions] == ["COMP1000 OR COMP1010"]


def test_banned_options_are_not_available(registry, make_decider) -> None:
    decider = make_decider(registry)

    decider.add_content(registry["COMP1300"])

    assert not decider.is_available(registry["COMP1350"])
    assert decider.is_available(registry["COMP1000"])


def test_recommendations_skip_selected_content(make_registry, make_decider) -> None:
    registry = make_registry(
        [{"code": "COMP1000"}, {"code": "COMP1010"}, {"code": "MATH1010"}],
        recommendations=[{"for": "COMP1010", "recommend": ["MATH1010", "COMP1000"]}],
    )
    decider = make_decider(registry)
    decider.add_content(registry["COMP1000"])

    recommended = decider.recommendations(registry["COMP1010"])

    assert recommended == [registry["MATH1010"]]


def test_next_decision_prefers_refinements(registry, make_decider) -> None:
    decider = make_decider(registry)
    decider.add_content(registry["COMP2000"])
    original = decider.plan.decisions[0]

    decision, keep_filter = decider.next_decision(original)

    assert decision == original
    assert keep_filter
    assert decider.next_decision(None) == (original, False)


def test_provenance_trace_records_each_stage(registry, make_decider, tmp_path: Path) -> None:
    trace = AnalysisLogger(tmp_path / "trace" / "analysis.jsonl")
    decider = make_decider(registry, provenance=trace)

    decider.add_content(registry["COMP2010"])

    events = trace.read()
    assert [event.stage for event in events] == [
        AnalysisStage.START,
        AnalysisStage.SELECTION,
        AnalysisStage.COMPLETE,
    ]
    assert events[0].payload["subjects"] == ["COMP2010"]
    assert events[1].selected == ["COMP1000"]
    assert events[1].pass_number == 1
    assert events[-1].pass_number == 2
    assert events[-1].decisions == []


def test_provenance_trace_keeps_one_run_per_analysis(registry, make_decider, tmp_path: Path) -> None:
    trace = AnalysisLogger(tmp_path / "analysis.jsonl")
    decider = make_decider(registry, provenance=trace)

    decider.add_content(registry["COMP2000"])
    decider.add_content(registry["COMP2010"])

    runs = trace.runs()
    assert len(runs) == 2
    assert runs[0][-1].decisions == ["COMP1000 OR COMP1010"]
    assert runs[1][-1].decisions == []
    assert trace.selections() == ["COMP1000"]


SHARED = [
    {"code": "COMP1000"},
    {"code": "COMP1010"},
    {"code": "COMP2000", "prerequisites": {"or": ["COMP1000", "COMP1010"]}},
    {"code": "COMP2100", "prerequisites": {"or": ["COMP1000", "COMP1010"]}},
]


def test_shared_requisite_is_presented_once_with_every_reason(make_registry, make_decider) -> None:
    registry = make_registry(SHARED)
    decider = make_decider(registry)

    decider.add_contents([registry["COMP2000"], registry["COMP2100"]])

    decisions = decider.plan.decisions
    assert [str(decision) for decision in decisions] == ["COMP1000 OR COMP1010"]
    assert set(decisions[0].prerequisite_reasons) == {registry["COMP2000"], registry["COMP2100"]}


@pytest.mark.parametrize("first, second", [("COMP2000", "COMP2100"), ("COMP2100", "COMP2000")])
def test_unmet_requisite_stays_open_when_an_equal_one_is_met(make_registry, make_decider, first, second) -> None:
    registry = make_registry(SHARED)
    decider = make_decider(registry)
    decider.add_contents([registry[first], registry[second], registry["COMP1000"]])

    decider.force_subject(registry["COMP1000"], Time(2, Session.S1))
    decider.force_subject(registry["COMP2000"], Time(1, Session.S2))

    plan = decider.plan
    assert plan.assigned_times[registry["COMP1000"]] == Time(2, Session.S1)
    assert plan.assigned_times[registry["COMP2000"]] == Time(1, Session.S2)
    assert plan.assigned_times[registry["COMP1000"]] < plan.assigned_times[registry["COMP2100"]]
    assert [str(decision) for decision in plan.decisions] == ["COMP1000 OR COMP1010"]
    assert plan.decisions[0].prerequisite_reasons == (registry["COMP2000"],)


def test_analysis_reschedules_the_plan(registry, make_decider) -> None:
    decider = make_decider(registry)
    decider.add_contents([registry["COMP1000"], registry["COMP1010"]])
    plan = decider.plan
    assert plan.assigned_times[registry["COMP1000"]] == Time(1, Session.S1)

    plan.forced_times[registry["COMP1000"]] = Time(2, Session.S1)
    decider.analyze()

    assert plan.assigned_times[registry["COMP1000"]] == Time(2, Session.S1)
    assert plan.subjects_at(Time(1, Session.S1)) == [registry["COMP1010"]]


@pytest.fixture
def budget(make_registry):
    return make_registry(
        [
            {"code": "COMP1000"},
            {"code": "COMP1010"},
            {"code": "COMP2000", "prerequisites": "COMP1000"},
            {"code": "COMP3000", "corequisites": "COMP3010"},
            {"code": "COMP3010", "corequisites": "COMP3000"},
        ],
        [{"code": "BCS", "components": [{"cp": 20, "from": ["COMP3000", "COMP3010", "COMP1010"]}]}],
    )


def test_availability_tracks_remaining_credit_points(budget, make_decider) -> None:
    decider = make_decider(budget)
    assert decider.is_available(budget["COMP2000"])

    decider.add_content(budget["BCS"])

    assert decider.plan.remaining_credit_points() == 20
    assert decider.is_available(budget["COMP3000"])
    assert decider.is_available(budget["COMP2000"])

    decider.add_content(budget["COMP1010"])

    assert decider.plan.remaining_credit_points() == 10
    assert [str(decision) for decision in decider.plan.decisions] == ["10cp from COMP3000 or COMP3010"]
    assert not decider.is_available(budget["COMP3000"])
    assert not decider.is_available(budget["COMP2000"])
    assert decider.is_available(budget["COMP1000"])
    assert decider.is_available(budget["COMP1010"])
    assert decider.plan.credit_guard == set()
