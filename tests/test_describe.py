from __future__ import annotations

import pytest

from subjectplan.engine.describe import describe, instruction, list_contents, list_item, reason_description
from subjectplan.engine.options import CompletedDecision, Decision, ImpossibleDecision, Selection


@pytest.fixture
def registry(make_registry):
    return make_registry(
        [
            {"code": "COMP1000"},
            {"code": "COMP1010"},
            {"code": "COMP1300"},
            {"code": "COMP2000"},
            {"code": "COMP2010"},
            {"code": "MATH2010"},
            {"code": "STAT2170"},
        ],
        [
            {"code": "BIT", "name": "Bachelor of Information Technology", "kind": "degree", "components": ["COMP1000"]},
            {"code": "SOFT", "name": "Software Major", "kind": "major", "components": ["COMP2000"]},
        ],
    )


def test_instruction_for_single_choice(registry) -> None:
    decision = Decision([registry["COMP1000"], registry["COMP1010"]], Selection.OR)
    assert instruction(decision) == "Choose 1:"


def test_instruction_for_credit_point_choice(registry) -> None:
    one = Decision([registry["COMP1000"], registry["COMP1010"]], Selection.CP, 10)
    two = Decision([registry["COMP1000"], registry["COMP1010"], registry["COMP1300"]], Selection.CP, 20)
    assert instruction(one) == "Select 1 from COMP unit:"
    assert instruction(two) == "Select 2 from COMP units:"


def test_instruction_for_electives(registry) -> None:
    electives = Decision(
        [registry["COMP2000"], registry["COMP2010"], registry["MATH2010"], registry["STAT2170"]],
        Selection.CP,
        20,
        elective=True,
    )
    assert instruction(electives) == "Select 2 of Electives at 2000 level:"


def test_instruction_for_many_prefixes_omits_units(registry) -> None:
    decision = Decision([registry["COMP2000"], registry["MATH2010"], registry["STAT2170"]], Selection.CP, 20)
    assert instruction(decision) == "Select 2:"


def test_instruction_for_courses_and_compulsory_groups(registry) -> None:
    assert instruction(Decision([registry["SOFT"]], Selection.OR)) == "Select a Major"
    assert instruction(Decision([registry["BIT"]], Selection.OR)) == "Select a Degree"
    grouped = Decision(
        [
            Decision([registry["COMP1000"], registry["COMP1010"]], Selection.OR),
            Decision([registry["COMP2000"], registry["COMP2010"]], Selection.OR),
        ],
        Selection.AND,
    )
    assert instruction(grouped) == "You need to satisfy all of these. Pick one to focus on:"


def test_list_item_labels(registry) -> None:
    assert list_item(Decision([registry["COMP1000"], registry["COMP1010"]], Selection.OR)) == "COMP1000 or COMP1010"
    assert list_item(Decision([registry["SOFT"]], Selection.OR)) == "Major"
    many = Decision(
        [registry[code] for code in ("COMP1000", "COMP1010", "COMP1300", "COMP2000", "COMP2010")],
        Selection.CP,
        20,
    )
    assert list_item(many) == "2 COMP units"


def test_list_contents_uses_codes_for_subjects_and_names_for_courses(registry) -> None:
    assert list_contents([registry["COMP1000"], registry["BIT"]]) == "COMP1000, Bachelor of Information Technology"


def test_reason_description_names_every_reason(registry) -> None:
    decision = Decision(
        [registry["COMP1000"]],
        Selection.OR,
        prerequisite_reasons=[registry["BIT"], registry["COMP2000"]],
        corequisite_reasons=[registry["COMP2010"]],
    )
    assert reason_description(decision) == (
        "Requisite to Bachelor of Information Technology & Prerequisite to COMP2000 & Corequisite to COMP2010"
    )


def test_describe_nested_decisions_and_sentinels(registry) -> None:
    nested = Decision(
        [registry["COMP2000"], Decision([registry["COMP1000"], registry["COMP1010"]], Selection.AND)],
        Selection.OR,
    )
    assert describe(nested) == "COMP2000 OR (COMP1000 AND COMP1010)"
    assert describe(Decision([registry["COMP1000"], registry["COMP1300"]], Selection.CP, 10)) == (
        "10cp from COMP1000 or COMP1300"
    )
    assert describe(CompletedDecision(registry["COMP1000"])) == "[complete]"
    assert describe(ImpossibleDecision(registry["COMP1000"])) == "[impossible]"
