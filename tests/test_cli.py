from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from subjectplan.cli import plan as plan_cli

SAMPLE_CATALOG = Path(__file__).resolve().parents[1] / "data" / "catalogs" / "sample.yaml"

runner = CliRunner()
QUIET = ["--log-level", "ERROR"]


def _invoke(*args: str):
    return runner.invoke(plan_cli.app, [*args])


def test_validate_cli_succeeds() -> None:
    result = _invoke("validate", str(SAMPLE_CATALOG))
    assert result.exit_code == 0
    assert "Catalog looks good" in result.stdout


def test_validate_cli_reports_errors(tmp_path: Path) -> None:
    catalog = tmp_path / "broken.yaml"
    catalog.write_text("subjects:\n  - code: COMP1000\n    sessions: [Q4]\n", encoding="utf-8")

    result = _invoke("validate", str(catalog))

    assert result.exit_code == 1
    assert "Q4" in result.stdout


def test_validate_cli_fail_on_warning(tmp_path: Path) -> None:
    catalog = tmp_path / "warning.yaml"
    catalog.write_text("subjects:\n  - code: COMP1000\n    nccws: [COMP9999]\n", encoding="utf-8")

    assert _invoke("validate", str(catalog)).exit_code == 0
    result = _invoke("validate", str(catalog), "--fail-on-warning")
    assert result.exit_code == 1
    assert "COMP9999" in result.stdout


def test_decisions_for_degree_json() -> None:
    result = _invoke("decisions", str(SAMPLE_CATALOG), "--select", "BIT", "--json", *QUIET)
    assert result.exit_code == 0, result.stdout

    rows = json.loads(result.stdout)
    assert len(rows) == 1
    row = rows[0]
    assert row["decision"] == "10cp from COMP2000 or COMP2010"
    assert row["instruction"] == "Select 1 from COMP unit:"
    assert row["reason"] == "Requisite to Bachelor of Information Technology"
    assert row["options"] == ["COMP2000", "COMP2010"]
    assert row["available"] == ["COMP2000", "COMP2010"]
    assert row["elective"] is False


def test_decisions_table_lists_open_choice() -> None:
    result = _invoke("decisions", str(SAMPLE_CATALOG), "-s", "COMP2010", *QUIET)
    assert result.exit_code == 0, result.stdout
    assert "COMP1010 OR COMP1300" in result.stdout

    settled = _invoke("decisions", str(SAMPLE_CATALOG), "-s", "COMP2010", "-s", "COMP1010", *QUIET)
    assert settled.exit_code == 0, settled.stdout
    assert "Nothing left to decide." in settled.stdout


def test_schedule_json_places_core_subjects() -> None:
    result = _invoke("schedule", str(SAMPLE_CATALOG), "--select", "BIT", "--json", *QUIET)
    assert result.exit_code == 0, result.stdout

    snapshot = json.loads(result.stdout)
    assert snapshot["courses"] == ["BIT"]
    assert snapshot["schedule"] == {
        "Year 1 Session 1": ["COMP1000"],
        "Year 1 Session 2": ["COMP1010"],
    }


def test_schedule_honours_forced_time() -> None:
    result = _invoke(
        "schedule", str(SAMPLE_CATALOG), "-s", "COMP1000", "--force", "COMP1000=2:S1", "--json", *QUIET
    )
    assert result.exit_code == 0, result.stdout
    assert json.loads(result.stdout)["schedule"] == {"Year 2 Session 1": ["COMP1000"]}


def test_banned_json_lists_nccw() -> None:
    result = _invoke("banned", str(SAMPLE_CATALOG), "--select", "COMP1300", "--json", *QUIET)
    assert result.exit_code == 0, result.stdout
    assert json.loads(result.stdout) == {"COMP1350": ["COMP1300"]}


def test_unknown_code_is_rejected() -> None:
    result = _invoke("decisions", str(SAMPLE_CATALOG), "--select", "COMP9999", *QUIET)
    assert result.exit_code != 0


def test_malformed_force_is_rejected() -> None:
    result = _invoke("schedule", str(SAMPLE_CATALOG), "-s", "COMP1000", "--force", "COMP1000", *QUIET)
    assert result.exit_code != 0


def test_config_from_environment(tmp_path: Path, monkeypatch) -> None:
    config = tmp_path / "planner.yaml"
    config.write_text("capacities:\n  S1: 10\n", encoding="utf-8")
    monkeypatch.setenv(plan_cli.CONFIG_ENV_VAR, str(config))

    result = _invoke("schedule", str(SAMPLE_CATALOG), "-s", "COMP1000", "-s", "MATH1010", "--json", *QUIET)

    assert result.exit_code == 0, result.stdout
    schedule = json.loads(result.stdout)["schedule"]
    assert len(schedule["Year 1 Session 1"]) == 1
