"""Fixture tooling specs: serialization, replay and YAML export."""

from __future__ import annotations

import json

import yaml
from click.testing import CliRunner

from milestone_escrow.scenario import Step, run_scenario
from milestone_escrow.test_accounts import ALICE, BOB
from tools.consume import check_case, main
from tools.fixtures_io import outcome_to_json, step_from_json, step_to_json
from tools.yaml_dump import dump_yaml

_STEPS = [
    Step("create_and_fund", ALICE, {"payee": BOB, "milestone_count": 2, "amount_per_milestone": 7, "supplied_amount": 14}),
    Step("submit_milestone", BOB, {"index": 1}),
    Step("approve_milestone", ALICE, {"index": 1}, fail_transfers=True),
    Step("cancel", ALICE, advance=60),
]


def _case(name: str = "fixture_case") -> dict:
    outcome = run_scenario(_STEPS, start_time=1000)
    return {
        "name": name,
        "start_time": 1000,
        "steps": [step_to_json(s) for s in _STEPS],
        "expected": outcome_to_json(outcome),
    }


def test_step_json_restores_step() -> None:
    restored = [step_from_json(step_to_json(s)) for s in _STEPS]
    assert restored == _STEPS


def test_recorded_case_replays_clean() -> None:
    assert check_case(_case()) == []


def test_tampered_case_is_reported() -> None:
    case = _case()
    case["expected"]["balances"] = {}
    case["expected"]["results"][2]["error"] = None
    failures = check_case(case)
    assert "fixture_case: balance_mismatch" in failures
    assert any("step 2" in f for f in failures)


def test_yaml_export_is_loadable() -> None:
    case = _case()
    assert yaml.safe_load(dump_yaml({"cases": [case]})) == {"cases": [case]}


def test_consume_cli(tmp_path) -> None:
    fixtures = tmp_path / "fixtures"
    (fixtures / "scenarios").mkdir(parents=True)
    (fixtures / "scenarios" / "case.json").write_text(json.dumps({"cases": [_case()]}))
    yaml_dir = tmp_path / "yaml"

    result = CliRunner().invoke(main, ["--fixtures", str(fixtures), "--yaml-dir", str(yaml_dir)])
    assert result.exit_code == 0, result.output
    assert "All fixtures passed" in result.output
    assert (yaml_dir / "scenarios" / "case.yaml").exists()


def test_consume_cli_without_fixtures(tmp_path) -> None:
    result = CliRunner().invoke(main, ["--fixtures", str(tmp_path)])
    assert result.exit_code == 1
