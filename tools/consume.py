"""Consume scenario fixtures and validate them against the engine.

Run from the repository root: ``python -m tools.consume --fixtures fixtures``.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from milestone_escrow.config import LOG_FORMAT, HarnessSettings
from milestone_escrow.scenario import run_scenario
from milestone_escrow.state_digest import compute_instance_digest
from tools.fixtures_io import outcome_to_json, step_from_json
from tools.yaml_dump import write_yaml

logger = logging.getLogger(__name__)


def check_case(case: dict) -> list[str]:
    failures: list[str] = []
    steps = [step_from_json(s) for s in case["steps"]]
    outcome = run_scenario(steps, start_time=int(case.get("start_time", 0)))
    actual = outcome_to_json(outcome)
    expected = case["expected"]
    name = case["name"]

    for idx, (got, want) in enumerate(zip(actual["results"], expected["results"])):
        if got["ok"] != want["ok"]:
            failures.append(f"{name}: step {idx} ok_mismatch")
        elif got["error"] != want["error"]:
            failures.append(f"{name}: step {idx} error_mismatch ({got['error']} != {want['error']})")
    if len(actual["results"]) != len(expected["results"]):
        failures.append(f"{name}: step_count_mismatch")

    got_digests = [compute_instance_digest(i) for i in actual["instances"]]
    want_digests = [compute_instance_digest(i) for i in expected["instances"]]
    if got_digests != want_digests:
        failures.append(f"{name}: instance_state_mismatch")

    if actual["balances"] != expected["balances"]:
        failures.append(f"{name}: balance_mismatch")

    got_kinds = [e["kind"] for e in actual["events"]]
    want_kinds = [e["kind"] for e in expected["events"]]
    if got_kinds != want_kinds:
        failures.append(f"{name}: event_mismatch")
    return failures


def check_file(path: Path) -> list[str]:
    data = json.loads(path.read_text())
    failures: list[str] = []
    for case in data.get("cases", []):
        failures.extend(check_case(case))
    return failures


@click.command()
@click.option("--fixtures", "fixtures_dir", default=None, help="Fixture directory (default: $ESCROW_FIXTURES_DIR or ./fixtures)")
@click.option("--yaml-dir", default=None, help="Also export every fixture file as YAML into this directory")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def main(fixtures_dir: Optional[str], yaml_dir: Optional[str], verbose: bool) -> None:
    settings = HarnessSettings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if verbose or settings.verbose else settings.log_level,
        format=LOG_FORMAT,
    )
    root = Path(fixtures_dir or settings.fixtures_dir)
    files = sorted(root.rglob("*.json"))
    if not files:
        logger.error("No fixture files found under %s", root)
        sys.exit(1)

    failures: list[str] = []
    for path in files:
        logger.info("Checking %s", path.relative_to(root))
        failures.extend(check_file(path))
        if yaml_dir:
            target = Path(yaml_dir) / path.relative_to(root).with_suffix(".yaml")
            target.parent.mkdir(parents=True, exist_ok=True)
            write_yaml(target, json.loads(path.read_text()))

    if failures:
        for f in failures:
            click.echo(f"FAIL {f}")
        sys.exit(1)

    click.echo(f"All fixtures passed ({len(files)} files)")


if __name__ == "__main__":
    main()
