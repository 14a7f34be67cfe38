"""Pytest fixtures for escrow specs and hooks to generate scenario fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, List

import pytest

from milestone_escrow.clock import ManualClock
from milestone_escrow.events import EventBus
from milestone_escrow.registry import EscrowRegistry
from milestone_escrow.scenario import ScenarioOutcome, Step, run_scenario
from milestone_escrow.test_accounts import ALICE, BOB
from milestone_escrow.transfer import InMemoryLedger
from tools.fixtures_io import outcome_to_json, step_to_json

START_TIME = 1_700_000_000

_SCENARIO_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_TIME)


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def registry(ledger: InMemoryLedger, clock: ManualClock, events: EventBus) -> EscrowRegistry:
    return EscrowRegistry(ledger, clock=clock, events=events)


@pytest.fixture
def make_instance(registry: EscrowRegistry):
    """Create an instance ALICE -> BOB, optionally funded."""

    def _make(milestone_count: int = 3, amount_per_milestone: int = 100, funded: bool = True):
        instance_id = registry.create_instance(ALICE, BOB, milestone_count, amount_per_milestone)
        instance = registry.get_instance(instance_id)
        if funded:
            instance.fund(ALICE, instance.total_required)
        return instance

    return _make


@pytest.fixture
def escrow_case() -> Callable[[str, str, List[Step]], ScenarioOutcome]:
    """Run a scenario, collect it under a fixture path, and return the outcome."""

    def _escrow_case(rel_path: str, name: str, steps: List[Step]) -> ScenarioOutcome:
        outcome = run_scenario(steps, start_time=START_TIME)
        _SCENARIO_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "start_time": START_TIME,
                "steps": [step_to_json(s) for s in steps],
                "expected": outcome_to_json(outcome),
            }
        )
        return outcome

    return _escrow_case


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _SCENARIO_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))
