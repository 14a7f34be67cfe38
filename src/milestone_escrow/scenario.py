"""Replay a sequence of escrow operations against a fresh registry.

Each step names an operation, the caller, its arguments, the instance it
targets (by creation order) and how far to move the clock first. Results are
reported per step instead of raised, so a scenario can mix accepted and
rejected calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .clock import ManualClock
from .errors import ErrorCode, EscrowError
from .escrow import EscrowInstance
from .events import EventBus
from .registry import EscrowRegistry
from .transfer import InMemoryLedger
from .types import Address

OPERATIONS = frozenset({
    "create_instance",
    "create_and_fund",
    "fund",
    "submit_milestone",
    "approve_milestone",
    "claim_after_timeout",
    "cancel",
})


@dataclass
class Step:
    op: str
    caller: Address
    args: Dict[str, Any] = field(default_factory=dict)
    # Index into creation order; -1 targets the latest instance.
    instance: int = -1
    advance: int = 0
    fail_transfers: bool = False


class OperationResult:
    """Thin wrapper for operation results."""

    def __init__(self, ok: bool, error: Optional[EscrowError] = None, value: Any = None):
        self.ok = ok
        self.error = error
        self.value = value

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(True, None, value)

    @classmethod
    def failure(cls, error: EscrowError) -> "OperationResult":
        return cls(False, error)


@dataclass
class ScenarioOutcome:
    registry: EscrowRegistry
    ledger: InMemoryLedger
    clock: ManualClock
    events: EventBus
    results: List[OperationResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)


def _target(registry: EscrowRegistry, index: int) -> EscrowInstance:
    ids = registry.get_all_instances()
    try:
        instance_id = ids[index]
    except IndexError:
        raise EscrowError(ErrorCode.INSTANCE_NOT_FOUND, f"no instance at position {index}") from None
    return registry.get_instance(instance_id)


def _dispatch(registry: EscrowRegistry, step: Step) -> Any:
    op = step.op
    a = step.args
    if op == "create_instance":
        return registry.create_instance(
            step.caller, a["payee"], a["milestone_count"], a["amount_per_milestone"]
        )
    if op == "create_and_fund":
        return registry.create_and_fund(
            step.caller,
            a["payee"],
            a["milestone_count"],
            a["amount_per_milestone"],
            a["supplied_amount"],
        )

    instance = _target(registry, step.instance)
    if op == "fund":
        return instance.fund(step.caller, a["amount"])
    if op == "submit_milestone":
        return instance.submit_milestone(step.caller, a["index"])
    if op == "approve_milestone":
        return instance.approve_milestone(step.caller, a["index"])
    if op == "claim_after_timeout":
        return instance.claim_after_timeout(step.caller, a["index"])
    if op == "cancel":
        return instance.cancel(step.caller)

    raise EscrowError(ErrorCode.NOT_IMPLEMENTED, f"unknown operation {op!r}")


def run_step(registry: EscrowRegistry, ledger: InMemoryLedger, clock: ManualClock, step: Step) -> OperationResult:
    if step.advance:
        clock.advance(step.advance)
    ledger.failing = step.fail_transfers
    try:
        return OperationResult.success(_dispatch(registry, step))
    except EscrowError as exc:
        return OperationResult.failure(exc)
    finally:
        ledger.failing = False


def run_scenario(steps: List[Step], *, start_time: int = 0, seed: bytes = b"") -> ScenarioOutcome:
    clock = ManualClock(start_time)
    ledger = InMemoryLedger()
    events = EventBus()
    registry = EscrowRegistry(ledger, clock=clock, events=events, seed=seed)
    outcome = ScenarioOutcome(registry=registry, ledger=ledger, clock=clock, events=events)
    for step in steps:
        outcome.results.append(run_step(registry, ledger, clock, step))
    return outcome
