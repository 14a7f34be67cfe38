"""Helpers to serialize/deserialize escrow scenario fixtures."""

from __future__ import annotations

from typing import Any

from milestone_escrow.scenario import OPERATIONS, OperationResult, ScenarioOutcome, Step

# Argument keys that carry addresses and are hex-encoded in fixtures.
_ADDRESS_ARGS = frozenset({"payee"})


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def step_to_json(step: Step) -> dict[str, Any]:
    args = {
        k: _bytes_to_hex(v) if k in _ADDRESS_ARGS else v
        for k, v in step.args.items()
    }
    out: dict[str, Any] = {
        "op": step.op,
        "caller": _bytes_to_hex(step.caller),
        "args": args,
        "instance": step.instance,
    }
    if step.advance:
        out["advance"] = step.advance
    if step.fail_transfers:
        out["fail_transfers"] = True
    return out


def step_from_json(data: dict[str, Any]) -> Step:
    op = data["op"]
    if op not in OPERATIONS:
        raise ValueError(f"unknown operation {op!r}")
    args = {
        k: _hex_to_bytes(v) if k in _ADDRESS_ARGS else v
        for k, v in data.get("args", {}).items()
    }
    return Step(
        op=op,
        caller=_hex_to_bytes(data["caller"]),
        args=args,
        instance=int(data.get("instance", -1)),
        advance=int(data.get("advance", 0)),
        fail_transfers=bool(data.get("fail_transfers", False)),
    )


def result_to_json(result: OperationResult) -> dict[str, Any]:
    value = result.value
    if isinstance(value, bytes):
        value = _bytes_to_hex(value)
    return {
        "ok": result.ok,
        "error": result.error.code.name if result.error else None,
        "value": value,
    }


def outcome_to_json(outcome: ScenarioOutcome) -> dict[str, Any]:
    registry = outcome.registry
    return {
        "results": [result_to_json(r) for r in outcome.results],
        "instances": [
            registry.get_instance(iid).to_dict() for iid in registry.get_all_instances()
        ],
        "balances": {
            _bytes_to_hex(addr): amount
            for addr, amount in sorted(outcome.ledger.balances.items())
        },
        "events": [e.to_dict() for e in outcome.events.events()],
    }
