"""Canonical escrow instance digest (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

from .config import ADDRESS_SIZE
from .types import MilestoneState


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def compute_instance_digest(state: dict[str, Any]) -> str:
    """Compute the instance digest v1 from ``EscrowInstance.to_dict()`` output.

    Fields are encoded in canonical order and hashed with BLAKE3-256.
    """
    buf = bytearray()
    for field in ("instance_id", "payer", "payee"):
        raw = _hex_to_bytes(state.get(field))
        if len(raw) != ADDRESS_SIZE:
            raise ValueError(f"{field} must be {ADDRESS_SIZE} bytes, got {len(raw)}")
        buf += raw

    for field in (
        "milestone_count",
        "amount_per_milestone",
        "milestones_paid",
        "is_funded",
        "is_cancelled",
        "balance",
        "paid_out",
        "refunded",
        "created_at",
        "updated_at",
    ):
        buf += _u64_be(int(state.get(field, 0)))

    milestones = state.get("milestones", [])
    buf += _u64_be(len(milestones))
    for m in milestones:
        buf += _u64_be(int(MilestoneState[m["state"]]))
        buf += _u64_be(int(m.get("submitted_at", 0)))
        buf += _u64_be(int(bool(m.get("paid", False))))

    return blake3(buf).hexdigest()
