"""Core types for the milestone escrow engine.

Identities are opaque 32-byte values. Amounts are integer ledger units.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List

Address = bytes
InstanceId = bytes


class MilestoneState(IntEnum):
    PENDING = 0
    SUBMITTED = 1
    APPROVED = 2
    # Reserved for arbitration; no operation enters it.
    DISPUTED = 3


@dataclass
class Milestone:
    state: MilestoneState = MilestoneState.PENDING
    submitted_at: int = 0
    paid: bool = False


@dataclass(frozen=True)
class EscrowTerms:
    payer: Address
    payee: Address
    milestone_count: int
    amount_per_milestone: int

    @property
    def total_required(self) -> int:
        return self.milestone_count * self.amount_per_milestone


@dataclass
class EscrowRecord:
    """Mutable part of an escrow instance. Snapshotted for rollback."""
    milestones: List[Milestone] = field(default_factory=list)
    milestones_paid: int = 0
    is_funded: bool = False
    is_cancelled: bool = False
    balance: int = 0
    paid_out: int = 0
    refunded: int = 0
    created_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True)
class InstanceStatus:
    funded: bool
    cancelled: bool
    complete: bool
    milestones_paid: int
    milestone_count: int
    balance: int

    def __str__(self) -> str:
        return (
            f"funded={self.funded} paid={self.milestones_paid}/{self.milestone_count} "
            f"balance={self.balance} cancelled={self.cancelled} complete={self.complete}"
        )
