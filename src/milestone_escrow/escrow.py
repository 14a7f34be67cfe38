"""Milestone escrow instance: one job between one payer and one payee.

Every mutating operation runs inside ``_operation``: the mutable record is
snapshotted, guards are checked, state is changed, and only then is value
transferred out. If anything fails (a guard, or the transfer) the snapshot is
restored, so a failed call leaves the instance exactly as it found it. A
transfer that calls back into the instance observes the already-committed
``paid``/``is_cancelled`` flags and is rejected by the ordinary guards.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import asdict, replace
from typing import Any, Iterator, List, Optional, Tuple

from .clock import Clock, SystemClock
from .config import APPROVAL_TIMEOUT_SECONDS, MAX_MILESTONES
from .errors import ErrorCode, EscrowError
from .events import EscrowEvent, EventBus, EventKind
from .identity import require_address
from .transfer import ValueTransferPort
from .types import (
    Address,
    EscrowRecord,
    EscrowTerms,
    InstanceId,
    InstanceStatus,
    Milestone,
    MilestoneState,
)

logger = logging.getLogger(__name__)


def validate_terms(payer: object, payee: object, milestone_count: object, amount_per_milestone: object) -> None:
    require_address(payer, "payer")
    require_address(payee, "payee")
    if payer == payee:
        raise EscrowError(ErrorCode.SELF_OPERATION, "payer cannot be payee")
    if not isinstance(milestone_count, int) or isinstance(milestone_count, bool):
        raise EscrowError(ErrorCode.INVALID_MILESTONE_COUNT, "milestone_count must be an integer")
    if milestone_count <= 0 or milestone_count > MAX_MILESTONES:
        raise EscrowError(ErrorCode.INVALID_MILESTONE_COUNT, "milestone_count out of range")
    if not isinstance(amount_per_milestone, int) or isinstance(amount_per_milestone, bool):
        raise EscrowError(ErrorCode.INVALID_AMOUNT, "amount_per_milestone must be an integer")
    if amount_per_milestone <= 0:
        raise EscrowError(ErrorCode.INVALID_AMOUNT, "amount_per_milestone must be > 0")


class EscrowInstance:
    def __init__(
        self,
        instance_id: InstanceId,
        payer: Address,
        payee: Address,
        milestone_count: int,
        amount_per_milestone: int,
        *,
        transfer_port: ValueTransferPort,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
        registry: Optional[Address] = None,
    ):
        validate_terms(payer, payee, milestone_count, amount_per_milestone)
        self.instance_id = instance_id
        self.terms = EscrowTerms(
            payer=payer,
            payee=payee,
            milestone_count=milestone_count,
            amount_per_milestone=amount_per_milestone,
        )
        # Identity allowed to fund on the payer's behalf (create-and-fund).
        self.registry = registry
        self._port = transfer_port
        self._clock = clock or SystemClock()
        self._events = events if events is not None else EventBus()
        now = self._clock()
        self._record = EscrowRecord(
            milestones=[Milestone() for _ in range(milestone_count)],
            created_at=now,
            updated_at=now,
        )
        self._lock = threading.RLock()
        # Events of committed operations nested inside a still-running one.
        self._pending: List[EscrowEvent] = []
        self._depth = 0

    # --- read surface ---

    @property
    def payer(self) -> Address:
        return self.terms.payer

    @property
    def payee(self) -> Address:
        return self.terms.payee

    @property
    def milestone_count(self) -> int:
        return self.terms.milestone_count

    @property
    def amount_per_milestone(self) -> int:
        return self.terms.amount_per_milestone

    @property
    def total_required(self) -> int:
        return self.terms.total_required

    @property
    def milestones_paid(self) -> int:
        return self._record.milestones_paid

    @property
    def is_funded(self) -> bool:
        return self._record.is_funded

    @property
    def is_cancelled(self) -> bool:
        return self._record.is_cancelled

    @property
    def milestones(self) -> Tuple[Milestone, ...]:
        return tuple(replace(m) for m in self._record.milestones)

    def get_milestone(self, index: int) -> Milestone:
        self._check_index(index)
        return replace(self._record.milestones[index])

    def is_complete(self) -> bool:
        return self._record.milestones_paid == self.terms.milestone_count

    def remaining_balance(self) -> int:
        return self._record.balance

    def status(self) -> InstanceStatus:
        r = self._record
        return InstanceStatus(
            funded=r.is_funded,
            cancelled=r.is_cancelled,
            complete=self.is_complete(),
            milestones_paid=r.milestones_paid,
            milestone_count=self.terms.milestone_count,
            balance=r.balance,
        )

    def to_dict(self) -> dict[str, Any]:
        r = self._record
        return {
            "instance_id": self.instance_id.hex(),
            "payer": self.payer.hex(),
            "payee": self.payee.hex(),
            "milestone_count": self.milestone_count,
            "amount_per_milestone": self.amount_per_milestone,
            "total_required": self.total_required,
            "milestones_paid": r.milestones_paid,
            "is_funded": r.is_funded,
            "is_cancelled": r.is_cancelled,
            "balance": r.balance,
            "paid_out": r.paid_out,
            "refunded": r.refunded,
            "created_at": r.created_at,
            "updated_at": r.updated_at,
            "milestones": [
                {**asdict(m), "state": m.state.name} for m in r.milestones
            ],
        }

    # --- operations ---

    def fund(self, caller: Address, amount: int) -> None:
        with self._operation("fund") as staged:
            if caller != self.payer and (self.registry is None or caller != self.registry):
                raise EscrowError(ErrorCode.UNAUTHORIZED, "only the payer can fund")
            r = self._record
            if r.is_funded:
                raise EscrowError(ErrorCode.ALREADY_FUNDED, "escrow already funded")
            if isinstance(amount, bool) or not isinstance(amount, int):
                raise EscrowError(ErrorCode.INVALID_AMOUNT, "funding amount must be an integer")
            if amount != self.total_required:
                raise EscrowError(
                    ErrorCode.INCORRECT_AMOUNT,
                    f"funding must equal {self.total_required}, got {amount}",
                )
            r.is_funded = True
            r.balance += amount
            r.updated_at = self._clock()
            staged.append(self._event(EventKind.FUNDED, amount=amount))

    def submit_milestone(self, caller: Address, index: int) -> None:
        with self._operation("submit_milestone") as staged:
            self._require_caller(caller, self.payee)
            milestone = self._open_milestone(index)
            now = self._clock()
            # Re-submitting an unpaid milestone restarts its approval window.
            milestone.state = MilestoneState.SUBMITTED
            milestone.submitted_at = now
            self._record.updated_at = now
            staged.append(self._event(EventKind.MILESTONE_SUBMITTED, index=index))

    def approve_milestone(self, caller: Address, index: int) -> None:
        with self._operation("approve_milestone") as staged:
            self._require_caller(caller, self.payer)
            milestone = self._open_milestone(index)
            self._require_submitted(milestone, index)
            self._release(staged, index, EventKind.MILESTONE_APPROVED)

    def claim_after_timeout(self, caller: Address, index: int) -> None:
        with self._operation("claim_after_timeout") as staged:
            self._require_caller(caller, self.payee)
            milestone = self._open_milestone(index)
            self._require_submitted(milestone, index)
            deadline = milestone.submitted_at + APPROVAL_TIMEOUT_SECONDS
            if self._clock() < deadline:
                raise EscrowError(
                    ErrorCode.TIMEOUT_NOT_REACHED,
                    f"milestone {index} claimable at {deadline}",
                )
            self._release(staged, index, EventKind.MILESTONE_CLAIMED)

    def cancel(self, caller: Address) -> None:
        with self._operation("cancel") as staged:
            if caller not in (self.payer, self.payee):
                raise EscrowError(ErrorCode.UNAUTHORIZED, "only a participant can cancel")
            self._require_active()
            r = self._record
            if r.milestones_paid > 0:
                raise EscrowError(ErrorCode.CANNOT_CANCEL, "cannot cancel with paid milestones")
            refund = r.balance
            r.is_cancelled = True
            r.balance = 0
            r.refunded += refund
            r.updated_at = self._clock()
            self._transfer(self.payer, refund)
            staged.append(self._event(EventKind.JOB_CANCELLED, refund=refund))

    # --- internals ---

    @contextmanager
    def _operation(self, name: str) -> Iterator[List[EscrowEvent]]:
        staged: List[EscrowEvent] = []
        with self._lock:
            snapshot = deepcopy(self._record)
            mark = len(self._pending)
            self._depth += 1
            try:
                yield staged
            except Exception as exc:
                self._record = snapshot
                del self._pending[mark:]
                logger.debug("%s rejected on %s: %s", name, self.instance_id.hex()[:16], exc)
                raise
            finally:
                self._depth -= 1
            logger.debug("%s committed on %s", name, self.instance_id.hex()[:16])
            self._pending.extend(staged)
            if self._depth:
                # Published with the outermost operation, or dropped if it rolls back.
                return
            published = self._pending
            self._pending = []
        self._events.publish(published)

    def _release(self, staged: List[EscrowEvent], index: int, kind: EventKind) -> None:
        """Mark ``index`` paid, then transfer its amount to the payee."""
        r = self._record
        amount = self.amount_per_milestone
        milestone = r.milestones[index]
        milestone.state = MilestoneState.APPROVED
        milestone.paid = True
        r.milestones_paid += 1
        r.balance -= amount
        r.paid_out += amount
        r.updated_at = self._clock()
        completed = r.milestones_paid == self.milestone_count

        self._transfer(self.payee, amount)

        staged.append(self._event(kind, index=index, amount=amount))
        if completed:
            staged.append(self._event(EventKind.JOB_COMPLETED, total_paid=self.total_required))

    def _transfer(self, recipient: Address, amount: int) -> None:
        try:
            ok = self._port.transfer(self.instance_id, recipient, amount)
        except Exception as exc:
            logger.warning("transfer of %d to %s raised: %s", amount, recipient.hex()[:16], exc)
            raise EscrowError(ErrorCode.TRANSFER_FAILED, f"transfer raised: {exc}") from exc
        if not ok:
            logger.warning("transfer of %d to %s failed", amount, recipient.hex()[:16])
            raise EscrowError(ErrorCode.TRANSFER_FAILED, "transfer failed")

    def _require_caller(self, caller: Address, expected: Address) -> None:
        if caller != expected:
            role = "payer" if expected == self.payer else "payee"
            raise EscrowError(ErrorCode.UNAUTHORIZED, f"only the {role} can do this")

    def _require_active(self) -> None:
        if not self._record.is_funded:
            raise EscrowError(ErrorCode.NOT_FUNDED, "escrow not funded")
        if self._record.is_cancelled:
            raise EscrowError(ErrorCode.JOB_CANCELLED, "job cancelled")

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise EscrowError(ErrorCode.INVALID_MILESTONE, "milestone index must be an integer")
        if index < 0 or index >= self.milestone_count:
            raise EscrowError(ErrorCode.INVALID_MILESTONE, f"invalid milestone {index}")

    def _open_milestone(self, index: int) -> Milestone:
        """Common guards for milestone operations; returns the live milestone."""
        self._require_active()
        self._check_index(index)
        milestone = self._record.milestones[index]
        if milestone.paid:
            raise EscrowError(ErrorCode.ALREADY_PAID, f"milestone {index} already paid")
        return milestone

    @staticmethod
    def _require_submitted(milestone: Milestone, index: int) -> None:
        if milestone.state != MilestoneState.SUBMITTED:
            raise EscrowError(ErrorCode.NOT_SUBMITTED, f"milestone {index} not submitted")

    def _event(self, kind: EventKind, **payload: Any) -> EscrowEvent:
        return EscrowEvent(
            kind=kind,
            instance_id=self.instance_id,
            timestamp=self._clock(),
            payload=payload,
        )
