"""Cancellation specs."""

from __future__ import annotations

import pytest

from milestone_escrow.config import APPROVAL_TIMEOUT_SECONDS
from milestone_escrow.errors import ErrorCode, EscrowError
from milestone_escrow.events import EventKind
from milestone_escrow.test_accounts import ALICE, BOB, CAROL


def _code(fn, *args) -> ErrorCode:
    with pytest.raises(EscrowError) as exc_info:
        fn(*args)
    return exc_info.value.code


def test_payer_cancels_before_payment(make_instance, ledger, events) -> None:
    instance = make_instance()
    instance.cancel(ALICE)
    assert instance.is_cancelled is True
    assert instance.remaining_balance() == 0
    assert ledger.balance_of(ALICE) == 300
    cancelled = events.events(EventKind.JOB_CANCELLED)
    assert len(cancelled) == 1
    assert cancelled[0].payload == {"refund": 300}


def test_payee_cancels_with_submitted_milestone(make_instance, ledger) -> None:
    instance = make_instance()
    instance.submit_milestone(BOB, 0)
    instance.cancel(BOB)
    assert instance.is_cancelled is True
    assert ledger.balance_of(ALICE) == 300
    assert ledger.balance_of(BOB) == 0


def test_stranger_cannot_cancel(make_instance) -> None:
    instance = make_instance()
    assert _code(instance.cancel, CAROL) == ErrorCode.UNAUTHORIZED
    assert instance.is_cancelled is False


def test_cancel_after_paid_milestone(make_instance, ledger) -> None:
    instance = make_instance()
    instance.submit_milestone(BOB, 0)
    instance.approve_milestone(ALICE, 0)
    assert _code(instance.cancel, ALICE) == ErrorCode.CANNOT_CANCEL
    assert _code(instance.cancel, BOB) == ErrorCode.CANNOT_CANCEL
    assert instance.is_cancelled is False
    assert instance.remaining_balance() == 200
    assert ledger.balance_of(ALICE) == 0


def test_cancel_after_timeout_claim(make_instance, clock) -> None:
    instance = make_instance()
    instance.submit_milestone(BOB, 1)
    clock.advance(APPROVAL_TIMEOUT_SECONDS)
    instance.claim_after_timeout(BOB, 1)
    assert _code(instance.cancel, BOB) == ErrorCode.CANNOT_CANCEL


def test_cancelled_instance_is_a_sink(make_instance, clock) -> None:
    instance = make_instance()
    instance.submit_milestone(BOB, 0)
    instance.cancel(ALICE)
    clock.advance(APPROVAL_TIMEOUT_SECONDS)

    assert _code(instance.cancel, ALICE) == ErrorCode.JOB_CANCELLED
    assert _code(instance.submit_milestone, BOB, 1) == ErrorCode.JOB_CANCELLED
    assert _code(instance.approve_milestone, ALICE, 0) == ErrorCode.JOB_CANCELLED
    assert _code(instance.claim_after_timeout, BOB, 0) == ErrorCode.JOB_CANCELLED
    assert _code(instance.fund, ALICE, 300) == ErrorCode.ALREADY_FUNDED
    assert instance.is_cancelled is True


def test_cancelled_instance_stays_queryable(make_instance) -> None:
    instance = make_instance()
    instance.cancel(BOB)
    state = instance.to_dict()
    assert state["is_cancelled"] is True
    assert state["refunded"] == 300
    assert len(state["milestones"]) == 3
