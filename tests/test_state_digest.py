"""Instance digest and error rendering specs."""

from __future__ import annotations

import pytest

from milestone_escrow.errors import ErrorCategory, ErrorCode, EscrowError, err
from milestone_escrow.scenario import Step, run_scenario
from milestone_escrow.state_digest import compute_instance_digest
from milestone_escrow.test_accounts import ALICE, BOB


def test_digest_is_stable(make_instance) -> None:
    instance = make_instance()
    first = compute_instance_digest(instance.to_dict())
    assert first == compute_instance_digest(instance.to_dict())
    assert len(first) == 64


def test_digest_tracks_transitions(make_instance) -> None:
    instance = make_instance()
    before = compute_instance_digest(instance.to_dict())
    instance.submit_milestone(BOB, 0)
    after_submit = compute_instance_digest(instance.to_dict())
    instance.approve_milestone(ALICE, 0)
    after_approve = compute_instance_digest(instance.to_dict())
    assert len({before, after_submit, after_approve}) == 3


def test_digest_rejects_bad_address(make_instance) -> None:
    state = make_instance().to_dict()
    state["payer"] = "00ff"
    with pytest.raises(ValueError):
        compute_instance_digest(state)


def test_error_rendering() -> None:
    error = err(ErrorCode.ALREADY_PAID, "milestone 0 already paid")
    assert str(error) == "ALREADY_PAID(0x0401): milestone 0 already paid"
    assert error.code.category == ErrorCategory.MILESTONE
    assert ErrorCode.TRANSFER_FAILED.category == ErrorCategory.EXTERNAL


def test_error_is_frozen() -> None:
    error = EscrowError(ErrorCode.UNAUTHORIZED, "nope")
    with pytest.raises(AttributeError):
        error.code = ErrorCode.ALREADY_PAID  # type: ignore[misc]


def test_unknown_operation_is_internal_error() -> None:
    outcome = run_scenario([Step("withdraw_all", ALICE)])
    error = outcome.results[0].error
    assert error.code == ErrorCode.NOT_IMPLEMENTED
    assert error.code.category == ErrorCategory.INTERNAL
