"""Milestone escrow error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    FUNDING = 0x03
    MILESTONE = 0x04
    CANCELLATION = 0x05
    REGISTRY = 0x06
    EXTERNAL = 0x07
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Validation
    INVALID_ADDRESS = 0x0100
    INVALID_AMOUNT = 0x0101
    INVALID_MILESTONE_COUNT = 0x0102
    INVALID_MILESTONE = 0x0103
    SELF_OPERATION = 0x0104

    # Authorization
    UNAUTHORIZED = 0x0200

    # Funding
    NOT_FUNDED = 0x0300
    ALREADY_FUNDED = 0x0301
    INCORRECT_AMOUNT = 0x0302

    # Milestone
    NOT_SUBMITTED = 0x0400
    ALREADY_PAID = 0x0401
    TIMEOUT_NOT_REACHED = 0x0402

    # Cancellation
    JOB_CANCELLED = 0x0500
    CANNOT_CANCEL = 0x0501

    # Registry
    INSTANCE_NOT_FOUND = 0x0600

    # External collaborators
    TRANSFER_FAILED = 0x0700

    # Internal
    NOT_IMPLEMENTED = 0xFF00

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class EscrowError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__", "__suppress_context__"))
_frozen_setattr = EscrowError.__setattr__


def _escrow_error_setattr(self: EscrowError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


EscrowError.__setattr__ = _escrow_error_setattr  # type: ignore[method-assign]


def err(code: ErrorCode, message: str) -> EscrowError:
    return EscrowError(code=code, message=message)
