"""Named test identities used by the test suite and fixture tooling."""

from __future__ import annotations

from .identity import account_address

ALICE = account_address("Alice")
BOB = account_address("Bob")
CAROL = account_address("Carol")
DAVE = account_address("Dave")
EVE = account_address("Eve")
