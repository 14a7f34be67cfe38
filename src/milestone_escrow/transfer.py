"""Value transfer port and an in-memory ledger implementing it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from .types import Address

logger = logging.getLogger(__name__)


class ValueTransferPort(Protocol):
    def transfer(self, source: Address, recipient: Address, amount: int) -> bool:
        """Move ``amount`` from ``source`` to ``recipient``.

        Must be atomic: either the whole amount moves and True is returned,
        or nothing moves and False is returned (or an exception is raised).
        """
        ...


@dataclass(frozen=True)
class TransferRecord:
    source: Address
    recipient: Address
    amount: int


TransferHook = Callable[[TransferRecord], None]


class InMemoryLedger:
    """Ledger substrate holding recipient balances in memory.

    ``failing`` makes every transfer report failure. ``on_transfer`` runs
    after the recipient is credited, the way a recipient's receive hook runs
    during a native transfer; if it raises, the credit is undone and the
    exception propagates.
    """

    def __init__(self, balances: Optional[Dict[Address, int]] = None):
        self.balances: Dict[Address, int] = dict(balances or {})
        self.transfers: List[TransferRecord] = []
        self.failing = False
        self.on_transfer: Optional[TransferHook] = None

    def balance_of(self, address: Address) -> int:
        return self.balances.get(address, 0)

    def transfer(self, source: Address, recipient: Address, amount: int) -> bool:
        if self.failing:
            logger.debug("transfer of %d to %s refused", amount, recipient.hex()[:16])
            return False
        if amount < 0:
            return False

        record = TransferRecord(source=source, recipient=recipient, amount=amount)
        position = len(self.transfers)
        self.balances[recipient] = self.balance_of(recipient) + amount
        self.transfers.append(record)

        hook = self.on_transfer
        if hook is not None:
            try:
                hook(record)
            except Exception:
                self.balances[recipient] -= amount
                del self.transfers[position]
                raise
        return True
