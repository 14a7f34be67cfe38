"""Escrow signals and the audit log they are published to.

Operations stage events while they run and publish them only after every
state change and transfer of the operation has succeeded. A rejected or
rolled-back operation publishes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from .types import InstanceId

logger = logging.getLogger(__name__)


class EventKind(Enum):
    INSTANCE_CREATED = "instance_created"
    FUNDED = "funded"
    MILESTONE_SUBMITTED = "milestone_submitted"
    MILESTONE_APPROVED = "milestone_approved"
    MILESTONE_CLAIMED = "milestone_claimed_after_timeout"
    JOB_CANCELLED = "job_cancelled"
    JOB_COMPLETED = "job_completed"


@dataclass(frozen=True)
class EscrowEvent:
    kind: EventKind
    instance_id: InstanceId
    timestamp: int
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "kind": self.kind.value,
            "instance_id": self.instance_id.hex(),
            "timestamp": self.timestamp,
        }
        for key, value in self.payload.items():
            out[key] = value.hex() if isinstance(value, bytes) else value
        return out


Subscriber = Callable[[EscrowEvent], None]


class EventBus:
    """Append-only event log with synchronous fan-out to subscribers."""

    def __init__(self) -> None:
        self._log: List[EscrowEvent] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def publish(self, events: Iterable[EscrowEvent]) -> None:
        for event in events:
            self._log.append(event)
            logger.info(
                "%s instance=%s %s",
                event.kind.value,
                event.instance_id.hex()[:16],
                event.payload,
            )
            for subscriber in self._subscribers:
                # The transition is already committed; a failing subscriber
                # must not make the caller believe otherwise.
                try:
                    subscriber(event)
                except Exception:
                    logger.exception("subscriber failed on %s", event.kind.value)

    def events(
        self,
        kind: Optional[EventKind] = None,
        instance_id: Optional[InstanceId] = None,
    ) -> List[EscrowEvent]:
        return [
            e
            for e in self._log
            if (kind is None or e.kind == kind)
            and (instance_id is None or e.instance_id == instance_id)
        ]

    def __len__(self) -> int:
        return len(self._log)
