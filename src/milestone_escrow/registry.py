"""Escrow registry: creates instances and indexes them per participant."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Set

from .clock import Clock, SystemClock
from .errors import ErrorCode, EscrowError
from .escrow import EscrowInstance, validate_terms
from .events import EscrowEvent, EventBus, EventKind
from .identity import derive_instance_id, derive_registry_id
from .transfer import ValueTransferPort
from .types import Address, InstanceId

logger = logging.getLogger(__name__)


class EscrowRegistry:
    """Sole owner of the instance arena and of the participant indices.

    Indices are append-only. Creation, including publication of its
    instance-created event, is serialized by a writer lock; reads never take it.
    """

    def __init__(
        self,
        transfer_port: ValueTransferPort,
        *,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
        seed: bytes = b"",
    ):
        self.registry_id = derive_registry_id(seed)
        self.events = events if events is not None else EventBus()
        self._port = transfer_port
        self._clock = clock or SystemClock()
        self._instances: Dict[InstanceId, EscrowInstance] = {}
        self._all: List[InstanceId] = []
        self._by_participant: Dict[Address, List[InstanceId]] = {}
        self._known: Set[InstanceId] = set()
        self._lock = threading.RLock()

    def create_instance(
        self,
        caller: Address,
        payee: Address,
        milestone_count: int,
        amount_per_milestone: int,
    ) -> InstanceId:
        validate_terms(caller, payee, milestone_count, amount_per_milestone)
        with self._lock:
            instance_id = derive_instance_id(self.registry_id, caller, len(self._all))
            instance = EscrowInstance(
                instance_id,
                caller,
                payee,
                milestone_count,
                amount_per_milestone,
                transfer_port=self._port,
                clock=self._clock,
                events=self.events,
                registry=self.registry_id,
            )
            self._instances[instance_id] = instance
            self._all.append(instance_id)
            self._by_participant.setdefault(caller, []).append(instance_id)
            self._by_participant.setdefault(payee, []).append(instance_id)
            self._known.add(instance_id)
            logger.debug("registered instance %s (#%d)", instance_id.hex()[:16], len(self._all))
            # Published under the lock so the event log follows creation order.
            self.events.publish([
                EscrowEvent(
                    kind=EventKind.INSTANCE_CREATED,
                    instance_id=instance_id,
                    timestamp=self._clock(),
                    payload={
                        "payer": caller,
                        "payee": payee,
                        "milestone_count": milestone_count,
                        "amount_per_milestone": amount_per_milestone,
                        "total_required": instance.total_required,
                    },
                )
            ])
        return instance_id

    def create_and_fund(
        self,
        caller: Address,
        payee: Address,
        milestone_count: int,
        amount_per_milestone: int,
        supplied_amount: int,
    ) -> InstanceId:
        """Create an instance and fund it with ``supplied_amount``.

        The amount is checked before anything is created. If funding still
        fails, the instance stays registered but unfunded.
        """
        validate_terms(caller, payee, milestone_count, amount_per_milestone)
        if isinstance(supplied_amount, bool) or not isinstance(supplied_amount, int):
            raise EscrowError(ErrorCode.INVALID_AMOUNT, "supplied_amount must be an integer")
        if supplied_amount != milestone_count * amount_per_milestone:
            raise EscrowError(
                ErrorCode.INCORRECT_AMOUNT,
                f"funding must equal {milestone_count * amount_per_milestone}, got {supplied_amount}",
            )
        instance_id = self.create_instance(caller, payee, milestone_count, amount_per_milestone)
        try:
            self._instances[instance_id].fund(self.registry_id, supplied_amount)
        except EscrowError:
            logger.warning("instance %s created but left unfunded", instance_id.hex()[:16])
            raise
        return instance_id

    # --- reads ---

    def get_instance(self, instance_id: InstanceId) -> EscrowInstance:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise EscrowError(ErrorCode.INSTANCE_NOT_FOUND, "unknown escrow instance")
        return instance

    def get_all_instances(self) -> List[InstanceId]:
        return list(self._all)

    def get_instances_for(self, identity: Address) -> List[InstanceId]:
        return list(self._by_participant.get(identity, ()))

    def count_all(self) -> int:
        return len(self._all)

    def count_for(self, identity: Address) -> int:
        return len(self._by_participant.get(identity, ()))

    def is_known(self, instance_id: InstanceId) -> bool:
        return instance_id in self._known
