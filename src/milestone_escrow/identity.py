"""Identity helpers: address validation and BLAKE3 id derivation."""

from __future__ import annotations

from blake3 import blake3

from .config import ACCOUNT_DOMAIN, ADDRESS_SIZE, INSTANCE_DOMAIN, NULL_ADDRESS, REGISTRY_DOMAIN
from .errors import ErrorCode, EscrowError
from .types import Address, InstanceId


def require_address(value: object, role: str) -> Address:
    if not isinstance(value, bytes) or len(value) != ADDRESS_SIZE:
        raise EscrowError(ErrorCode.INVALID_ADDRESS, f"{role} must be a {ADDRESS_SIZE}-byte address")
    if value == NULL_ADDRESS:
        raise EscrowError(ErrorCode.INVALID_ADDRESS, f"{role} must not be the null address")
    return value


def derive_registry_id(seed: bytes = b"") -> Address:
    buf = bytearray()
    buf += REGISTRY_DOMAIN
    buf += seed
    return blake3(buf).digest()


def derive_instance_id(registry_id: Address, payer: Address, sequence: int) -> InstanceId:
    buf = bytearray()
    buf += INSTANCE_DOMAIN
    buf += registry_id
    buf += payer
    buf += sequence.to_bytes(8, "big")
    return blake3(buf).digest()


def account_address(name: str) -> Address:
    """Deterministic address for a named account (tests and fixtures)."""
    return blake3(ACCOUNT_DOMAIN + name.encode("utf-8")).digest()
