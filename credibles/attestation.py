"""
AttestationGate: turns EAS attestations into XP.

The gate is the only identity allowed to call SkillRegistry.add_xp. It
registers its schema once at construction and then decodes each attestation
payload as ``(uint256 studentId, string category, uint256 xpValue)``.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from .errors import DecodeError
from .registry import SkillRegistry
from .skills import LevelUp
from .util import to_address

logger = logging.getLogger(__name__)

SCHEMA = "uint256 studentId, string category, uint256 xpValue"
SCHEMA_TYPES = ["uint256", "string", "uint256"]


class SchemaRegistry(Protocol):
    def register(self, schema: str, resolver: str, revocable: bool) -> bytes:
        ...


def schema_uid(schema: str, resolver: str, revocable: bool) -> bytes:
    """EAS schema UID: keccak256(abi.encodePacked(schema, resolver, revocable))."""
    packed = (
        schema.encode("utf-8")
        + bytes.fromhex(to_address(resolver)[2:])
        + (b"\x01" if revocable else b"\x00")
    )
    return keccak(packed)


class LocalSchemaRegistry:
    """In-process schema registry. Computes the same UIDs as the EAS contract."""

    def __init__(self):
        self.schemas = {}

    def register(self, schema: str, resolver: str, revocable: bool) -> bytes:
        uid = schema_uid(schema, resolver, revocable)
        self.schemas.setdefault(
            uid, {"schema": schema, "resolver": to_address(resolver), "revocable": revocable}
        )
        return uid

    def get_schema(self, uid: bytes):
        return self.schemas.get(uid)


def encode_payload(subject_id: int, category: str, xp_value: int) -> bytes:
    return encode(SCHEMA_TYPES, [subject_id, category, xp_value])


def decode_payload(payload: bytes) -> Tuple[int, str, int]:
    if isinstance(payload, str):
        try:
            payload = bytes.fromhex(payload.removeprefix("0x"))
        except ValueError as e:
            raise DecodeError(f"Attestation payload is not hex: {e}") from e
    try:
        subject_id, category, xp_value = decode(SCHEMA_TYPES, bytes(payload))
    except (DecodingError, TypeError, ValueError, OverflowError) as e:
        raise DecodeError(f"Malformed attestation payload: {e}") from e
    return int(subject_id), str(category), int(xp_value)


class AttestationGate:
    def __init__(self, registry: SkillRegistry, address: str, schema_registry: SchemaRegistry):
        self.registry = registry
        self.address = to_address(address)
        self.schema_registry = schema_registry
        self.schema = SCHEMA
        self.schema_uid = schema_registry.register(SCHEMA, self.address, True)
        logger.info("Attestation schema registered: uid=0x%s", self.schema_uid.hex())

    def on_attest(self, attestation_id, schema_id, recipient, payload) -> bool:
        subject_id, category, xp_value = decode_payload(payload)
        event: Optional[LevelUp] = self.registry.add_xp(self.address, subject_id, category, xp_value)
        logger.info(
            "Attestation %s applied: subject=%d %s +%d%s",
            _hex(attestation_id), subject_id, category, xp_value,
            f" (level {event.new_level})" if event else "",
        )
        return True

    def on_revoke(self, attestation_id, schema_id, recipient, payload) -> bool:
        # Granted XP is kept on revocation.
        logger.info("Attestation %s revoked; XP unchanged", _hex(attestation_id))
        return True


def _hex(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)
