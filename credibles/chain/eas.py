"""
Ethereum Attestation Service access: schema registration and attestation
event polling. Both are thin web3.py wrappers so the domain side only sees
SchemaRegistry.register() and a list of AttestationEvent records.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from web3 import Web3

from ..attestation import schema_uid
from ..config import EAS_ADDRESS, SCHEMA_REGISTRY_ADDRESS
from .tx import TxStatus, wait_for_confirmation
from .wallet import get_account, get_w3, sign_and_send

logger = logging.getLogger(__name__)

ATTESTED_TOPIC = Web3.keccak(text="Attested(address,address,bytes32,bytes32)")
REVOKED_TOPIC = Web3.keccak(text="Revoked(address,address,bytes32,bytes32)")

SCHEMA_REGISTRY_ABI = [
    {
        "type": "function",
        "name": "register",
        "inputs": [
            {"name": "schema", "type": "string"},
            {"name": "resolver", "type": "address"},
            {"name": "revocable", "type": "bool"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "getSchema",
        "inputs": [{"name": "uid", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "uid", "type": "bytes32"},
                    {"name": "resolver", "type": "address"},
                    {"name": "revocable", "type": "bool"},
                    {"name": "schema", "type": "string"},
                ],
            }
        ],
        "stateMutability": "view",
    },
]

EAS_ABI = [
    {
        "type": "function",
        "name": "getAttestation",
        "inputs": [{"name": "uid", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "uid", "type": "bytes32"},
                    {"name": "schema", "type": "bytes32"},
                    {"name": "time", "type": "uint64"},
                    {"name": "expirationTime", "type": "uint64"},
                    {"name": "revocationTime", "type": "uint64"},
                    {"name": "refUID", "type": "bytes32"},
                    {"name": "recipient", "type": "address"},
                    {"name": "attester", "type": "address"},
                    {"name": "revocable", "type": "bool"},
                    {"name": "data", "type": "bytes"},
                ],
            }
        ],
        "stateMutability": "view",
    },
]

_ZERO_UID = b"\x00" * 32


@dataclass(frozen=True)
class AttestationEvent:
    kind: str  # "attested" | "revoked"
    uid: bytes
    schema: bytes
    recipient: str
    attester: str
    data: bytes
    block_number: int


class Web3SchemaRegistry:
    """Registers schemas with the on-chain EAS SchemaRegistry."""

    def __init__(self, w3=None, address: str = SCHEMA_REGISTRY_ADDRESS):
        self.w3 = w3 or get_w3()
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(address), abi=SCHEMA_REGISTRY_ABI
        )

    def register(self, schema: str, resolver: str, revocable: bool) -> bytes:
        uid = schema_uid(schema, resolver, revocable)
        record = self.contract.functions.getSchema(uid).call()
        if bytes(record[0]) != _ZERO_UID:
            logger.info("Schema already registered: 0x%s", uid.hex())
            return uid

        tx = self.contract.functions.register(
            schema, Web3.to_checksum_address(resolver), revocable
        ).build_transaction({
            "from": get_account().address,
            "gas": 300_000,
        })
        tx_hash = sign_and_send(tx, self.w3)
        logger.info("Submitted schema registration: tx=%s", tx_hash)

        result = wait_for_confirmation(self.w3, tx_hash)
        if result.status == TxStatus.UNCONFIRMED:
            raise RuntimeError(
                f"Schema registration submitted ({tx_hash}) but not confirmed yet; "
                "re-check the transaction instead of registering again"
            )
        if result.status == TxStatus.REVERTED:
            raise RuntimeError(f"Schema registration reverted: {tx_hash}")
        return uid


class EasAttestationSource:
    """Polls the EAS contract for attestations made against one schema."""

    def __init__(self, schema: bytes, w3=None, address: str = EAS_ADDRESS):
        self.w3 = w3 or get_w3()
        self.schema = bytes(schema)
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(address), abi=EAS_ABI
        )

    def latest_block(self) -> int:
        return self.w3.eth.block_number

    def fetch(self, from_block: int, to_block: int) -> List[AttestationEvent]:
        logs = self.w3.eth.get_logs({
            "address": self.contract.address,
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": [[ATTESTED_TOPIC, REVOKED_TOPIC], None, None, "0x" + self.schema.hex()],
        })

        events = []
        for log in logs:
            kind = "attested" if bytes(log["topics"][0]) == bytes(ATTESTED_TOPIC) else "revoked"
            uid = bytes(log["data"])[:32]
            try:
                att = self.contract.functions.getAttestation(uid).call()
            except Exception as e:
                logger.warning("Failed to read attestation 0x%s: %s", uid.hex(), e)
                continue
            events.append(AttestationEvent(
                kind=kind,
                uid=uid,
                schema=bytes(att[1]),
                recipient=att[6],
                attester=att[7],
                data=bytes(att[9]),
                block_number=int(log["blockNumber"]),
            ))
        return events
