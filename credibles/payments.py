"""
Pay-to-unlock access to a talent's contact details.

AccessPaymentGate keeps the ledger side (fixed price, split between the
talent and the platform, withdrawable balances). PaymentVerifier is the
off-chain check run by the HTTP layer: given a transaction hash it reads the
receipt from the payment gateway's chain and decides whether that payment
unlocks a given beneficiary. It only ever reads.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import ACCESS_PRICE, PLATFORM_FEE_BPS
from .db import atomic
from .errors import NotFound, PaymentInvalid
from .registry import SkillRegistry
from .util import ZERO_ADDRESS, to_address

logger = logging.getLogger(__name__)

ACCESS_PAID_SIGNATURE = "AccessPaid(address,address,uint256)"
ACCESS_PAID_TOPIC = keccak(text=ACCESS_PAID_SIGNATURE)
PAY_FOR_ACCESS_SIGNATURE = "payForAccess(address)"


@dataclass(frozen=True)
class AccessPaid:
    payer: str
    student: str
    amount: int
    platform_fee: int


def pay_for_access_calldata(target: str) -> str:
    """Hex calldata for payForAccess(target), as a wallet would submit it."""
    selector = function_signature_to_4byte_selector(PAY_FOR_ACCESS_SIGNATURE)
    return "0x" + (selector + encode(["address"], [to_address(target)])).hex()


class AccessPaymentGate:
    def __init__(
        self,
        db: Session,
        registry: SkillRegistry,
        price: int = ACCESS_PRICE,
        platform_fee_bps: int = PLATFORM_FEE_BPS,
    ):
        if not 0 <= platform_fee_bps <= 10_000:
            raise ValueError("platform_fee_bps must be within 0..10000")
        self.db = db
        self.registry = registry
        self.price = price
        self.platform_fee_bps = platform_fee_bps

    def pay_for_access(self, payer: str, target: str, amount: int) -> AccessPaid:
        payer = to_address(payer)
        target = to_address(target)
        if target == ZERO_ADDRESS or self.registry.balance_of(target) == 0:
            raise NotFound(f"No talent profile for {target}")
        if amount != self.price:
            raise PaymentInvalid(f"Access costs {self.price}, got {amount}")

        fee = amount * self.platform_fee_bps // 10_000
        with atomic(self.db):
            self.db.execute(
                text(
                    "INSERT INTO access_payment (payer, student, amount, platform_fee) "
                    "VALUES (:p, :s, :a, :f)"
                ),
                {"p": payer, "s": target, "a": amount, "f": fee},
            )
            self._credit(target, amount - fee)

        logger.info("AccessPaid: payer=%s student=%s amount=%d fee=%d", payer, target, amount, fee)
        return AccessPaid(payer=payer, student=target, amount=amount, platform_fee=fee)

    def _credit(self, student: str, delta: int):
        updated = self.db.execute(
            text("UPDATE student_balance SET balance = balance + :d WHERE student = :s"),
            {"s": student, "d": delta},
        ).rowcount
        if not updated:
            self.db.execute(
                text("INSERT INTO student_balance (student, balance) VALUES (:s, :d)"),
                {"s": student, "d": delta},
            )

    def student_balance(self, address: str) -> int:
        row = self.db.execute(
            text("SELECT balance FROM student_balance WHERE student = :s"),
            {"s": to_address(address)},
        ).fetchone()
        return int(row[0]) if row else 0

    def withdraw_student(self, caller: str) -> int:
        caller = to_address(caller)
        balance = self.student_balance(caller)
        if balance <= 0:
            raise PaymentInvalid("No balance to withdraw")
        with atomic(self.db):
            self.db.execute(
                text("UPDATE student_balance SET balance = 0 WHERE student = :s"), {"s": caller}
            )
        logger.info("Student withdrawal: %s amount=%d", caller, balance)
        return balance

    def payments_for(self, student: str) -> List[AccessPaid]:
        rows = self.db.execute(
            text(
                "SELECT payer, student, amount, platform_fee FROM access_payment "
                "WHERE student = :s ORDER BY id"
            ),
            {"s": to_address(student)},
        ).fetchall()
        return [AccessPaid(r[0], r[1], int(r[2]), int(r[3])) for r in rows]


# ────────────────────────────────────────────────────────────
# Off-chain verification
# ────────────────────────────────────────────────────────────

class ReceiptSource(Protocol):
    def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Receipt for tx_hash, or None if the chain does not know it."""
        ...


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    return bytes(value)


def _same_address(a, b) -> bool:
    return bool(a) and bool(b) and str(a).lower() == str(b).lower()


def decode_access_paid(log: Mapping[str, Any]) -> Optional[dict]:
    """Decode an AccessPaid log; None if the log is some other event."""
    topics = [_as_bytes(t) for t in log.get("topics", [])]
    if len(topics) != 3 or topics[0] != ACCESS_PAID_TOPIC:
        return None
    payer = to_address("0x" + topics[1][-20:].hex())
    student = to_address("0x" + topics[2][-20:].hex())
    (timestamp,) = decode(["uint256"], _as_bytes(log.get("data", b"")))
    return {"payer": payer, "student": student, "timestamp": int(timestamp)}


class PaymentVerifier:
    def __init__(self, source: ReceiptSource, gateway_address: str):
        self.source = source
        self.gateway_address = to_address(gateway_address)

    def verify(self, tx_hash: str, expected_beneficiary: str) -> bool:
        """
        True only if the transaction succeeded, was sent to the gateway, and
        the gateway emitted AccessPaid naming expected_beneficiary.
        Fails closed on anything unexpected.
        """
        try:
            receipt = self.source.get_receipt(tx_hash)
        except Exception as e:
            logger.warning("Receipt lookup failed for %s: %s", tx_hash, e)
            return False

        if not receipt:
            logger.info("Payment %s: no receipt", tx_hash)
            return False
        if receipt.get("status") != 1:
            logger.info("Payment %s: transaction failed", tx_hash)
            return False
        if not _same_address(receipt.get("to"), self.gateway_address):
            logger.info("Payment %s: sent to %s, not the gateway", tx_hash, receipt.get("to"))
            return False

        for log in receipt.get("logs", []):
            if not _same_address(log.get("address"), self.gateway_address):
                continue
            try:
                event = decode_access_paid(log)
            except Exception as e:
                logger.debug("Skipping undecodable gateway log in %s: %s", tx_hash, e)
                continue
            if event is None:
                continue
            # First AccessPaid decides, as the gateway emits one per call.
            return _same_address(event["student"], expected_beneficiary)

        logger.info("Payment %s: no AccessPaid event", tx_hash)
        return False

    def require(self, tx_hash: str, expected_beneficiary: str):
        if not self.verify(tx_hash, expected_beneficiary):
            raise PaymentInvalid("Invalid payment transaction")
