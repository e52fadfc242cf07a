"""
Client-side transaction lifecycle.

Pattern: submit tx -> wait for receipt -> classify. A receipt that does not
arrive in time leaves the transaction UNCONFIRMED, not failed: callers must
re-query the same hash with check_status() and never submit it again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from web3.exceptions import TimeExhausted, TransactionNotFound

from ..config import RECEIPT_TIMEOUT

logger = logging.getLogger(__name__)


class TxStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    UNCONFIRMED = "unconfirmed"


@dataclass
class TxResult:
    tx_hash: str
    status: TxStatus
    receipt: Optional[Any] = None

    @property
    def final(self) -> bool:
        return self.status in (TxStatus.CONFIRMED, TxStatus.REVERTED)


def _classify(tx_hash: str, receipt) -> TxResult:
    if receipt["status"] == 1:
        return TxResult(tx_hash, TxStatus.CONFIRMED, receipt)
    logger.warning("Tx REVERTED: tx=%s gasUsed=%s", tx_hash, receipt.get("gasUsed"))
    return TxResult(tx_hash, TxStatus.REVERTED, receipt)


def wait_for_confirmation(w3, tx_hash: str, timeout: int = RECEIPT_TIMEOUT) -> TxResult:
    try:
        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    except TimeExhausted:
        logger.warning("Tx %s not confirmed after %ss; re-query, do not resubmit", tx_hash, timeout)
        return TxResult(tx_hash, TxStatus.UNCONFIRMED)
    return _classify(tx_hash, receipt)


def check_status(w3, tx_hash: str) -> TxResult:
    """Non-blocking re-query of a previously submitted transaction."""
    try:
        receipt = w3.eth.get_transaction_receipt(tx_hash)
    except TransactionNotFound:
        return TxResult(tx_hash, TxStatus.SUBMITTED)
    if receipt is None:
        return TxResult(tx_hash, TxStatus.SUBMITTED)
    return _classify(tx_hash, receipt)
