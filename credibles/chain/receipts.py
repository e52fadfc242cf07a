# credibles/chain/receipts.py
"""
Read-only receipt lookups used by payment verification.
"""
import logging

from web3.exceptions import TransactionNotFound

from .wallet import get_w3

logger = logging.getLogger(__name__)


class Web3ReceiptSource:
    def __init__(self, w3=None):
        self._w3 = w3

    @property
    def w3(self):
        if self._w3 is None:
            self._w3 = get_w3()
        return self._w3

    def get_receipt(self, tx_hash: str):
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            logger.info("No receipt for %s", tx_hash)
            return None
