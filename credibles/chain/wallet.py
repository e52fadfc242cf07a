# credibles/chain/wallet.py
import logging

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware
from eth_account import Account

from ..config import RPC_URL, SIGNER_PRIVATE_KEY

logger = logging.getLogger(__name__)

_w3 = None
_account = None


def get_w3() -> Web3:
    global _w3
    if _w3 is None:
        _w3 = Web3(Web3.HTTPProvider(RPC_URL))
        # Base is an OP-stack chain; its extraData is not the standard 32 bytes
        _w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return _w3


def get_account():
    global _account
    if _account is None:
        if not SIGNER_PRIVATE_KEY:
            raise RuntimeError("SIGNER_PRIVATE_KEY not set")
        _account = Account.from_key(SIGNER_PRIVATE_KEY)
    return _account


def sign_and_send(tx: dict, w3: Web3 = None) -> str:
    w3 = w3 or get_w3()
    account = get_account()
    tx = dict(tx)
    tx.pop("gasPrice", None)

    try:
        base_fee = w3.eth.get_block("latest").baseFeePerGas
        priority = w3.eth.max_priority_fee * 150 // 100
        tx["type"] = 2
        tx["maxFeePerGas"] = base_fee * 2 + priority
        tx["maxPriorityFeePerGas"] = priority
    except Exception as e:
        logger.warning("EIP-1559 fee fetch failed, using legacy gasPrice: %s", e)
        tx["gasPrice"] = w3.eth.gas_price * 120 // 100

    tx["nonce"] = w3.eth.get_transaction_count(account.address, "pending")
    tx["chainId"] = w3.eth.chain_id

    if "gas" not in tx:
        try:
            tx["gas"] = w3.eth.estimate_gas(tx)
        except Exception as e:
            logger.warning("Gas estimation failed, using default: %s", e)
            tx["gas"] = 250_000

    logger.info("Signing tx: to=%s nonce=%s", tx.get("to"), tx["nonce"])
    signed = account.sign_transaction(tx)
    return w3.eth.send_raw_transaction(signed.raw_transaction).hex()
