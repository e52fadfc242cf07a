from unittest.mock import MagicMock

from web3.exceptions import TimeExhausted, TransactionNotFound

from credibles.chain.tx import TxStatus, check_status, wait_for_confirmation

TX = "0x" + "cd" * 32


def make_w3():
    return MagicMock()


def test_confirmed():
    w3 = make_w3()
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
    result = wait_for_confirmation(w3, TX, timeout=1)
    assert result.status == TxStatus.CONFIRMED
    assert result.final


def test_reverted():
    w3 = make_w3()
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "gasUsed": 21000}
    result = wait_for_confirmation(w3, TX, timeout=1)
    assert result.status == TxStatus.REVERTED
    assert result.final


def test_timeout_is_unconfirmed_and_never_resubmits():
    w3 = make_w3()
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timed out")
    result = wait_for_confirmation(w3, TX, timeout=1)
    assert result.status == TxStatus.UNCONFIRMED
    assert result.tx_hash == TX
    assert not result.final
    w3.eth.send_raw_transaction.assert_not_called()


def test_recheck_pending():
    w3 = make_w3()
    w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")
    assert check_status(w3, TX).status == TxStatus.SUBMITTED


def test_recheck_after_timeout_finds_receipt():
    w3 = make_w3()
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timed out")
    w3.eth.get_transaction_receipt.return_value = {"status": 1}
    assert wait_for_confirmation(w3, TX, timeout=1).status == TxStatus.UNCONFIRMED
    assert check_status(w3, TX).status == TxStatus.CONFIRMED
