# credibles/util.py
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def to_address(value: str) -> str:
    """
    Canonical (checksummed) form of an account address.
    Raises ValueError for anything that is not a 20-byte hex address.
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value)


def email_domain(email: str) -> str:
    """Lower-cased domain part of an email address, or '' if there is none."""
    if not isinstance(email, str) or email.count("@") != 1:
        return ""
    return email.split("@")[1].strip().lower()
