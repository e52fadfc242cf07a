"""Domain errors for the skill ledger.

Every error aborts the operation that raised it; the ledger rolls back any
writes made before the failure. The HTTP layer maps each class to a status
code via ``status_code``.
"""
from __future__ import annotations


class CrediblesError(Exception):
    code = "CREDIBLES_ERROR"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(CrediblesError):
    """Referenced subject/token does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class AlreadyExists(CrediblesError):
    code = "ALREADY_EXISTS"
    status_code = 409


class InvalidCategory(CrediblesError):
    """Category string outside the fixed set (exact, case-sensitive)."""

    code = "INVALID_CATEGORY"
    status_code = 400


class Unauthorized(CrediblesError):
    """Caller does not hold the role the operation requires."""

    code = "UNAUTHORIZED"
    status_code = 403


class SoulboundViolation(CrediblesError):
    code = "SOULBOUND_VIOLATION"
    status_code = 409


class PaymentInvalid(CrediblesError):
    """Missing, failed, misdirected or unmatched payment."""

    code = "PAYMENT_INVALID"
    status_code = 403


class DecodeError(CrediblesError):
    code = "DECODE_ERROR"
    status_code = 400


class XPOverflow(CrediblesError):
    """XP amount or running total beyond what a counter can hold."""

    code = "XP_OVERFLOW"
    status_code = 400
