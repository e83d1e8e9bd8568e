"""Typed domain exceptions for escrow ledger rule violations.

Every rejection raised by the programs is a subclass of LedgerError and
carries a stable ErrorCode. The runtime catches LedgerError at the
invocation boundary, discards all account changes, and reports the code.
Anything else escaping a handler is a bug and propagates unchanged.
"""

from enum import StrEnum
from typing import ClassVar


class ErrorCode(StrEnum):
    MISSING_SIGNATURE = "missing_signature"
    UNAUTHORIZED = "unauthorized"
    ADDRESS_MISMATCH = "address_mismatch"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_STATE = "invalid_state"
    MALFORMED_STORAGE = "malformed_storage"
    MALFORMED_INSTRUCTION = "malformed_instruction"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ALREADY_INITIALIZED = "already_initialized"
    INVALID_FEE_ACCOUNT = "invalid_fee_account"


class LedgerError(Exception):
    """Base exception for every invocation failure."""

    code: ClassVar[ErrorCode]


class MissingSignatureError(LedgerError):
    """Account that must authorize this invocation did not sign it."""

    code = ErrorCode.MISSING_SIGNATURE


class UnauthorizedError(LedgerError):
    """Caller is not the stored authority for this operation."""

    code = ErrorCode.UNAUTHORIZED


class AddressMismatchError(LedgerError):
    """Supplied account does not match the derived or expected address."""

    code = ErrorCode.ADDRESS_MISMATCH


class InvalidArgumentError(LedgerError):
    """Bounds, duplicate, or capacity violation in caller-supplied values."""

    code = ErrorCode.INVALID_ARGUMENT


class NotEnoughAccountsError(InvalidArgumentError):
    """Fewer accounts were supplied than the operation requires."""


class ArithmeticOverflowError(InvalidArgumentError):
    """A value computation would leave the unsigned 64-bit range."""


class ReadonlyAccountModifiedError(InvalidArgumentError):
    """An account passed without the writable flag was changed by the handler."""


class InvalidStateError(LedgerError):
    """Operation is not legal in the record's current lifecycle phase."""

    code = ErrorCode.INVALID_STATE


class MalformedStorageError(LedgerError):
    """Stored record bytes cannot be decoded."""

    code = ErrorCode.MALFORMED_STORAGE


class MalformedInstructionError(LedgerError):
    """Instruction buffer is truncated, has trailing bytes, or an unknown tag."""

    code = ErrorCode.MALFORMED_INSTRUCTION


class CapacityExceededError(LedgerError):
    """Encoded record does not fit its storage slot."""

    code = ErrorCode.CAPACITY_EXCEEDED


class InsufficientFundsError(LedgerError):
    """Balance or recorded value is too small for the requested movement."""

    code = ErrorCode.INSUFFICIENT_FUNDS


class AlreadyInitializedError(LedgerError):
    """Target record or account already exists."""

    code = ErrorCode.ALREADY_INITIALIZED


class InvalidFeeAccountError(LedgerError):
    """Fee recipient is not the configured platform wallet."""

    code = ErrorCode.INVALID_FEE_ACCOUNT
