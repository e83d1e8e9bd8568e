"""Authorization checks shared by both programs.

Each guard raises a LedgerError subclass and never mutates anything, so
handlers can run every guard before their first write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from escrow.logic.address import find_program_address
from escrow.logic.exceptions import (
    AddressMismatchError,
    InvalidFeeAccountError,
    MissingSignatureError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from escrow.logic.accounts import AccountInfo
    from escrow.logic.address import Address


def require_signer(account: AccountInfo, role: str) -> None:
    if not account.is_signer:
        raise MissingSignatureError(f"{role} {account.key} must sign")


def require_derived(account: AccountInfo, seeds: Sequence[bytes], program_id: Address, role: str) -> int:
    """Re-derive the expected address from seeds and return its bump byte."""
    expected, bump = find_program_address(seeds, program_id)
    if account.key != expected:
        raise AddressMismatchError(f"{role} account {account.key} does not match derived address {expected}")
    return bump


def require_owner(account: AccountInfo, program_id: Address, role: str) -> None:
    if account.owner != program_id:
        raise AddressMismatchError(f"{role} account {account.key} is not owned by program {program_id}")


def require_authority(account: AccountInfo, authority: Address) -> None:
    """Signer must be the stored server authority."""
    require_signer(account, "authority")
    if account.key != authority:
        raise UnauthorizedError(f"{account.key} is not the server authority")


def require_fee_account(account: AccountInfo, platform_wallet: Address) -> None:
    if account.key != platform_wallet:
        raise InvalidFeeAccountError(f"fee account {account.key} is not the platform wallet {platform_wallet}")
