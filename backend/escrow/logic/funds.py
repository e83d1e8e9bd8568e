"""
Value movement and fee arithmetic.

Deposits into custody go through the runtime's native transfer and fail
when the payer is short. Releases out of program-owned custody adjust
balances directly with saturating arithmetic: a debit larger than the
custodial balance clamps the custody to zero instead of failing, and the
recipient is still credited the full requested amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from escrow.logic.exceptions import ArithmeticOverflowError
from escrow.logic.records import U64_MAX

if TYPE_CHECKING:
    from collections.abc import Sequence

    from escrow.logic.accounts import AccountInfo
    from escrow.logic.runtime import Runtime


def saturating_sub(a: int, b: int) -> int:
    return max(a - b, 0)


def saturating_add(a: int, b: int) -> int:
    return min(a + b, U64_MAX)


def checked_mul(a: int, b: int) -> int:
    product = a * b
    if product > U64_MAX:
        raise ArithmeticOverflowError(f"{a} * {b} exceeds u64")
    return product


def split_fee(total: int, fee_percent: int) -> tuple[int, int]:
    """Return (fee, remainder) with fee = total * percent / 100, truncated."""
    fee = checked_mul(total, fee_percent) // 100
    return fee, total - fee


@dataclass(frozen=True)
class PrizeSplit:
    total_prize: int
    platform_fee: int
    winner_prize: int


def room_prize(entry_fee: int, player_count: int, fee_percent: int) -> PrizeSplit:
    total = checked_mul(entry_fee, player_count)
    fee, winner_prize = split_fee(total, fee_percent)
    return PrizeSplit(total_prize=total, platform_fee=fee, winner_prize=winner_prize)


@dataclass(frozen=True)
class CashOutSplit:
    current_value: int
    platform_fee: int
    payout: int


def cash_out_split(current_value: int, fee_percent: int) -> CashOutSplit:
    fee, payout = split_fee(current_value, fee_percent)
    return CashOutSplit(current_value=current_value, platform_fee=fee, payout=payout)


def deposit(
    runtime: Runtime,
    payer: AccountInfo,
    custody: AccountInfo,
    amount: int,
) -> None:
    """Move amount from a signing payer into custody via the native transfer."""
    runtime.transfer(payer, custody, amount)


def release(custody: AccountInfo, recipient: AccountInfo, amount: int) -> None:
    """Debit program-owned custody and credit recipient, both saturating."""
    custody.lamports = saturating_sub(custody.lamports, amount)
    recipient.lamports = saturating_add(recipient.lamports, amount)


def refund_signed(
    runtime: Runtime,
    custody: AccountInfo,
    recipient: AccountInfo,
    amount: int,
    signer_seeds: Sequence[bytes],
) -> int:
    """
    Return up to amount from a program-derived custody account.

    The amount is clamped to the custodial balance before the transfer, so a
    short custody refunds what it has rather than failing. Returns the
    amount actually moved.
    """
    moved = min(amount, custody.lamports)
    if moved:
        runtime.transfer(custody, recipient, moved, signer_seeds=[signer_seeds])
    return moved


def drain(custody: AccountInfo, recipient: AccountInfo) -> int:
    """Move the entire custodial balance to recipient and zero the custody."""
    remaining = custody.lamports
    custody.lamports = 0
    recipient.lamports = saturating_add(recipient.lamports, remaining)
    return remaining
