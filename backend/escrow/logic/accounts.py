"""Account views handed to a program for the duration of one invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from escrow.logic.exceptions import NotEnoughAccountsError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from escrow.logic.address import Address


@dataclass
class AccountInfo:
    """
    Mutable working copy of one ledger account.

    The runtime builds these from its store before an invocation and writes
    them back only if the invocation succeeds, so handlers may mutate
    lamports and data freely after their last validation check.
    """

    key: Address
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: Address | None = None
    is_signer: bool = False
    is_writable: bool = False

    @property
    def is_empty(self) -> bool:
        """No data and no owner: not allocated yet, even if it already holds lamports."""
        return not self.data and self.owner is None


@dataclass(frozen=True)
class AccountMeta:
    """Caller-declared account reference in an instruction."""

    key: Address
    is_signer: bool = False
    is_writable: bool = False


class AccountCursor:
    """Walks the ordered account list an operation was invoked with."""

    def __init__(self, accounts: Sequence[AccountInfo]) -> None:
        self._accounts = accounts
        self._index = 0

    def next(self) -> AccountInfo:
        if self._index >= len(self._accounts):
            raise NotEnoughAccountsError(f"expected at least {self._index + 1} accounts, got {len(self._accounts)}")
        account = self._accounts[self._index]
        self._index += 1
        return account

    def remaining(self) -> list[AccountInfo]:
        return list(self._accounts[self._index :])
