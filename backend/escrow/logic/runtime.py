"""Services the programs consume from the surrounding ledger runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from escrow.logic.accounts import AccountInfo
    from escrow.logic.address import Address
    from escrow.logic.settings import EscrowSettings


class Runtime(Protocol):
    """
    Narrow interface to the ledger: rent, clock, and native transfers.

    signer_seeds lists the seed sets (bump included) the calling program
    presents to prove authority over program-derived source accounts.
    """

    def minimum_balance(self, space: int) -> int: ...

    def unix_timestamp(self) -> int: ...

    def create_account(
        self,
        payer: AccountInfo,
        new_account: AccountInfo,
        lamports: int,
        space: int,
        owner: Address,
        signer_seeds: Sequence[Sequence[bytes]] = (),
    ) -> None: ...

    def transfer(
        self,
        source: AccountInfo,
        destination: AccountInfo,
        amount: int,
        signer_seeds: Sequence[Sequence[bytes]] = (),
    ) -> None: ...


@dataclass(frozen=True)
class ProgramContext:
    """What a handler sees besides its accounts: its own id, the runtime, and settings."""

    program_id: Address
    runtime: Runtime
    settings: EscrowSettings
