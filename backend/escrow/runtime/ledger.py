"""
In-memory ledger runtime.

Holds the account store and plays the part of the surrounding chain for the
two programs: it prices rent, keeps the clock, performs native transfers and
account creation, and runs each submitted invocation all-or-nothing. The
programs only ever see working copies of the accounts listed in an
invocation; the writable copies are written back if, and only if, the handler
returns without raising and leaves every read-only copy untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from escrow.logic.accounts import AccountInfo
from escrow.logic.address import create_program_address
from escrow.logic.exceptions import (
    AlreadyInitializedError,
    ErrorCode,
    InsufficientFundsError,
    InvalidArgumentError,
    LedgerError,
    MissingSignatureError,
    ReadonlyAccountModifiedError,
)
from escrow.logic.funds import saturating_sub
from escrow.logic.records import U64_MAX

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from escrow.logic.accounts import AccountMeta
    from escrow.logic.address import Address
    from escrow.messaging.router import Program
    from escrow.runtime.journal import InvocationJournal

logger = structlog.get_logger()

# Rent parameters of the reference chain: an account is exempt once it holds
# two years of rent for its data plus the fixed per-account overhead.
ACCOUNT_STORAGE_OVERHEAD = 128
DEFAULT_LAMPORTS_PER_BYTE_YEAR = 3480
EXEMPTION_YEARS = 2


class UnknownProgramError(LookupError):
    """No program with the requested id or name is deployed on this ledger."""


class InvocationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error_code: ErrorCode | None = None
    message: str | None = None


@dataclass
class StoredAccount:
    lamports: int
    data: bytes
    owner: Address | None


class InMemoryLedger:
    def __init__(
        self,
        programs: Iterable[Program],
        *,
        lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR,
        genesis_timestamp: int = 0,
        journal: InvocationJournal | None = None,
    ) -> None:
        self._programs: dict[Address, Program] = {}
        for program in programs:
            if program.program_id in self._programs:
                raise ValueError(f"program id {program.program_id} deployed twice")
            self._programs[program.program_id] = program
        self._accounts: dict[Address, StoredAccount] = {}
        self._lamports_per_byte_year = lamports_per_byte_year
        self._timestamp = genesis_timestamp
        self._journal = journal
        self._invoking: Address | None = None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def journal(self) -> InvocationJournal | None:
        return self._journal

    @property
    def programs(self) -> tuple[Program, ...]:
        return tuple(self._programs.values())

    def program(self, id_or_name: Address | str) -> Program:
        for program in self._programs.values():
            if id_or_name in (program.program_id, program.name):
                return program
        raise UnknownProgramError(f"no program {id_or_name!s} on this ledger")

    def get_account(self, address: Address) -> AccountInfo | None:
        """A detached snapshot of a stored account, or None if it does not exist."""
        stored = self._accounts.get(address)
        if stored is None:
            return None
        return AccountInfo(key=address, lamports=stored.lamports, data=bytearray(stored.data), owner=stored.owner)

    def balance(self, address: Address) -> int:
        stored = self._accounts.get(address)
        return stored.lamports if stored is not None else 0

    # ------------------------------------------------------------------
    # Clock and faucet
    # ------------------------------------------------------------------

    def set_clock(self, timestamp: int) -> None:
        self._timestamp = timestamp

    def advance_clock(self, seconds: int) -> None:
        self._timestamp += seconds

    def airdrop(self, address: Address, lamports: int) -> None:
        """Mint lamports into an account, creating it as a plain wallet if needed."""
        if lamports <= 0:
            raise ValueError("airdrop amount must be positive")
        stored = self._accounts.setdefault(address, StoredAccount(lamports=0, data=b"", owner=None))
        stored.lamports = min(stored.lamports + lamports, U64_MAX)
        if self._journal is not None:
            self._journal.record_airdrop(address, lamports, self._timestamp)
        logger.debug("airdrop", address=str(address), lamports=lamports, balance=stored.lamports)

    # ------------------------------------------------------------------
    # Runtime services consumed by programs
    # ------------------------------------------------------------------

    def minimum_balance(self, space: int) -> int:
        return (ACCOUNT_STORAGE_OVERHEAD + space) * self._lamports_per_byte_year * EXEMPTION_YEARS

    def unix_timestamp(self) -> int:
        return self._timestamp

    def _is_authorized(self, account: AccountInfo, signer_seeds: Sequence[Sequence[bytes]]) -> bool:
        if account.is_signer:
            return True
        if self._invoking is None:
            return False
        return any(create_program_address(seeds, self._invoking) == account.key for seeds in signer_seeds)

    def create_account(
        self,
        payer: AccountInfo,
        new_account: AccountInfo,
        lamports: int,
        space: int,
        owner: Address,
        signer_seeds: Sequence[Sequence[bytes]] = (),
    ) -> None:
        if not payer.is_signer:
            raise MissingSignatureError(f"payer {payer.key} must sign account creation")
        if not self._is_authorized(new_account, signer_seeds):
            raise MissingSignatureError(f"new account {new_account.key} must sign or be derived by the caller")
        if not new_account.is_empty:
            raise AlreadyInitializedError(f"account {new_account.key} already exists")
        # a pre-funded address is only topped up to the requested balance
        due = saturating_sub(lamports, new_account.lamports)
        if payer.lamports < due:
            raise InsufficientFundsError(f"payer {payer.key} holds {payer.lamports}, needs {due}")
        payer.lamports -= due
        new_account.lamports += due
        new_account.data = bytearray(space)
        new_account.owner = owner

    def transfer(
        self,
        source: AccountInfo,
        destination: AccountInfo,
        amount: int,
        signer_seeds: Sequence[Sequence[bytes]] = (),
    ) -> None:
        if not self._is_authorized(source, signer_seeds):
            raise MissingSignatureError(f"transfer source {source.key} must sign or be derived by the caller")
        if source.lamports < amount:
            raise InsufficientFundsError(f"{source.key} holds {source.lamports}, cannot send {amount}")
        if destination.lamports + amount > U64_MAX:
            raise InvalidArgumentError(f"{destination.key} balance would overflow")
        source.lamports -= amount
        destination.lamports += amount

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def _working_copies(self, metas: Sequence[AccountMeta]) -> list[AccountInfo]:
        """One shared working copy per distinct address, flags merged across repeats."""
        by_key: dict[Address, AccountInfo] = {}
        ordered: list[AccountInfo] = []
        for meta in metas:
            info = by_key.get(meta.key)
            if info is None:
                stored = self._accounts.get(meta.key)
                info = AccountInfo(key=meta.key)
                if stored is not None:
                    info.lamports = stored.lamports
                    info.data = bytearray(stored.data)
                    info.owner = stored.owner
                by_key[meta.key] = info
            info.is_signer = info.is_signer or meta.is_signer
            info.is_writable = info.is_writable or meta.is_writable
            ordered.append(info)
        return ordered

    def _check_readonly(self, infos: Iterable[AccountInfo]) -> None:
        for info in {id(i): i for i in infos}.values():
            if info.is_writable:
                continue
            stored = self._accounts.get(info.key, StoredAccount(lamports=0, data=b"", owner=None))
            if (info.lamports, bytes(info.data), info.owner) != (stored.lamports, stored.data, stored.owner):
                raise ReadonlyAccountModifiedError(f"account {info.key} was modified but not passed as writable")

    def _commit(self, infos: Iterable[AccountInfo]) -> None:
        for info in {id(i): i for i in infos}.values():
            if not info.is_writable:
                continue
            if info.lamports == 0:
                self._accounts.pop(info.key, None)
            else:
                self._accounts[info.key] = StoredAccount(
                    lamports=info.lamports, data=bytes(info.data), owner=info.owner
                )

    def submit(self, program_id: Address, accounts: Sequence[AccountMeta], data: bytes) -> InvocationResult:
        """
        Run one instruction against the named program.

        Returns a failed InvocationResult, with the store untouched, when the
        program rejects the invocation. Raises UnknownProgramError when no
        such program is deployed.
        """
        program = self._programs.get(program_id)
        if program is None:
            raise UnknownProgramError(f"no program {program_id} on this ledger")

        infos = self._working_copies(accounts)
        self._invoking = program_id
        try:
            program.process(self, infos, bytes(data))
            self._check_readonly(infos)
        except LedgerError as e:
            result = InvocationResult(ok=False, error_code=e.code, message=str(e))
            logger.warning("invocation rejected", program=program.name, error_code=e.code, reason=str(e))
        else:
            self._commit(infos)
            result = InvocationResult(ok=True)
        finally:
            self._invoking = None

        if self._journal is not None:
            self._journal.record_invocation(program_id, accounts, data, self._timestamp, result.error_code)
        return result
