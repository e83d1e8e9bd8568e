"""
Append-only journal of everything submitted to a ledger.

A journal captures airdrops and invocations in order, with the clock value
each one ran at and the outcome it produced. Serialised as one msgpack map
and stored gzip-compressed, it can be replayed against a fresh ledger to
check that the programs still reach the same outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from escrow.logic.accounts import AccountMeta
from escrow.logic.address import Address
from escrow.logic.exceptions import ErrorCode
from escrow.messaging.encoder import DecodeError, decode, encode

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from escrow.runtime.ledger import InMemoryLedger
    from shared.storage import JournalStorage

logger = structlog.get_logger()

JOURNAL_FORMAT_VERSION = 1


class JournalError(Exception):
    """A stored journal could not be decoded."""


class JournalAccountMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    is_signer: bool = False
    is_writable: bool = False


class InvocationEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["invoke"] = "invoke"
    program_id: str
    accounts: tuple[JournalAccountMeta, ...]
    data: bytes
    timestamp: int
    error_code: ErrorCode | None = None


class AirdropEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["airdrop"] = "airdrop"
    address: str
    lamports: int = Field(gt=0)
    timestamp: int


JournalEntry = Annotated[InvocationEntry | AirdropEntry, Field(discriminator="kind")]

_entries_adapter = TypeAdapter(list[JournalEntry])


class InvocationJournal:
    def __init__(self, entries: Sequence[InvocationEntry | AirdropEntry] = ()) -> None:
        self._entries: list[InvocationEntry | AirdropEntry] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[InvocationEntry | AirdropEntry, ...]:
        return tuple(self._entries)

    def record_invocation(
        self,
        program_id: Address,
        accounts: Sequence[AccountMeta],
        data: bytes,
        timestamp: int,
        error_code: ErrorCode | None,
    ) -> None:
        self._entries.append(
            InvocationEntry(
                program_id=str(program_id),
                accounts=tuple(
                    JournalAccountMeta(key=str(m.key), is_signer=m.is_signer, is_writable=m.is_writable)
                    for m in accounts
                ),
                data=bytes(data),
                timestamp=timestamp,
                error_code=error_code,
            )
        )

    def record_airdrop(self, address: Address, lamports: int, timestamp: int) -> None:
        self._entries.append(AirdropEntry(address=str(address), lamports=lamports, timestamp=timestamp))

    def to_bytes(self) -> bytes:
        return encode(
            {
                "version": JOURNAL_FORMAT_VERSION,
                "entries": [entry.model_dump() for entry in self._entries],
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> InvocationJournal:
        try:
            document = decode(data)
        except DecodeError as e:
            raise JournalError(str(e)) from e
        version = document.get("version")
        if version != JOURNAL_FORMAT_VERSION:
            raise JournalError(f"unsupported journal version {version!r}")
        try:
            entries = _entries_adapter.validate_python(document.get("entries"))
        except ValidationError as e:
            raise JournalError(f"invalid journal entries: {e}") from e
        return cls(entries)

    def save(self, storage: JournalStorage, name: str) -> None:
        storage.save_journal(name, self.to_bytes())

    @classmethod
    def load(cls, storage: JournalStorage, name: str) -> InvocationJournal:
        return cls.from_bytes(storage.load_journal(name))


@dataclass(frozen=True)
class Divergence:
    """An entry whose replayed outcome differs from the recorded one."""

    index: int
    expected: ErrorCode | None
    actual: ErrorCode | None


def replay_journal(
    journal: InvocationJournal,
    ledger_factory: Callable[[], InMemoryLedger],
) -> list[Divergence]:
    """
    Re-run every journal entry on a fresh ledger and report divergent outcomes.

    The clock is set to each entry's recorded timestamp before it runs.
    Raises UnknownProgramError if an entry names a program the fresh
    ledger does not deploy.
    """
    ledger = ledger_factory()
    divergences: list[Divergence] = []
    for index, entry in enumerate(journal.entries):
        ledger.set_clock(entry.timestamp)
        if isinstance(entry, AirdropEntry):
            ledger.airdrop(Address.from_base58(entry.address), entry.lamports)
            continue
        metas = [
            AccountMeta(key=Address.from_base58(m.key), is_signer=m.is_signer, is_writable=m.is_writable)
            for m in entry.accounts
        ]
        result = ledger.submit(Address.from_base58(entry.program_id), metas, entry.data)
        if result.error_code != entry.error_code:
            divergences.append(Divergence(index=index, expected=entry.error_code, actual=result.error_code))

    logger.info("journal replayed", entries=len(journal), divergences=len(divergences))
    return divergences
