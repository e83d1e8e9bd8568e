"""Replay a saved invocation journal against a fresh in-memory ledger.

Every airdrop and invocation is re-run at its recorded clock value and the
outcome compared with the recorded one. Exits non-zero if any diverge.

Usage:
    uv run python bin/replay-journal.py
    uv run python bin/replay-journal.py --journal-dir backend/data/journals --name ledger
"""

from __future__ import annotations

import argparse
import sys

from escrow.logic.settings import EscrowSettings
from escrow.messaging.router import GlobalGameProgram, RoomProgram
from escrow.runtime.journal import InvocationJournal, JournalError, replay_journal
from escrow.runtime.ledger import InMemoryLedger
from escrow.server.settings import LedgerServerSettings
from shared.logging import setup_logging
from shared.storage import LocalJournalStorage


def main() -> None:
    server_settings = LedgerServerSettings()
    parser = argparse.ArgumentParser(description="Replay a saved ledger journal")
    parser.add_argument(
        "--journal-dir",
        default=server_settings.journal_dir,
        help=f"directory holding journals (default: {server_settings.journal_dir})",
    )
    parser.add_argument(
        "--name",
        default=server_settings.journal_name,
        help=f"journal name without suffix (default: {server_settings.journal_name})",
    )
    args = parser.parse_args()

    setup_logging()

    try:
        journal = InvocationJournal.load(LocalJournalStorage(args.journal_dir), args.name)
    except FileNotFoundError:
        print(f"Journal not found: {args.name} in {args.journal_dir}", file=sys.stderr)
        sys.exit(1)
    except JournalError as e:
        print(f"Journal unreadable: {e}", file=sys.stderr)
        sys.exit(1)

    escrow_settings = EscrowSettings()

    def fresh_ledger() -> InMemoryLedger:
        return InMemoryLedger(
            [RoomProgram(escrow_settings), GlobalGameProgram(escrow_settings)],
            lamports_per_byte_year=server_settings.lamports_per_byte_year,
            genesis_timestamp=server_settings.genesis_timestamp,
        )

    divergences = replay_journal(journal, fresh_ledger)
    print(f"Replayed {len(journal)} entries, {len(divergences)} divergent")
    for d in divergences:
        print(f"  #{d.index}: recorded {d.expected or 'ok'}, replayed {d.actual or 'ok'}")
    if divergences:
        sys.exit(1)


if __name__ == "__main__":
    main()
