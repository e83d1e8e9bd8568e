"""
Room elimination game state machine.

A room moves WAITING_FOR_PLAYERS -> IN_PROGRESS -> COMPLETED and never
backward. Cancellation is only legal while waiting and tears the room down
instead of producing a fourth state.

Every handler runs all of its checks before the first write to an account,
so a rejection leaves nothing behind even without the runtime's rollback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from escrow.logic.accounts import AccountCursor
from escrow.logic.address import room_seeds
from escrow.logic.exceptions import (
    AddressMismatchError,
    AlreadyInitializedError,
    InsufficientFundsError,
    InvalidArgumentError,
    InvalidStateError,
    UnauthorizedError,
)
from escrow.logic.funds import deposit, drain, refund_signed, release, room_prize, saturating_sub
from escrow.logic.guards import require_derived, require_fee_account, require_owner, require_signer
from escrow.logic.records import GAME_ID_LENGTH, ROOM_SIZE, Room, RoomStatus, encode_room, load_room

if TYPE_CHECKING:
    from collections.abc import Sequence

    from escrow.logic.accounts import AccountInfo
    from escrow.logic.address import Address
    from escrow.logic.runtime import ProgramContext

logger = structlog.get_logger()


def _load_room(ctx: ProgramContext, room_account: AccountInfo) -> tuple[Room, list[bytes]]:
    """Decode a room and prove the account sits at the address its own creator and slot derive."""
    room = load_room(room_account)
    seeds = room_seeds(room.creator, room.room_slot)
    bump = require_derived(room_account, seeds, ctx.program_id, "room")
    return room, [*seeds, bytes([bump])]


def _require_status(room: Room, expected: RoomStatus) -> None:
    if room.status != expected:
        raise InvalidStateError(f"room is {room.status}, expected {expected}")


def _validate_room_params(
    ctx: ProgramContext,
    *,
    max_players: int,
    entry_fee: int,
    room_slot: int,
    duration_minutes: int,
    map_size: int,
) -> None:
    s = ctx.settings
    if not s.min_room_players <= max_players <= s.max_room_players:
        raise InvalidArgumentError(
            f"max_players must be between {s.min_room_players} and {s.max_room_players}, got {max_players}"
        )
    if entry_fee == 0:
        raise InvalidArgumentError("entry_fee must be positive")
    if room_slot >= s.room_slot_cap:
        raise InvalidArgumentError(f"room_slot must be below {s.room_slot_cap}, got {room_slot}")
    if not s.min_duration_minutes <= duration_minutes <= s.max_duration_minutes:
        raise InvalidArgumentError(
            f"duration_minutes must be between {s.min_duration_minutes} and {s.max_duration_minutes}, "
            f"got {duration_minutes}"
        )
    if not s.min_map_size <= map_size <= s.max_map_size:
        raise InvalidArgumentError(
            f"map_size must be between {s.min_map_size} and {s.max_map_size}, got {map_size}"
        )


def process_create_room(
    ctx: ProgramContext,
    accounts: Sequence[AccountInfo],
    *,
    max_players: int,
    entry_fee: int,
    room_slot: int,
    duration_minutes: int,
    map_size: int,
) -> None:
    """Accounts: [creator (signer), room, system program, rent sysvar]."""
    cursor = AccountCursor(accounts)
    creator = cursor.next()
    room_account = cursor.next()
    cursor.next()  # system program
    cursor.next()  # rent sysvar

    require_signer(creator, "creator")
    _validate_room_params(
        ctx,
        max_players=max_players,
        entry_fee=entry_fee,
        room_slot=room_slot,
        duration_minutes=duration_minutes,
        map_size=map_size,
    )
    seeds = room_seeds(creator.key, room_slot)
    bump = require_derived(room_account, seeds, ctx.program_id, "room")
    if not room_account.is_empty:
        raise AlreadyInitializedError(f"room slot {room_slot} of {creator.key} is already in use")

    rent = ctx.runtime.minimum_balance(ROOM_SIZE)
    rent_due = saturating_sub(rent, room_account.lamports)
    if creator.lamports < rent_due + entry_fee:
        raise InsufficientFundsError(f"creator holds {creator.lamports}, needs {rent_due + entry_fee}")

    room = Room.new(
        creator=creator.key,
        max_players=max_players,
        entry_fee=entry_fee,
        created_at=ctx.runtime.unix_timestamp(),
        room_slot=room_slot,
        duration_minutes=duration_minutes,
        map_size=map_size,
    )

    ctx.runtime.create_account(
        creator, room_account, rent, ROOM_SIZE, ctx.program_id, signer_seeds=[[*seeds, bytes([bump])]]
    )
    deposit(ctx.runtime, creator, room_account, entry_fee)
    encode_room(room, room_account.data)

    logger.info(
        "room created",
        room=str(room_account.key),
        creator=str(creator.key),
        slot=room_slot,
        entry_fee=entry_fee,
        max_players=max_players,
    )


def process_join_room(ctx: ProgramContext, accounts: Sequence[AccountInfo]) -> None:
    """Accounts: [player (signer), room, system program]."""
    cursor = AccountCursor(accounts)
    player = cursor.next()
    room_account = cursor.next()
    cursor.next()  # system program

    require_signer(player, "player")
    room, _ = _load_room(ctx, room_account)
    _require_status(room, RoomStatus.WAITING_FOR_PLAYERS)
    updated = room.with_player(player.key)

    deposit(ctx.runtime, player, room_account, room.entry_fee)
    encode_room(updated, room_account.data)

    logger.info(
        "player joined room",
        room=str(room_account.key),
        player=str(player.key),
        player_count=updated.player_count,
        max_players=updated.max_players,
    )


def process_start_game(ctx: ProgramContext, accounts: Sequence[AccountInfo], *, game_id: str) -> None:
    """
    Accounts: [initiator (signer), room].

    Any seated player may start the game once at least the minimum number
    of players have joined. The game id is stored as its first 16 UTF-8
    bytes, zero-padded.
    """
    cursor = AccountCursor(accounts)
    initiator = cursor.next()
    room_account = cursor.next()

    require_signer(initiator, "initiator")
    room, _ = _load_room(ctx, room_account)
    if not room.has_player(initiator.key):
        raise UnauthorizedError(f"{initiator.key} is not seated in this room")
    _require_status(room, RoomStatus.WAITING_FOR_PLAYERS)
    if room.player_count < ctx.settings.min_room_players:
        raise InvalidArgumentError(
            f"need at least {ctx.settings.min_room_players} players to start, have {room.player_count}"
        )

    tag = game_id.encode()[:GAME_ID_LENGTH].ljust(GAME_ID_LENGTH, b"\x00")
    updated = room.model_copy(
        update={
            "game_id": tag,
            "game_started_at": ctx.runtime.unix_timestamp(),
            "status": RoomStatus.IN_PROGRESS,
        }
    )
    encode_room(updated, room_account.data)

    logger.info("room game started", room=str(room_account.key), game_id=game_id, players=room.player_count)


def process_eliminate_player(ctx: ProgramContext, accounts: Sequence[AccountInfo], *, player: Address) -> None:
    """
    Accounts: [reporter (signer), room].

    Only a signature is required from the reporter; it is not compared to
    any stored authority. When exactly one active player remains the room
    completes with that player as winner.
    """
    cursor = AccountCursor(accounts)
    reporter = cursor.next()
    room_account = cursor.next()

    require_signer(reporter, "reporter")
    room, _ = _load_room(ctx, room_account)
    _require_status(room, RoomStatus.IN_PROGRESS)
    updated = room.with_eliminated(player)

    winner = updated.last_active_player()
    if winner is not None:
        updated = updated.model_copy(
            update={
                "winner": winner,
                "status": RoomStatus.COMPLETED,
                "game_ended_at": ctx.runtime.unix_timestamp(),
            }
        )
    encode_room(updated, room_account.data)

    logger.info(
        "player eliminated",
        room=str(room_account.key),
        player=str(player),
        remaining=len(updated.active_players()),
        winner=str(winner) if winner is not None else None,
    )


def process_end_game(ctx: ProgramContext, accounts: Sequence[AccountInfo], *, winner: Address) -> None:
    """Accounts: [initiator (signer), room]. Forces completion regardless of eliminations."""
    cursor = AccountCursor(accounts)
    initiator = cursor.next()
    room_account = cursor.next()

    require_signer(initiator, "initiator")
    room, _ = _load_room(ctx, room_account)
    _require_status(room, RoomStatus.IN_PROGRESS)
    if not room.has_player(winner):
        raise InvalidArgumentError(f"winner {winner} is not in this room")

    updated = room.model_copy(
        update={
            "winner": winner,
            "status": RoomStatus.COMPLETED,
            "game_ended_at": ctx.runtime.unix_timestamp(),
        }
    )
    encode_room(updated, room_account.data)

    logger.info("room game ended", room=str(room_account.key), winner=str(winner))


def process_claim_prize(ctx: ProgramContext, accounts: Sequence[AccountInfo]) -> None:
    """
    Accounts: [winner (signer), room, system program, platform fee account].

    Pays the platform fee and the winner's share out of the room's custody
    and marks the prize claimed. The room record itself stays on the ledger.
    """
    cursor = AccountCursor(accounts)
    winner = cursor.next()
    room_account = cursor.next()
    cursor.next()  # system program
    fee_account = cursor.next()

    require_fee_account(fee_account, ctx.settings.platform_wallet)
    require_signer(winner, "winner")
    require_owner(room_account, ctx.program_id, "room")
    room, _ = _load_room(ctx, room_account)
    _require_status(room, RoomStatus.COMPLETED)
    if room.winner != winner.key:
        raise UnauthorizedError(f"{winner.key} is not the winner of this room")
    if room.prize_claimed:
        raise InvalidStateError("prize already claimed")

    split = room_prize(room.entry_fee, room.player_count, ctx.settings.room_fee_percent)

    if split.platform_fee:
        release(room_account, fee_account, split.platform_fee)
    release(room_account, winner, split.winner_prize)
    encode_room(room.model_copy(update={"prize_claimed": True}), room_account.data)

    logger.info(
        "prize claimed",
        room=str(room_account.key),
        winner=str(winner.key),
        total_prize=split.total_prize,
        platform_fee=split.platform_fee,
        winner_prize=split.winner_prize,
    )


def process_cancel_room(ctx: ProgramContext, accounts: Sequence[AccountInfo]) -> None:
    """
    Accounts: [creator (signer), room, system program, *players].

    The trailing accounts are the non-creator players in roster order. Each
    gets their entry fee back, clamped to whatever custody still holds; the
    rest of the balance goes to the creator and the room is emptied.
    """
    cursor = AccountCursor(accounts)
    creator = cursor.next()
    room_account = cursor.next()
    cursor.next()  # system program

    require_signer(creator, "creator")
    room, signer_seeds = _load_room(ctx, room_account)
    if room.creator != creator.key:
        raise UnauthorizedError(f"{creator.key} did not create this room")
    _require_status(room, RoomStatus.WAITING_FOR_PLAYERS)

    refunds: list[AccountInfo] = []
    for expected in room.roster:
        if expected == room.creator:
            continue
        account = cursor.next()
        if account.key != expected:
            raise AddressMismatchError(f"refund account {account.key} does not match seated player {expected}")
        refunds.append(account)

    refunded = 0
    for account in refunds:
        refunded += refund_signed(ctx.runtime, room_account, account, room.entry_fee, signer_seeds)
    returned = drain(room_account, creator)
    room_account.data[:] = bytes(len(room_account.data))

    logger.info(
        "room cancelled",
        room=str(room_account.key),
        creator=str(creator.key),
        refunded_players=len(refunds),
        refunded=refunded,
        returned_to_creator=returned,
    )
