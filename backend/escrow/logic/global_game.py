"""
Continuous global game: one shared stake pool and a record per player.

Stakes flow into the pool account on join and out of it only on cash-out.
Elimination events reported by the server authority move value between
player records without moving any lamports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from escrow.logic.accounts import AccountCursor
from escrow.logic.address import global_game_seeds, player_state_seeds
from escrow.logic.exceptions import (
    AlreadyInitializedError,
    InsufficientFundsError,
    InvalidArgumentError,
    InvalidStateError,
)
from escrow.logic.funds import cash_out_split, deposit, release, saturating_add, saturating_sub
from escrow.logic.guards import require_authority, require_derived, require_fee_account, require_owner, require_signer
from escrow.logic.records import (
    GLOBAL_GAME_SIZE,
    PLAYER_STATE_SIZE,
    U32_MAX,
    GlobalGame,
    PlayerState,
    encode_global_game,
    encode_player_state,
    load_global_game,
    load_player_state,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from escrow.logic.accounts import AccountInfo
    from escrow.logic.address import Address
    from escrow.logic.runtime import ProgramContext

logger = structlog.get_logger()


def _load_game(ctx: ProgramContext, game_account: AccountInfo) -> GlobalGame:
    require_derived(game_account, global_game_seeds(), ctx.program_id, "global game")
    require_owner(game_account, ctx.program_id, "global game")
    return load_global_game(game_account)


def _load_player_state(ctx: ProgramContext, state_account: AccountInfo, player: Address) -> PlayerState:
    require_derived(state_account, player_state_seeds(player), ctx.program_id, "player state")
    require_owner(state_account, ctx.program_id, "player state")
    return load_player_state(state_account)


def _count_down(count: int) -> int:
    return saturating_sub(count, 1)


def _count_up(count: int) -> int:
    return min(count + 1, U32_MAX)


def process_initialize_game(ctx: ProgramContext, accounts: Sequence[AccountInfo]) -> None:
    """
    Accounts: [authority (signer), game, system program, rent sysvar].

    Allocates the singleton pool. The signer becomes the server authority
    and the stake bounds and fee come from settings.
    """
    cursor = AccountCursor(accounts)
    authority = cursor.next()
    game_account = cursor.next()
    cursor.next()  # system program
    cursor.next()  # rent sysvar

    require_signer(authority, "authority")
    seeds = global_game_seeds()
    bump = require_derived(game_account, seeds, ctx.program_id, "global game")
    if not game_account.is_empty:
        raise AlreadyInitializedError("global game is already initialized")

    rent = ctx.runtime.minimum_balance(GLOBAL_GAME_SIZE)
    rent_due = saturating_sub(rent, game_account.lamports)
    if authority.lamports < rent_due:
        raise InsufficientFundsError(f"authority holds {authority.lamports}, needs {rent_due}")

    s = ctx.settings
    game = GlobalGame(
        min_stake=s.default_min_stake,
        max_stake=s.default_max_stake,
        platform_fee_percent=s.default_global_fee_percent,
        server_authority=authority.key,
        created_at=ctx.runtime.unix_timestamp(),
    )

    ctx.runtime.create_account(
        authority, game_account, rent, GLOBAL_GAME_SIZE, ctx.program_id, signer_seeds=[[*seeds, bytes([bump])]]
    )
    encode_global_game(game, game_account.data)

    logger.info(
        "global game initialized",
        game=str(game_account.key),
        authority=str(authority.key),
        min_stake=game.min_stake,
        max_stake=game.max_stake,
        fee_percent=game.platform_fee_percent,
    )


def process_join_game(ctx: ProgramContext, accounts: Sequence[AccountInfo], *, stake: int) -> None:
    """
    Accounts: [player (signer), player state, game, system program, rent sysvar].

    A first join allocates the player's record. A player whose record exists
    but is inactive rejoins: the new stake is added to the stored stake and
    value rather than replacing them.
    """
    cursor = AccountCursor(accounts)
    player = cursor.next()
    state_account = cursor.next()
    game_account = cursor.next()
    cursor.next()  # system program
    cursor.next()  # rent sysvar

    require_signer(player, "player")
    game = _load_game(ctx, game_account)
    if not game.min_stake <= stake <= game.max_stake:
        raise InvalidArgumentError(f"stake must be between {game.min_stake} and {game.max_stake}, got {stake}")

    seeds = player_state_seeds(player.key)
    bump = require_derived(state_account, seeds, ctx.program_id, "player state")
    now = ctx.runtime.unix_timestamp()
    first_join = state_account.is_empty

    if first_join:
        rent = ctx.runtime.minimum_balance(PLAYER_STATE_SIZE)
        rent_due = saturating_sub(rent, state_account.lamports)
        state = PlayerState(
            pubkey=player.key,
            stake_amount=stake,
            current_value=stake,
            is_active=True,
            joined_at=now,
        )
    else:
        rent_due = 0
        require_owner(state_account, ctx.program_id, "player state")
        previous = load_player_state(state_account)
        if previous.is_active:
            raise AlreadyInitializedError(f"{player.key} is already in the game")
        state = previous.model_copy(
            update={
                "stake_amount": saturating_add(previous.stake_amount, stake),
                "current_value": saturating_add(previous.current_value, stake),
                "is_active": True,
                "joined_at": now,
            }
        )

    if player.lamports < rent_due + stake:
        raise InsufficientFundsError(f"player holds {player.lamports}, needs {rent_due + stake}")

    updated_game = game.model_copy(
        update={
            "total_pool": saturating_add(game.total_pool, stake),
            "active_players": _count_up(game.active_players),
            "total_players": _count_up(game.total_players) if first_join else game.total_players,
        }
    )

    if first_join:
        ctx.runtime.create_account(
            player, state_account, rent, PLAYER_STATE_SIZE, ctx.program_id, signer_seeds=[[*seeds, bytes([bump])]]
        )
    deposit(ctx.runtime, player, game_account, stake)
    encode_player_state(state, state_account.data)
    encode_global_game(updated_game, game_account.data)

    logger.info(
        "player joined global game",
        player=str(player.key),
        stake=stake,
        rejoin=not first_join,
        total_pool=updated_game.total_pool,
        active_players=updated_game.active_players,
    )


def process_update_player_value(
    ctx: ProgramContext,
    accounts: Sequence[AccountInfo],
    *,
    player: Address,
    eaten_player: Address,
    eaten_value: int,
) -> None:
    """
    Accounts: [authority (signer), eater state, eaten state, game].

    Credits eaten_value to the eater, zeroes and deactivates the eaten
    player. Only pool accounting changes; no lamports move.
    """
    cursor = AccountCursor(accounts)
    authority = cursor.next()
    eater_account = cursor.next()
    eaten_account = cursor.next()
    game_account = cursor.next()

    game = _load_game(ctx, game_account)
    require_authority(authority, game.server_authority)
    if player == eaten_player:
        raise InvalidArgumentError("a player cannot eat themselves")

    eater = _load_player_state(ctx, eater_account, player)
    eaten = _load_player_state(ctx, eaten_account, eaten_player)
    if not eater.is_active:
        raise InvalidStateError(f"eater {player} is not active")
    if not eaten.is_active:
        raise InvalidStateError(f"eaten player {eaten_player} is not active")

    eater = eater.model_copy(update={"current_value": saturating_add(eater.current_value, eaten_value)})
    eaten = eaten.model_copy(update={"current_value": 0, "is_active": False})
    game = game.model_copy(update={"active_players": _count_down(game.active_players)})

    encode_player_state(eater, eater_account.data)
    encode_player_state(eaten, eaten_account.data)
    encode_global_game(game, game_account.data)

    logger.info(
        "player value updated",
        player=str(player),
        eaten_player=str(eaten_player),
        eaten_value=eaten_value,
        current_value=eater.current_value,
        active_players=game.active_players,
    )


def process_cash_out(ctx: ProgramContext, accounts: Sequence[AccountInfo]) -> None:
    """
    Accounts: [player (signer), player state, game, platform fee account].

    Pays the player's current value minus the pool's fee percentage out of
    pool custody and leaves the player inactive with zero value.
    """
    cursor = AccountCursor(accounts)
    player = cursor.next()
    state_account = cursor.next()
    game_account = cursor.next()
    fee_account = cursor.next()

    require_fee_account(fee_account, ctx.settings.platform_wallet)
    require_signer(player, "player")
    game = _load_game(ctx, game_account)
    state = _load_player_state(ctx, state_account, player.key)
    if not state.is_active:
        raise InvalidStateError(f"{player.key} is not active")
    if state.current_value == 0:
        raise InsufficientFundsError(f"{player.key} has nothing to cash out")

    split = cash_out_split(state.current_value, game.platform_fee_percent)
    now = ctx.runtime.unix_timestamp()
    state = state.model_copy(
        update={
            "current_value": 0,
            "is_active": False,
            "total_earned": saturating_add(state.total_earned, split.payout),
            "last_cashout": now,
        }
    )
    game = game.model_copy(
        update={
            "total_pool": saturating_sub(game.total_pool, split.current_value),
            "platform_fee_collected": saturating_add(game.platform_fee_collected, split.platform_fee),
            "active_players": _count_down(game.active_players),
        }
    )

    if split.platform_fee:
        release(game_account, fee_account, split.platform_fee)
    release(game_account, player, split.payout)
    encode_player_state(state, state_account.data)
    encode_global_game(game, game_account.data)

    logger.info(
        "player cashed out",
        player=str(player.key),
        value=split.current_value,
        platform_fee=split.platform_fee,
        payout=split.payout,
        total_pool=game.total_pool,
    )


def process_update_game_params(
    ctx: ProgramContext,
    accounts: Sequence[AccountInfo],
    *,
    min_stake: int | None = None,
    max_stake: int | None = None,
    platform_fee_percent: int | None = None,
    server_authority: Address | None = None,
) -> None:
    """Accounts: [authority (signer), game]. None leaves a parameter unchanged."""
    cursor = AccountCursor(accounts)
    authority = cursor.next()
    game_account = cursor.next()

    game = _load_game(ctx, game_account)
    require_authority(authority, game.server_authority)

    update: dict[str, object] = {}
    if min_stake is not None:
        update["min_stake"] = min_stake
    if max_stake is not None:
        update["max_stake"] = max_stake
    if platform_fee_percent is not None:
        if platform_fee_percent > ctx.settings.global_fee_cap:
            raise InvalidArgumentError(
                f"platform_fee_percent must not exceed {ctx.settings.global_fee_cap}, got {platform_fee_percent}"
            )
        update["platform_fee_percent"] = platform_fee_percent
    if server_authority is not None:
        update["server_authority"] = server_authority

    updated = game.model_copy(update=update)
    if updated.min_stake > updated.max_stake:
        raise InvalidArgumentError(f"min_stake {updated.min_stake} exceeds max_stake {updated.max_stake}")
    encode_global_game(updated, game_account.data)

    logger.info("global game params updated", changed=sorted(update))


def process_force_cleanup(ctx: ProgramContext, accounts: Sequence[AccountInfo], *, player: Address) -> None:
    """
    Accounts: [authority (signer), player state, game].

    Deactivates a player without paying anything out. The pool total is left
    alone. An already inactive player is accepted as a no-op.
    """
    cursor = AccountCursor(accounts)
    authority = cursor.next()
    state_account = cursor.next()
    game_account = cursor.next()

    game = _load_game(ctx, game_account)
    require_authority(authority, game.server_authority)
    state = _load_player_state(ctx, state_account, player)
    if not state.is_active:
        logger.info("force cleanup skipped, player already inactive", player=str(player))
        return

    state = state.model_copy(update={"current_value": 0, "is_active": False})
    game = game.model_copy(update={"active_players": _count_down(game.active_players)})
    encode_player_state(state, state_account.data)
    encode_global_game(game, game_account.data)

    logger.info("player force cleaned up", player=str(player), active_players=game.active_players)
