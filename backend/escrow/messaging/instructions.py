"""
Instruction sum types for the room and global game programs.

An instruction buffer is one tag byte followed by the Borsh payload of that
variant. Each program owns its own closed set of variants and tag space;
the two sets are never mixed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from escrow.logic.address import Address
from escrow.logic.exceptions import MalformedInstructionError
from escrow.wire.borsh import PUBKEY, STRING, U8, U16, U64, BorshError, Option, Struct, deserialize, serialize
from escrow.wire.enums import WireGlobalInstruction, WireRoomInstruction

if TYPE_CHECKING:
    from enum import IntEnum

U8Value = Annotated[int, Field(ge=0, le=0xFF)]
U16Value = Annotated[int, Field(ge=0, le=0xFFFF)]
U64Value = Annotated[int, Field(ge=0, le=2**64 - 1)]


class _Instruction(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")


# ---------------------------------------------------------------------------
# Room program
# ---------------------------------------------------------------------------


class CreateRoom(_Instruction):
    tag: Literal[WireRoomInstruction.CREATE_ROOM] = WireRoomInstruction.CREATE_ROOM
    max_players: U8Value
    entry_fee: U64Value
    room_slot: U8Value
    duration_minutes: U16Value
    map_size: U16Value


class JoinRoom(_Instruction):
    tag: Literal[WireRoomInstruction.JOIN_ROOM] = WireRoomInstruction.JOIN_ROOM


class StartGame(_Instruction):
    tag: Literal[WireRoomInstruction.START_GAME] = WireRoomInstruction.START_GAME
    game_id: str


class EliminatePlayer(_Instruction):
    tag: Literal[WireRoomInstruction.ELIMINATE_PLAYER] = WireRoomInstruction.ELIMINATE_PLAYER
    player: Address


class EndGame(_Instruction):
    tag: Literal[WireRoomInstruction.END_GAME] = WireRoomInstruction.END_GAME
    winner: Address


class ClaimPrize(_Instruction):
    tag: Literal[WireRoomInstruction.CLAIM_PRIZE] = WireRoomInstruction.CLAIM_PRIZE


class CancelRoom(_Instruction):
    tag: Literal[WireRoomInstruction.CANCEL_ROOM] = WireRoomInstruction.CANCEL_ROOM


RoomInstruction = CreateRoom | JoinRoom | StartGame | EliminatePlayer | EndGame | ClaimPrize | CancelRoom

_ROOM_VARIANTS: dict[WireRoomInstruction, tuple[type[_Instruction], Struct]] = {
    WireRoomInstruction.CREATE_ROOM: (
        CreateRoom,
        Struct(
            ("max_players", U8),
            ("entry_fee", U64),
            ("room_slot", U8),
            ("duration_minutes", U16),
            ("map_size", U16),
        ),
    ),
    WireRoomInstruction.JOIN_ROOM: (JoinRoom, Struct()),
    WireRoomInstruction.START_GAME: (StartGame, Struct(("game_id", STRING))),
    WireRoomInstruction.ELIMINATE_PLAYER: (EliminatePlayer, Struct(("player", PUBKEY))),
    WireRoomInstruction.END_GAME: (EndGame, Struct(("winner", PUBKEY))),
    WireRoomInstruction.CLAIM_PRIZE: (ClaimPrize, Struct()),
    WireRoomInstruction.CANCEL_ROOM: (CancelRoom, Struct()),
}


# ---------------------------------------------------------------------------
# Global game program
# ---------------------------------------------------------------------------


class InitializeGame(_Instruction):
    tag: Literal[WireGlobalInstruction.INITIALIZE_GAME] = WireGlobalInstruction.INITIALIZE_GAME


class JoinGame(_Instruction):
    tag: Literal[WireGlobalInstruction.JOIN_GAME] = WireGlobalInstruction.JOIN_GAME
    stake: U64Value


class UpdatePlayerValue(_Instruction):
    tag: Literal[WireGlobalInstruction.UPDATE_PLAYER_VALUE] = WireGlobalInstruction.UPDATE_PLAYER_VALUE
    player: Address
    eaten_player: Address
    eaten_value: U64Value


class CashOut(_Instruction):
    tag: Literal[WireGlobalInstruction.CASH_OUT] = WireGlobalInstruction.CASH_OUT


class UpdateGameParams(_Instruction):
    """Replace any subset of the pool parameters; None leaves a field unchanged."""

    tag: Literal[WireGlobalInstruction.UPDATE_GAME_PARAMS] = WireGlobalInstruction.UPDATE_GAME_PARAMS
    min_stake: U64Value | None = None
    max_stake: U64Value | None = None
    platform_fee_percent: U8Value | None = None
    server_authority: Address | None = None


class ForceCleanup(_Instruction):
    tag: Literal[WireGlobalInstruction.FORCE_CLEANUP] = WireGlobalInstruction.FORCE_CLEANUP
    player: Address


GlobalInstruction = InitializeGame | JoinGame | UpdatePlayerValue | CashOut | UpdateGameParams | ForceCleanup

_GLOBAL_VARIANTS: dict[WireGlobalInstruction, tuple[type[_Instruction], Struct]] = {
    WireGlobalInstruction.INITIALIZE_GAME: (InitializeGame, Struct()),
    WireGlobalInstruction.JOIN_GAME: (JoinGame, Struct(("stake", U64))),
    WireGlobalInstruction.UPDATE_PLAYER_VALUE: (
        UpdatePlayerValue,
        Struct(("player", PUBKEY), ("eaten_player", PUBKEY), ("eaten_value", U64)),
    ),
    WireGlobalInstruction.CASH_OUT: (CashOut, Struct()),
    WireGlobalInstruction.UPDATE_GAME_PARAMS: (
        UpdateGameParams,
        Struct(
            ("min_stake", Option(U64)),
            ("max_stake", Option(U64)),
            ("platform_fee_percent", Option(U8)),
            ("server_authority", Option(PUBKEY)),
        ),
    ),
    WireGlobalInstruction.FORCE_CLEANUP: (ForceCleanup, Struct(("player", PUBKEY))),
}


# ---------------------------------------------------------------------------
# Decoding / encoding
# ---------------------------------------------------------------------------


def _decode(
    data: bytes,
    tags: type[IntEnum],
    variants: dict[Any, tuple[type[_Instruction], Struct]],
) -> Any:  # noqa: ANN401
    if not data:
        raise MalformedInstructionError("empty instruction buffer")
    try:
        tag = tags(data[0])
    except ValueError:
        raise MalformedInstructionError(f"unknown {tags.__name__} tag {data[0]}") from None
    model_cls, schema = variants[tag]
    try:
        fields = deserialize(schema, data[1:])
        return model_cls.model_validate({"tag": tag, **fields})
    except (BorshError, ValidationError) as e:
        raise MalformedInstructionError(f"invalid {model_cls.__name__} payload: {e}") from e


def _encode(instruction: _Instruction, variants: dict[Any, tuple[type[_Instruction], Struct]]) -> bytes:
    tag = instruction.tag  # type: ignore[attr-defined]
    _, schema = variants[tag]
    return bytes([tag]) + serialize(schema, instruction.model_dump(exclude={"tag"}))


def decode_room_instruction(data: bytes) -> RoomInstruction:
    """Parse a room program buffer. Raises MalformedInstructionError."""
    return _decode(bytes(data), WireRoomInstruction, _ROOM_VARIANTS)


def decode_global_instruction(data: bytes) -> GlobalInstruction:
    """Parse a global game program buffer. Raises MalformedInstructionError."""
    return _decode(bytes(data), WireGlobalInstruction, _GLOBAL_VARIANTS)


def encode_room_instruction(instruction: RoomInstruction) -> bytes:
    return _encode(instruction, _ROOM_VARIANTS)


def encode_global_instruction(instruction: GlobalInstruction) -> bytes:
    return _encode(instruction, _GLOBAL_VARIANTS)
