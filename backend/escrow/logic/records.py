"""
Persistent records stored in program-owned accounts.

Records are frozen pydantic models. Handlers derive an updated copy with
model_copy and encode it only after every check has passed. Each record has
one Borsh schema (field order is the on-ledger layout) and one codec that
fixes its slot size:

    Room          512-byte slot, length-prefixed, zero-padded
    GlobalGame    256-byte slot, length-prefixed, zero-padded
    PlayerState   exactly 73 bytes, no header
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    SerializationInfo,
    ValidationError,
    model_validator,
)

from escrow.logic.address import Address
from escrow.logic.exceptions import InvalidArgumentError, MalformedStorageError
from escrow.wire.borsh import BOOL, I64, PUBKEY, U8, U16, U32, U64, FixedArray, FixedBytes, Option, Struct, UnitEnum
from escrow.wire.codec import ExactCodec, SlotCodec
from escrow.wire.enums import WireRoomStatus

if TYPE_CHECKING:
    from escrow.logic.accounts import AccountInfo

U64_MAX = 2**64 - 1
U32_MAX = 2**32 - 1

ROOM_CAPACITY = 10  # fixed roster length in the stored layout
GAME_ID_LENGTH = 16

ROOM_SIZE = 512
GLOBAL_GAME_SIZE = 256
PLAYER_STATE_SIZE = 73


class RoomStatus(StrEnum):
    WAITING_FOR_PLAYERS = "waiting_for_players"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def _status_to_wire(v: RoomStatus, info: SerializationInfo) -> int | str:
    if info.mode == "json":
        return v.value
    return WireRoomStatus[v.name]


def _status_from_wire(v: object) -> object:
    if isinstance(v, int):
        return RoomStatus[WireRoomStatus(v).name]
    return v


WireRoomStatusField = Annotated[
    RoomStatus,
    BeforeValidator(_status_from_wire),
    PlainSerializer(_status_to_wire),
]

# Raw bytes for the codec, base58 text in JSON output.
AddressField = Annotated[Address, PlainSerializer(lambda a: str(a), return_type=str, when_used="json")]
GameIdField = Annotated[bytes, PlainSerializer(lambda b: b.hex(), return_type=str, when_used="json")]

Lamports = Annotated[int, Field(ge=0, le=U64_MAX)]
U32Count = Annotated[int, Field(ge=0, le=U32_MAX)]
Timestamp = Annotated[int, Field(ge=-(2**63), lt=2**63)]


class Room(BaseModel):
    """One elimination room: roster, stakes, lifecycle, and payout flags."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    creator: AddressField
    players: tuple[AddressField, ...] = Field(min_length=ROOM_CAPACITY, max_length=ROOM_CAPACITY)
    eliminated: tuple[bool, ...] = Field(min_length=ROOM_CAPACITY, max_length=ROOM_CAPACITY)
    player_count: int = Field(ge=0, le=ROOM_CAPACITY)
    max_players: int = Field(ge=0, le=ROOM_CAPACITY)
    entry_fee: Lamports
    status: WireRoomStatusField = RoomStatus.WAITING_FOR_PLAYERS
    winner: AddressField | None = None
    created_at: Timestamp
    game_started_at: Timestamp | None = None
    game_ended_at: Timestamp | None = None
    prize_claimed: bool = False
    game_id: GameIdField = Field(default=bytes(GAME_ID_LENGTH), min_length=GAME_ID_LENGTH, max_length=GAME_ID_LENGTH)
    room_slot: int = Field(ge=0, le=255)
    duration_minutes: int = Field(ge=0, le=0xFFFF)
    map_size: int = Field(ge=0, le=0xFFFF)

    @model_validator(mode="after")
    def _ensure_consistent_lifecycle(self) -> Room:
        if self.player_count > self.max_players:
            raise ValueError(f"player_count {self.player_count} exceeds max_players {self.max_players}")
        if len(set(self.roster)) != self.player_count:
            raise ValueError("roster seats the same player twice")
        if any(self.eliminated[self.player_count :]):
            raise ValueError("an unoccupied slot is marked eliminated")
        if (self.winner is not None) != (self.status == RoomStatus.COMPLETED):
            raise ValueError(f"winner must be set exactly when the room is completed, status is {self.status}")
        if self.prize_claimed and self.status != RoomStatus.COMPLETED:
            raise ValueError("prize_claimed is only valid on a completed room")
        return self

    @classmethod
    def new(
        cls,
        *,
        creator: Address,
        max_players: int,
        entry_fee: int,
        created_at: int,
        room_slot: int,
        duration_minutes: int,
        map_size: int,
    ) -> Room:
        """Fresh room with the creator seated at index 0."""
        players = (creator,) + (Address.default(),) * (ROOM_CAPACITY - 1)
        return cls(
            creator=creator,
            players=players,
            eliminated=(False,) * ROOM_CAPACITY,
            player_count=1,
            max_players=max_players,
            entry_fee=entry_fee,
            created_at=created_at,
            room_slot=room_slot,
            duration_minutes=duration_minutes,
            map_size=map_size,
        )

    @property
    def roster(self) -> tuple[Address, ...]:
        """Occupied slots in join order."""
        return self.players[: self.player_count]

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.max_players

    def has_player(self, player: Address) -> bool:
        return player in self.roster

    def active_players(self) -> list[Address]:
        return [p for p, out in zip(self.roster, self.eliminated, strict=False) if not out]

    def last_active_player(self) -> Address | None:
        """The single remaining player, or None when zero or several remain."""
        active = self.active_players()
        return active[0] if len(active) == 1 else None

    def with_player(self, player: Address) -> Room:
        if self.is_full:
            raise InvalidArgumentError(f"room is full ({self.player_count}/{self.max_players})")
        if self.has_player(player):
            raise InvalidArgumentError(f"{player} already joined this room")
        players = list(self.players)
        players[self.player_count] = player
        return self.model_copy(update={"players": tuple(players), "player_count": self.player_count + 1})

    def with_eliminated(self, player: Address) -> Room:
        try:
            index = self.roster.index(player)
        except ValueError:
            raise InvalidArgumentError(f"{player} is not in this room") from None
        eliminated = list(self.eliminated)
        eliminated[index] = True
        return self.model_copy(update={"eliminated": tuple(eliminated)})


class GlobalGame(BaseModel):
    """Singleton stake pool of the continuous game."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    total_pool: Lamports = 0
    platform_fee_collected: Lamports = 0
    min_stake: Lamports
    max_stake: Lamports
    active_players: U32Count = 0
    total_players: U32Count = 0
    platform_fee_percent: int = Field(ge=0, le=100)
    server_authority: AddressField
    created_at: Timestamp


class PlayerState(BaseModel):
    """Per-player stake and value in the global game."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    pubkey: AddressField
    stake_amount: Lamports
    current_value: Lamports
    total_earned: Lamports = 0
    is_active: bool
    joined_at: Timestamp
    last_cashout: Timestamp = 0


ROOM_SCHEMA = Struct(
    ("creator", PUBKEY),
    ("players", FixedArray(PUBKEY, ROOM_CAPACITY)),
    ("eliminated", FixedArray(BOOL, ROOM_CAPACITY)),
    ("player_count", U8),
    ("max_players", U8),
    ("entry_fee", U64),
    ("status", UnitEnum(WireRoomStatus)),
    ("winner", Option(PUBKEY)),
    ("created_at", I64),
    ("game_started_at", Option(I64)),
    ("game_ended_at", Option(I64)),
    ("prize_claimed", BOOL),
    ("game_id", FixedBytes(GAME_ID_LENGTH)),
    ("room_slot", U8),
    ("duration_minutes", U16),
    ("map_size", U16),
)

GLOBAL_GAME_SCHEMA = Struct(
    ("total_pool", U64),
    ("platform_fee_collected", U64),
    ("min_stake", U64),
    ("max_stake", U64),
    ("active_players", U32),
    ("total_players", U32),
    ("platform_fee_percent", U8),
    ("server_authority", PUBKEY),
    ("created_at", I64),
)

PLAYER_STATE_SCHEMA = Struct(
    ("pubkey", PUBKEY),
    ("stake_amount", U64),
    ("current_value", U64),
    ("total_earned", U64),
    ("is_active", BOOL),
    ("joined_at", I64),
    ("last_cashout", I64),
)

ROOM_CODEC = SlotCodec(ROOM_SCHEMA, ROOM_SIZE)
GLOBAL_GAME_CODEC = SlotCodec(GLOBAL_GAME_SCHEMA, GLOBAL_GAME_SIZE)
PLAYER_STATE_CODEC = ExactCodec(PLAYER_STATE_SCHEMA, PLAYER_STATE_SIZE)

T = TypeVar("T", bound=BaseModel)


def _validate(model_cls: type[T], fields: dict[str, Any]) -> T:
    try:
        return model_cls.model_validate(fields)
    except ValidationError as e:
        raise MalformedStorageError(f"stored {model_cls.__name__} violates field bounds: {e}") from e


def decode_room(data: bytes | bytearray) -> Room:
    return _validate(Room, ROOM_CODEC.decode(data))


def encode_room(room: Room, data: bytearray) -> None:
    ROOM_CODEC.encode(room.model_dump(), data)


def decode_global_game(data: bytes | bytearray) -> GlobalGame:
    return _validate(GlobalGame, GLOBAL_GAME_CODEC.decode(data))


def encode_global_game(game: GlobalGame, data: bytearray) -> None:
    GLOBAL_GAME_CODEC.encode(game.model_dump(), data)


def decode_player_state(data: bytes | bytearray) -> PlayerState:
    return _validate(PlayerState, PLAYER_STATE_CODEC.decode(data))


def encode_player_state(state: PlayerState, data: bytearray) -> None:
    PLAYER_STATE_CODEC.encode(state.model_dump(), data)


def load_room(account: AccountInfo) -> Room:
    return decode_room(account.data)


def load_global_game(account: AccountInfo) -> GlobalGame:
    return decode_global_game(account.data)


def load_player_state(account: AccountInfo) -> PlayerState:
    return decode_player_state(account.data)
