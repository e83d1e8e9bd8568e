import pytest

from escrow.logic.address import Address
from escrow.logic.exceptions import CapacityExceededError, InvalidArgumentError, MalformedStorageError
from escrow.logic.records import (
    GLOBAL_GAME_SIZE,
    PLAYER_STATE_SIZE,
    ROOM_CAPACITY,
    ROOM_SIZE,
    GlobalGame,
    PlayerState,
    Room,
    RoomStatus,
    decode_global_game,
    decode_player_state,
    decode_room,
    encode_global_game,
    encode_player_state,
    encode_room,
)
from escrow.tests.helpers.ledger import wallet
from escrow.wire.codec import HEADER_SIZE

CREATOR = wallet("creator")


def _room(**overrides) -> Room:
    room = Room.new(
        creator=CREATOR,
        max_players=4,
        entry_fee=100,
        created_at=1_700_000_000,
        room_slot=3,
        duration_minutes=10,
        map_size=2000,
    )
    return room.model_copy(update=overrides) if overrides else room


class TestRoomModel:
    def test_new_room_seats_creator_first(self):
        room = _room()
        assert room.roster == (CREATOR,)
        assert room.player_count == 1
        assert room.status == RoomStatus.WAITING_FOR_PLAYERS
        assert room.players[1:] == (Address.default(),) * (ROOM_CAPACITY - 1)
        assert room.winner is None
        assert room.game_started_at is None

    def test_with_player_appends(self):
        room = _room().with_player(wallet("bob"))
        assert room.roster == (CREATOR, wallet("bob"))
        assert room.player_count == 2

    def test_with_player_rejects_duplicate(self):
        with pytest.raises(InvalidArgumentError, match="already joined"):
            _room().with_player(CREATOR)

    def test_with_player_rejects_full_room(self):
        room = _room(max_players=2).with_player(wallet("bob"))
        with pytest.raises(InvalidArgumentError, match="room is full"):
            room.with_player(wallet("carol"))

    def test_with_eliminated_marks_flag(self):
        room = _room().with_player(wallet("bob")).with_eliminated(wallet("bob"))
        assert room.eliminated[:2] == (False, True)
        assert room.active_players() == [CREATOR]
        assert room.last_active_player() == CREATOR

    def test_with_eliminated_rejects_stranger(self):
        with pytest.raises(InvalidArgumentError, match="not in this room"):
            _room().with_eliminated(wallet("mallory"))

    def test_unused_slots_are_never_players(self):
        assert not _room().has_player(Address.default())

    def test_last_active_player_none_when_several_remain(self):
        assert _room().with_player(wallet("bob")).last_active_player() is None


class TestRoomCodec:
    def test_round_trip(self):
        room = _room(
            status=RoomStatus.COMPLETED,
            winner=CREATOR,
            game_started_at=1_700_000_100,
            game_ended_at=1_700_000_700,
            prize_claimed=True,
            game_id=b"match-1".ljust(16, b"\x00"),
        )
        buffer = bytearray(ROOM_SIZE)
        encode_room(room, buffer)
        assert decode_room(buffer) == room

    def test_header_holds_payload_length_and_rest_is_zero(self):
        buffer = bytearray(ROOM_SIZE)
        encode_room(_room(), buffer)
        length = int.from_bytes(buffer[:HEADER_SIZE], "little")
        assert 0 < length < ROOM_SIZE - HEADER_SIZE
        assert buffer[HEADER_SIZE + length :] == bytes(ROOM_SIZE - HEADER_SIZE - length)

    def test_status_is_stored_as_variant_byte(self):
        buffer = bytearray(ROOM_SIZE)
        encode_room(_room(status=RoomStatus.IN_PROGRESS), buffer)
        # creator, players, eliminated, player_count, max_players, entry_fee
        status_offset = HEADER_SIZE + 32 + 32 * ROOM_CAPACITY + ROOM_CAPACITY + 1 + 1 + 8
        assert buffer[status_offset] == 1

    def test_re_encode_clears_stale_bytes(self):
        buffer = bytearray(b"\xaa" * ROOM_SIZE)
        encode_room(_room(), buffer)
        length = int.from_bytes(buffer[:HEADER_SIZE], "little")
        assert b"\xaa" not in buffer[HEADER_SIZE + length :]

    def test_decode_shorter_than_header(self):
        with pytest.raises(MalformedStorageError, match="shorter than the length header"):
            decode_room(b"\x01\x00")

    def test_decode_shorter_than_declared_payload(self):
        buffer = bytearray(ROOM_SIZE)
        encode_room(_room(), buffer)
        with pytest.raises(MalformedStorageError, match="payload bytes"):
            decode_room(buffer[:100])

    def test_decode_empty_slot(self):
        with pytest.raises(MalformedStorageError):
            decode_room(bytes(ROOM_SIZE))

    def test_decode_invalid_status_variant(self):
        buffer = bytearray(ROOM_SIZE)
        encode_room(_room(), buffer)
        status_offset = HEADER_SIZE + 32 + 32 * ROOM_CAPACITY + ROOM_CAPACITY + 1 + 1 + 8
        buffer[status_offset] = 7
        with pytest.raises(MalformedStorageError):
            decode_room(buffer)

    def test_decode_out_of_bounds_count(self):
        buffer = bytearray(ROOM_SIZE)
        encode_room(_room(), buffer)
        buffer[HEADER_SIZE + 32 + 32 * ROOM_CAPACITY + ROOM_CAPACITY] = 11
        with pytest.raises(MalformedStorageError, match="field bounds"):
            decode_room(buffer)

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"player_count": 5}, "exceeds max_players"),
            ({"players": (CREATOR, CREATOR) + (Address.default(),) * 8, "player_count": 2}, "same player twice"),
            ({"eliminated": (False, True) + (False,) * 8}, "unoccupied slot"),
            ({"winner": CREATOR}, "winner must be set"),
            ({"status": RoomStatus.COMPLETED}, "winner must be set"),
            ({"status": RoomStatus.IN_PROGRESS, "prize_claimed": True}, "prize_claimed"),
        ],
    )
    def test_decode_inconsistent_room(self, overrides, message):
        buffer = bytearray(ROOM_SIZE)
        encode_room(_room(**overrides), buffer)
        with pytest.raises(MalformedStorageError, match=message):
            decode_room(buffer)

    def test_constructing_inconsistent_room_fails(self):
        with pytest.raises(ValueError, match="winner must be set"):
            Room.model_validate({**_room().model_dump(), "winner": CREATOR})

    def test_encode_into_small_slot(self):
        with pytest.raises(CapacityExceededError):
            encode_room(_room(), bytearray(ROOM_SIZE - 1))


class TestGlobalGameCodec:
    def test_round_trip(self):
        game = GlobalGame(
            total_pool=123,
            platform_fee_collected=4,
            min_stake=50_000_000,
            max_stake=10_000_000_000,
            active_players=2,
            total_players=5,
            platform_fee_percent=5,
            server_authority=wallet("auth"),
            created_at=-5,
        )
        buffer = bytearray(GLOBAL_GAME_SIZE)
        encode_global_game(game, buffer)
        assert decode_global_game(buffer) == game

    def test_encode_into_small_slot(self):
        game = GlobalGame(min_stake=1, max_stake=2, platform_fee_percent=5, server_authority=wallet("a"), created_at=0)
        with pytest.raises(CapacityExceededError):
            encode_global_game(game, bytearray(GLOBAL_GAME_SIZE - 1))


class TestPlayerStateCodec:
    state = PlayerState(
        pubkey=wallet("alice"),
        stake_amount=100_000_000,
        current_value=123_456_789,
        total_earned=7,
        is_active=True,
        joined_at=1_700_000_000,
        last_cashout=0,
    )

    def test_exactly_73_bytes_without_header(self):
        buffer = bytearray(PLAYER_STATE_SIZE)
        encode_player_state(self.state, buffer)
        assert buffer[:32] == bytes(wallet("alice"))
        assert decode_player_state(buffer) == self.state

    def test_current_value_at_offset_40(self):
        buffer = bytearray(PLAYER_STATE_SIZE)
        encode_player_state(self.state, buffer)
        assert int.from_bytes(buffer[40:48], "little") == 123_456_789

    @pytest.mark.parametrize("size", [72, 74])
    def test_decode_requires_exact_size(self, size):
        with pytest.raises(MalformedStorageError, match="expected 73 bytes"):
            decode_player_state(bytes(size))

    def test_decode_invalid_bool(self):
        buffer = bytearray(PLAYER_STATE_SIZE)
        encode_player_state(self.state, buffer)
        buffer[56] = 2
        with pytest.raises(MalformedStorageError):
            decode_player_state(buffer)


class TestJsonView:
    def test_room_json_uses_base58_and_names(self):
        dumped = _room().model_dump(mode="json")
        assert dumped["creator"] == str(CREATOR)
        assert dumped["status"] == "waiting_for_players"
        assert dumped["game_id"] == "00" * 16
