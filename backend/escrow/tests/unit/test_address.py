import hashlib

import pytest

from escrow.logic.address import (
    PDA_MARKER,
    Address,
    b58decode,
    b58encode,
    create_program_address,
    find_global_game_address,
    find_player_state_address,
    find_program_address,
    find_room_address,
    is_on_curve,
    room_seeds,
)
from escrow.logic.settings import DEFAULT_PLATFORM_WALLET, DEFAULT_ROOM_PROGRAM_ID
from escrow.tests.helpers.ledger import wallet

PROGRAM = Address.from_base58(DEFAULT_ROOM_PROGRAM_ID)

# Compressed ed25519 base point (y = 4/5).
ED25519_BASE_POINT = bytes.fromhex("5866666666666666666666666666666666666666666666666666666666666666")


class TestBase58:
    def test_round_trip_known_address(self):
        assert b58encode(b58decode(DEFAULT_PLATFORM_WALLET)) == DEFAULT_PLATFORM_WALLET

    def test_leading_zero_bytes_become_ones(self):
        assert b58encode(bytes(32)) == "1" * 32
        assert b58decode("1" * 32) == bytes(32)

    def test_rejects_characters_outside_alphabet(self):
        with pytest.raises(ValueError, match="invalid base58 character '0'"):
            b58decode("0OIl")


class TestAddress:
    def test_requires_32_bytes(self):
        with pytest.raises(ValueError, match="32 bytes"):
            Address(b"short")

    def test_str_is_base58(self):
        assert str(Address.from_base58(DEFAULT_PLATFORM_WALLET)) == DEFAULT_PLATFORM_WALLET

    def test_default_is_all_zero(self):
        assert Address.default().is_default()
        assert not wallet("alice").is_default()

    def test_compares_as_bytes(self):
        raw = bytes(range(32))
        assert Address(raw) == raw
        assert hash(Address(raw)) == hash(raw)


class TestCurveCheck:
    def test_base_point_is_on_curve(self):
        assert is_on_curve(ED25519_BASE_POINT)

    def test_identity_is_on_curve(self):
        assert is_on_curve((1).to_bytes(32, "little"))


class TestProgramAddress:
    def test_find_is_deterministic_and_off_curve(self):
        seeds = room_seeds(wallet("alice"), 3)
        first = find_program_address(seeds, PROGRAM)
        assert find_program_address(seeds, PROGRAM) == first
        address, bump = first
        assert not is_on_curve(address)
        assert 0 <= bump <= 255

    def test_matches_sha256_construction(self):
        seeds = room_seeds(wallet("alice"), 3)
        address, bump = find_program_address(seeds, PROGRAM)
        digest = hashlib.sha256(b"".join([*seeds, bytes([bump]), PROGRAM, PDA_MARKER])).digest()
        assert address == digest

    def test_create_with_found_bump_reproduces_address(self):
        seeds = room_seeds(wallet("alice"), 3)
        address, bump = find_program_address(seeds, PROGRAM)
        assert create_program_address([*seeds, bytes([bump])], PROGRAM) == address

    def test_different_inputs_give_different_addresses(self):
        base = find_room_address(wallet("alice"), 0, PROGRAM)[0]
        assert find_room_address(wallet("alice"), 1, PROGRAM)[0] != base
        assert find_room_address(wallet("bob"), 0, PROGRAM)[0] != base
        assert find_room_address(wallet("alice"), 0, wallet("other-program"))[0] != base

    def test_singleton_and_player_state_addresses_differ(self):
        game, _ = find_global_game_address(PROGRAM)
        state, _ = find_player_state_address(wallet("alice"), PROGRAM)
        assert game != state

    def test_rejects_long_seed(self):
        with pytest.raises(ValueError, match="seed longer than 32"):
            create_program_address([bytes(33)], PROGRAM)

    def test_rejects_too_many_seeds(self):
        with pytest.raises(ValueError, match="at most 16 seeds"):
            create_program_address([b"x"] * 17, PROGRAM)
