"""Wire encoding enums shared by the record codecs and instruction decoding.

These IntEnum classes fix the integer assignments of the on-ledger formats.
Changing a value breaks every stored record or submitted instruction that
uses it.
"""

from enum import IntEnum


class WireRoomStatus(IntEnum):
    """Borsh variant index of Room.status."""

    WAITING_FOR_PLAYERS = 0
    IN_PROGRESS = 1
    COMPLETED = 2


class WireRoomInstruction(IntEnum):
    """Leading tag byte of a room program instruction."""

    CREATE_ROOM = 0
    JOIN_ROOM = 1
    START_GAME = 2
    ELIMINATE_PLAYER = 3
    END_GAME = 4
    CLAIM_PRIZE = 5
    CANCEL_ROOM = 6


class WireGlobalInstruction(IntEnum):
    """Leading tag byte of a global game program instruction."""

    INITIALIZE_GAME = 0
    JOIN_GAME = 1
    UPDATE_PLAYER_VALUE = 2
    CASH_OUT = 3
    UPDATE_GAME_PARAMS = 4
    FORCE_CLEANUP = 5
