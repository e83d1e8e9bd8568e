"""Program configuration shared by the room and global game programs.

Built once at startup and passed to both programs. Tests construct
alternates with keyword overrides instead of patching module constants.
"""

from typing import Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from escrow.logic.address import Address
from escrow.logic.records import ROOM_CAPACITY

DEFAULT_PLATFORM_WALLET = "FEEfBE29dqRgC8qMv6f9YXTSNbX7LMN3Reo3UsYdoUd8"
DEFAULT_ROOM_PROGRAM_ID = "5vGU3fqNat5z6v7MHMT7Zb9v9Q788geefMXUsSCszQ6M"
DEFAULT_GLOBAL_PROGRAM_ID = "G1oBa1GameP1ayerPoo1111111111111111111111111"

LAMPORTS_PER_SOL = 1_000_000_000


class EscrowSettings(BaseSettings):
    model_config = {"env_prefix": "ESCROW_", "frozen": True, "arbitrary_types_allowed": True}

    room_program_id: Address = Field(default=DEFAULT_ROOM_PROGRAM_ID, validate_default=True)
    global_program_id: Address = Field(default=DEFAULT_GLOBAL_PROGRAM_ID, validate_default=True)
    platform_wallet: Address = Field(default=DEFAULT_PLATFORM_WALLET, validate_default=True)

    # Room variant
    room_fee_percent: int = Field(default=5, ge=0, le=100)
    min_room_players: int = Field(default=2, ge=2)
    max_room_players: int = Field(default=ROOM_CAPACITY, ge=2, le=ROOM_CAPACITY)
    room_slot_cap: int = Field(default=50, ge=1, le=256)
    min_duration_minutes: int = Field(default=5, ge=1)
    max_duration_minutes: int = Field(default=60, le=0xFFFF)
    min_map_size: int = Field(default=1000, ge=1)
    max_map_size: int = Field(default=10000, le=0xFFFF)

    # Global variant
    default_min_stake: int = Field(default=LAMPORTS_PER_SOL // 20, ge=1)
    default_max_stake: int = Field(default=10 * LAMPORTS_PER_SOL, ge=1)
    default_global_fee_percent: int = Field(default=5, ge=0)
    global_fee_cap: int = Field(default=10, ge=0, le=100)

    @field_validator("room_program_id", "global_program_id", "platform_wallet", mode="before")
    @classmethod
    def _parse_address(cls, v: str | bytes) -> Address:
        if isinstance(v, Address):
            return v
        if isinstance(v, str):
            return Address.from_base58(v)
        return Address(v)

    @model_validator(mode="after")
    def _check_ranges(self) -> Self:
        if self.min_room_players > self.max_room_players:
            raise ValueError("min_room_players must not exceed max_room_players")
        if self.min_duration_minutes > self.max_duration_minutes:
            raise ValueError("min_duration_minutes must not exceed max_duration_minutes")
        if self.min_map_size > self.max_map_size:
            raise ValueError("min_map_size must not exceed max_map_size")
        if self.default_min_stake > self.default_max_stake:
            raise ValueError("default_min_stake must not exceed default_max_stake")
        if self.default_global_fee_percent > self.global_fee_cap:
            raise ValueError("default_global_fee_percent must not exceed global_fee_cap")
        if self.room_program_id == self.global_program_id:
            raise ValueError("room and global programs need distinct ids")
        return self
