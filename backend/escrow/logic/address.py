"""
Ledger addresses and program-derived address (PDA) derivation.

An Address is a 32-byte public key shown as base58 text. A program-derived
address is the SHA-256 of the seed list, one disambiguation ("bump") byte,
the owning program id, and a fixed marker, searched from bump 255 downward
until the digest is not a valid ed25519 point. Nobody holds a private key for
such an address, so only the owning program can authorize transfers out of it
by presenting the same seeds.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

ADDRESS_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {c: i for i, c in enumerate(_BASE58_ALPHABET)}

# ed25519 field prime and curve constant d = -121665/121666
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def b58encode(raw: bytes) -> str:
    """Encode bytes as base58 text (Bitcoin alphabet)."""
    num = int.from_bytes(raw, "big")
    chars: list[str] = []
    while num:
        num, rem = divmod(num, 58)
        chars.append(_BASE58_ALPHABET[rem])
    leading = len(raw) - len(raw.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(chars))


def b58decode(text: str) -> bytes:
    """Decode base58 text. Raises ValueError on characters outside the alphabet."""
    num = 0
    for c in text:
        if c not in _BASE58_INDEX:
            raise ValueError(f"invalid base58 character {c!r}")
        num = num * 58 + _BASE58_INDEX[c]
    leading = len(text) - len(text.lstrip("1"))
    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * leading + body


class Address(bytes):
    """A 32-byte ledger address. Compares and hashes as its raw bytes."""

    __slots__ = ()

    def __new__(cls, raw: bytes = bytes(ADDRESS_LENGTH)) -> Address:
        if len(raw) != ADDRESS_LENGTH:
            raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
        return super().__new__(cls, raw)

    @classmethod
    def from_base58(cls, text: str) -> Address:
        return cls(b58decode(text))

    @classmethod
    def default(cls) -> Address:
        """The all-zero address used for unused roster slots."""
        return cls(bytes(ADDRESS_LENGTH))

    def is_default(self) -> bool:
        return not any(self)

    def __str__(self) -> str:
        return b58encode(self)

    def __repr__(self) -> str:
        return f"Address({b58encode(self)!r})"


def is_on_curve(raw: bytes) -> bool:
    """
    Return True if raw decompresses to a point on the ed25519 curve.

    The y coordinate is the low 255 bits reduced mod p. The point exists
    when (y^2 - 1) / (d*y^2 + 1) is a square in the field.
    """
    y = (int.from_bytes(raw, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    w = u * pow(v, _P - 2, _P) % _P
    return w == 0 or pow(w, (_P - 1) // 2, _P) == 1


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"at most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"seed longer than {MAX_SEED_LENGTH} bytes")


def create_program_address(seeds: Sequence[bytes], program_id: Address) -> Address | None:
    """Hash seeds (bump included) into an address, or None if it lands on the curve."""
    _check_seeds(seeds)
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(program_id)
    hasher.update(PDA_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        return None
    return Address(digest)


def find_program_address(seeds: Sequence[bytes], program_id: Address) -> tuple[Address, int]:
    """Return the first off-curve address and its bump, searching 255 down to 0."""
    for bump in range(255, -1, -1):
        address = create_program_address([*seeds, bytes([bump])], program_id)
        if address is not None:
            return address, bump
    raise ValueError("no viable bump seed for program address")  # pragma: no cover


ROOM_SEED = b"solana_io"
GLOBAL_GAME_SEED = b"global_game"
PLAYER_STATE_SEED = b"player_state"


def room_seeds(creator: Address, room_slot: int) -> list[bytes]:
    return [ROOM_SEED, bytes(creator), bytes([room_slot])]


def global_game_seeds() -> list[bytes]:
    return [GLOBAL_GAME_SEED]


def player_state_seeds(player: Address) -> list[bytes]:
    return [PLAYER_STATE_SEED, bytes(player)]


def find_room_address(creator: Address, room_slot: int, program_id: Address) -> tuple[Address, int]:
    return find_program_address(room_seeds(creator, room_slot), program_id)


def find_global_game_address(program_id: Address) -> tuple[Address, int]:
    return find_program_address(global_game_seeds(), program_id)


def find_player_state_address(player: Address, program_id: Address) -> tuple[Address, int]:
    return find_program_address(player_state_seeds(player), program_id)
