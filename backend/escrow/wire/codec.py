"""
Record codecs mapping Borsh payloads onto fixed-size account slots.

Slot layout (SlotCodec)
-----------------------
    bytes 0..4        payload length, u32 little-endian
    bytes 4..4+n      Borsh payload
    remaining bytes   zero padding up to the slot size

Exact layout (ExactCodec)
-------------------------
The payload fills the account data exactly, with no header or padding.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from escrow.logic.exceptions import CapacityExceededError, MalformedStorageError
from escrow.wire.borsh import BorshError, deserialize, serialize

if TYPE_CHECKING:
    from escrow.wire.borsh import Struct

HEADER_SIZE = 4


class SlotCodec:
    """Length-prefixed record inside a zero-padded slot of slot_size bytes."""

    def __init__(self, schema: Struct, slot_size: int) -> None:
        self.schema = schema
        self.slot_size = slot_size

    def decode(self, buffer: bytes | bytearray) -> dict[str, Any]:
        if len(buffer) < HEADER_SIZE:
            raise MalformedStorageError(f"buffer of {len(buffer)} bytes is shorter than the length header")
        payload_len = int.from_bytes(buffer[:HEADER_SIZE], "little")
        if len(buffer) < HEADER_SIZE + payload_len:
            raise MalformedStorageError(
                f"header declares {payload_len} payload bytes but only {len(buffer) - HEADER_SIZE} are present",
            )
        try:
            return deserialize(self.schema, bytes(buffer[HEADER_SIZE : HEADER_SIZE + payload_len]))
        except BorshError as e:
            raise MalformedStorageError(f"payload does not match record schema: {e}") from e

    def encode(self, value: dict[str, Any], buffer: bytearray) -> None:
        """Write value into buffer in place. The buffer keeps its length."""
        if len(buffer) < self.slot_size:
            raise CapacityExceededError(f"slot of {len(buffer)} bytes is smaller than record size {self.slot_size}")
        buffer[:] = bytes(len(buffer))
        try:
            payload = serialize(self.schema, value)
        except BorshError as e:
            raise MalformedStorageError(f"record cannot be encoded: {e}") from e
        if HEADER_SIZE + len(payload) > len(buffer):
            raise CapacityExceededError(f"payload of {len(payload)} bytes does not fit slot of {len(buffer)} bytes")
        buffer[:HEADER_SIZE] = len(payload).to_bytes(HEADER_SIZE, "little")
        buffer[HEADER_SIZE : HEADER_SIZE + len(payload)] = payload


class ExactCodec:
    """Record whose Borsh payload is exactly the account data."""

    def __init__(self, schema: Struct, size: int) -> None:
        self.schema = schema
        self.slot_size = size

    def decode(self, buffer: bytes | bytearray) -> dict[str, Any]:
        if len(buffer) != self.slot_size:
            raise MalformedStorageError(f"expected {self.slot_size} bytes of record data, got {len(buffer)}")
        try:
            return deserialize(self.schema, bytes(buffer))
        except BorshError as e:
            raise MalformedStorageError(f"payload does not match record schema: {e}") from e

    def encode(self, value: dict[str, Any], buffer: bytearray) -> None:
        if len(buffer) < self.slot_size:
            raise CapacityExceededError(f"slot of {len(buffer)} bytes is smaller than record size {self.slot_size}")
        buffer[:] = bytes(len(buffer))
        try:
            payload = serialize(self.schema, value)
        except BorshError as e:
            raise MalformedStorageError(f"record cannot be encoded: {e}") from e
        if len(payload) != self.slot_size:
            raise CapacityExceededError(f"payload of {len(payload)} bytes does not match record size {self.slot_size}")
        buffer[: self.slot_size] = payload
