"""
Schema-driven Borsh serialization.

Borsh is the deterministic little-endian layout the on-ledger records and
instruction buffers use:

    u8/u16/u32/u64/i64   fixed-width little-endian integers
    bool                 one byte, 0 or 1 (anything else is rejected)
    pubkey               32 raw bytes
    [T; N]               N consecutive T values, no length prefix
    Option<T>            one tag byte (0 = None, 1 = Some) then T when present
    String               u32 byte length then UTF-8 bytes
    enum (unit)          one variant byte

A schema is a tree of BorshType objects. Struct schemas map to and from
plain dicts so pydantic models can validate the result.
"""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from escrow.logic.address import ADDRESS_LENGTH, Address

if TYPE_CHECKING:
    from enum import IntEnum


class BorshError(ValueError):
    """Raised when a value cannot be packed or a buffer cannot be unpacked."""


class BorshType(ABC):
    @abstractmethod
    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        ...

    @abstractmethod
    def unpack(self, data: bytes, offset: int) -> tuple[Any, int]:
        """Read one value at offset and return it with the next offset."""
        ...


def _take(data: bytes, offset: int, size: int) -> bytes:
    end = offset + size
    if end > len(data):
        raise BorshError(f"unexpected end of buffer: need {size} bytes at offset {offset}, have {len(data) - offset}")
    return data[offset:end]


class _Int(BorshType):
    def __init__(self, fmt: str) -> None:
        self._struct = struct.Struct(fmt)

    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        if not isinstance(value, int) or isinstance(value, bool):
            raise BorshError(f"expected int, got {type(value).__name__}")
        try:
            out += self._struct.pack(value)
        except struct.error as e:
            raise BorshError(f"integer {value} out of range: {e}") from e

    def unpack(self, data: bytes, offset: int) -> tuple[int, int]:
        chunk = _take(data, offset, self._struct.size)
        return self._struct.unpack(chunk)[0], offset + self._struct.size


U8 = _Int("<B")
U16 = _Int("<H")
U32 = _Int("<I")
U64 = _Int("<Q")
I64 = _Int("<q")


class _Bool(BorshType):
    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        if not isinstance(value, bool):
            raise BorshError(f"expected bool, got {type(value).__name__}")
        out.append(1 if value else 0)

    def unpack(self, data: bytes, offset: int) -> tuple[bool, int]:
        byte = _take(data, offset, 1)[0]
        if byte > 1:
            raise BorshError(f"invalid bool byte {byte} at offset {offset}")
        return byte == 1, offset + 1


BOOL = _Bool()


class FixedBytes(BorshType):
    def __init__(self, length: int) -> None:
        self.length = length

    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        if not isinstance(value, (bytes, bytearray)) or len(value) != self.length:
            raise BorshError(f"expected {self.length} bytes")
        out += value

    def unpack(self, data: bytes, offset: int) -> tuple[bytes, int]:
        return bytes(_take(data, offset, self.length)), offset + self.length


class _Pubkey(FixedBytes):
    def __init__(self) -> None:
        super().__init__(ADDRESS_LENGTH)

    def unpack(self, data: bytes, offset: int) -> tuple[Address, int]:
        raw, offset = super().unpack(data, offset)
        return Address(raw), offset


PUBKEY = _Pubkey()


class FixedArray(BorshType):
    def __init__(self, item: BorshType, length: int) -> None:
        self.item = item
        self.length = length

    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        if len(value) != self.length:
            raise BorshError(f"expected array of {self.length}, got {len(value)}")
        for element in value:
            self.item.pack(element, out)

    def unpack(self, data: bytes, offset: int) -> tuple[tuple[Any, ...], int]:
        items = []
        for _ in range(self.length):
            element, offset = self.item.unpack(data, offset)
            items.append(element)
        return tuple(items), offset


class Option(BorshType):
    def __init__(self, inner: BorshType) -> None:
        self.inner = inner

    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        if value is None:
            out.append(0)
            return
        out.append(1)
        self.inner.pack(value, out)

    def unpack(self, data: bytes, offset: int) -> tuple[Any, int]:
        tag = _take(data, offset, 1)[0]
        if tag == 0:
            return None, offset + 1
        if tag == 1:
            return self.inner.unpack(data, offset + 1)
        raise BorshError(f"invalid option tag {tag} at offset {offset}")


class _String(BorshType):
    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        if not isinstance(value, str):
            raise BorshError(f"expected str, got {type(value).__name__}")
        encoded = value.encode("utf-8")
        U32.pack(len(encoded), out)
        out += encoded

    def unpack(self, data: bytes, offset: int) -> tuple[str, int]:
        length, offset = U32.unpack(data, offset)
        raw = _take(data, offset, length)
        try:
            return raw.decode("utf-8"), offset + length
        except UnicodeDecodeError as e:
            raise BorshError(f"invalid UTF-8 string at offset {offset}") from e


STRING = _String()


class UnitEnum(BorshType):
    """Fieldless enum encoded as its variant index."""

    def __init__(self, enum_cls: type[IntEnum]) -> None:
        self.enum_cls = enum_cls

    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        try:
            variant = self.enum_cls(value)
        except ValueError as e:
            raise BorshError(f"invalid {self.enum_cls.__name__} value {value!r}") from e
        U8.pack(int(variant), out)

    def unpack(self, data: bytes, offset: int) -> tuple[IntEnum, int]:
        raw, offset = U8.unpack(data, offset)
        try:
            return self.enum_cls(raw), offset
        except ValueError as e:
            raise BorshError(f"invalid {self.enum_cls.__name__} variant {raw}") from e


class Struct(BorshType):
    """Ordered named fields, packed back to back."""

    def __init__(self, *fields: tuple[str, BorshType]) -> None:
        self.fields = fields

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.fields)

    def pack(self, value: Any, out: bytearray) -> None:  # noqa: ANN401
        for name, field_type in self.fields:
            try:
                field_type.pack(value[name], out)
            except KeyError as e:
                raise BorshError(f"missing field {name!r}") from e
            except BorshError as e:
                raise BorshError(f"field {name!r}: {e}") from e

    def unpack(self, data: bytes, offset: int) -> tuple[dict[str, Any], int]:
        result: dict[str, Any] = {}
        for name, field_type in self.fields:
            result[name], offset = field_type.unpack(data, offset)
        return result, offset


def serialize(schema: BorshType, value: Any) -> bytes:  # noqa: ANN401
    out = bytearray()
    schema.pack(value, out)
    return bytes(out)


def deserialize(schema: BorshType, data: bytes) -> Any:  # noqa: ANN401
    """Unpack data, requiring the schema to consume every byte."""
    value, end = schema.unpack(bytes(data), 0)
    if end != len(data):
        raise BorshError(f"{len(data) - end} trailing bytes after payload")
    return value
