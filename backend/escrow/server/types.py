from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from escrow.logic.accounts import AccountMeta
from escrow.logic.address import Address
from escrow.logic.records import U64_MAX

MAX_INVOCATION_ACCOUNTS = 32
MAX_INSTRUCTION_BYTES = 1232  # one transaction packet


def _parse_address(v: object) -> object:
    if isinstance(v, str):
        return Address.from_base58(v)
    return v


Base58Address = Annotated[Address, BeforeValidator(_parse_address)]


class AccountMetaSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    key: Base58Address
    is_signer: bool = False
    is_writable: bool = False

    def to_meta(self) -> AccountMeta:
        return AccountMeta(key=self.key, is_signer=self.is_signer, is_writable=self.is_writable)


class InvocationRequest(BaseModel):
    """One instruction for the room or global program; data is hex-encoded."""

    model_config = ConfigDict(extra="forbid")

    program: Literal["room", "global"]
    accounts: list[AccountMetaSpec] = Field(max_length=MAX_INVOCATION_ACCOUNTS)
    data: str = Field(max_length=2 * MAX_INSTRUCTION_BYTES, pattern=r"^(?:[0-9a-fA-F]{2})*$")

    def instruction_bytes(self) -> bytes:
        return bytes.fromhex(self.data)


class AirdropRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    address: Base58Address
    lamports: int = Field(gt=0, le=U64_MAX, strict=True)
