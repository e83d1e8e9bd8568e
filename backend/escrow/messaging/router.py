"""Instruction dispatch for the room and global game programs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from escrow.logic import global_game, room
from escrow.logic.runtime import ProgramContext
from escrow.messaging.instructions import decode_global_instruction, decode_room_instruction
from escrow.wire.enums import WireGlobalInstruction, WireRoomInstruction

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from enum import IntEnum

    from escrow.logic.accounts import AccountInfo
    from escrow.logic.address import Address
    from escrow.logic.runtime import Runtime
    from escrow.logic.settings import EscrowSettings

    Handler = Callable[..., None]


class Program(Protocol):
    """An on-ledger program as the runtime invokes it."""

    @property
    def program_id(self) -> Address: ...

    @property
    def name(self) -> str: ...

    def process(self, runtime: Runtime, accounts: Sequence[AccountInfo], data: bytes) -> None: ...


ROOM_HANDLERS: Mapping[WireRoomInstruction, Handler] = {
    WireRoomInstruction.CREATE_ROOM: room.process_create_room,
    WireRoomInstruction.JOIN_ROOM: room.process_join_room,
    WireRoomInstruction.START_GAME: room.process_start_game,
    WireRoomInstruction.ELIMINATE_PLAYER: room.process_eliminate_player,
    WireRoomInstruction.END_GAME: room.process_end_game,
    WireRoomInstruction.CLAIM_PRIZE: room.process_claim_prize,
    WireRoomInstruction.CANCEL_ROOM: room.process_cancel_room,
}

GLOBAL_HANDLERS: Mapping[WireGlobalInstruction, Handler] = {
    WireGlobalInstruction.INITIALIZE_GAME: global_game.process_initialize_game,
    WireGlobalInstruction.JOIN_GAME: global_game.process_join_game,
    WireGlobalInstruction.UPDATE_PLAYER_VALUE: global_game.process_update_player_value,
    WireGlobalInstruction.CASH_OUT: global_game.process_cash_out,
    WireGlobalInstruction.UPDATE_GAME_PARAMS: global_game.process_update_game_params,
    WireGlobalInstruction.FORCE_CLEANUP: global_game.process_force_cleanup,
}


def _require_total(handlers: Mapping[Any, Handler], tags: type[IntEnum]) -> None:
    missing = [tag.name for tag in tags if tag not in handlers]
    if missing:
        raise RuntimeError(f"{tags.__name__} has no handler for {', '.join(missing)}")


_require_total(ROOM_HANDLERS, WireRoomInstruction)
_require_total(GLOBAL_HANDLERS, WireGlobalInstruction)


class _TaggedProgram:
    name = ""

    def __init__(self, program_id: Address, settings: EscrowSettings) -> None:
        self._program_id = program_id
        self._settings = settings

    @property
    def program_id(self) -> Address:
        return self._program_id

    def _decode(self, data: bytes) -> Any:  # noqa: ANN401
        raise NotImplementedError

    def _handler(self, tag: Any) -> Handler:  # noqa: ANN401
        raise NotImplementedError

    def process(self, runtime: Runtime, accounts: Sequence[AccountInfo], data: bytes) -> None:
        """Decode data and run the matching handler. Raises LedgerError on rejection."""
        instruction = self._decode(data)
        fields = {name: value for name, value in instruction if name != "tag"}
        ctx = ProgramContext(program_id=self._program_id, runtime=runtime, settings=self._settings)
        self._handler(instruction.tag)(ctx, accounts, **fields)


class RoomProgram(_TaggedProgram):
    name = "room"

    def __init__(self, settings: EscrowSettings) -> None:
        super().__init__(settings.room_program_id, settings)

    def _decode(self, data: bytes) -> Any:  # noqa: ANN401
        return decode_room_instruction(data)

    def _handler(self, tag: WireRoomInstruction) -> Handler:
        return ROOM_HANDLERS[tag]


class GlobalGameProgram(_TaggedProgram):
    name = "global"

    def __init__(self, settings: EscrowSettings) -> None:
        super().__init__(settings.global_program_id, settings)

    def _decode(self, data: bytes) -> Any:  # noqa: ANN401
        return decode_global_instruction(data)

    def _handler(self, tag: WireGlobalInstruction) -> Handler:
        return GLOBAL_HANDLERS[tag]
