from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from escrow.logic.address import Address
from escrow.logic.exceptions import LedgerError
from escrow.logic.records import PLAYER_STATE_SIZE, decode_global_game, decode_player_state, decode_room
from escrow.logic.settings import EscrowSettings
from escrow.messaging.router import GlobalGameProgram, RoomProgram
from escrow.runtime.journal import InvocationJournal
from escrow.runtime.ledger import InMemoryLedger
from escrow.server.settings import LedgerServerSettings
from escrow.server.types import AirdropRequest, InvocationRequest
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging
from shared.storage import LocalJournalStorage

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

    from escrow.logic.accounts import AccountInfo


_MAX_REQUEST_BODY_SIZE = 4096


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def _read_json(request: Request) -> dict[str, Any] | JSONResponse:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        return JSONResponse({"error": "Request body too large"}, status_code=413)
    try:
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)
    return body


async def submit_invocation(request: Request) -> JSONResponse:
    ledger: InMemoryLedger = request.app.state.ledger

    body = await _read_json(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        invocation = InvocationRequest(**body)
    except (TypeError, ValidationError):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    program = ledger.program(invocation.program)
    result = ledger.submit(
        program.program_id,
        [spec.to_meta() for spec in invocation.accounts],
        invocation.instruction_bytes(),
    )
    return JSONResponse(result.model_dump(mode="json"), status_code=200 if result.ok else 422)


def _describe_record(account: AccountInfo, settings: EscrowSettings) -> dict[str, Any] | None:
    """Decode the record an account holds when its owner is one of our programs."""
    try:
        if account.owner == settings.room_program_id:
            return {"type": "room", **decode_room(account.data).model_dump(mode="json")}
        if account.owner == settings.global_program_id:
            if len(account.data) == PLAYER_STATE_SIZE:
                return {"type": "player_state", **decode_player_state(account.data).model_dump(mode="json")}
            return {"type": "global_game", **decode_global_game(account.data).model_dump(mode="json")}
    except LedgerError as e:
        return {"type": "unreadable", "error_code": e.code.value}
    return None


async def get_account(request: Request) -> JSONResponse:
    ledger: InMemoryLedger = request.app.state.ledger
    escrow_settings: EscrowSettings = request.app.state.escrow_settings

    try:
        address = Address.from_base58(request.path_params["address"])
    except ValueError:
        return JSONResponse({"error": "Invalid address"}, status_code=400)

    account = ledger.get_account(address)
    if account is None:
        return JSONResponse({"error": "Account not found"}, status_code=404)

    return JSONResponse(
        {
            "address": str(address),
            "lamports": account.lamports,
            "owner": str(account.owner) if account.owner is not None else None,
            "data_length": len(account.data),
            "record": _describe_record(account, escrow_settings),
        }
    )


async def airdrop(request: Request) -> JSONResponse:
    ledger: InMemoryLedger = request.app.state.ledger

    body = await _read_json(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        airdrop_request = AirdropRequest(**body)
    except (TypeError, ValidationError):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    ledger.airdrop(airdrop_request.address, airdrop_request.lamports)
    return JSONResponse(
        {"address": str(airdrop_request.address), "lamports": ledger.balance(airdrop_request.address)},
    )


def create_app(
    settings: LedgerServerSettings | None = None,
    escrow_settings: EscrowSettings | None = None,
    ledger: InMemoryLedger | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = LedgerServerSettings()

    if escrow_settings is None:
        escrow_settings = EscrowSettings()

    # When the app builds its own ledger, it owns journal persistence.
    owned_journal: InvocationJournal | None = None

    if ledger is None:
        owned_journal = InvocationJournal()
        ledger = InMemoryLedger(
            [RoomProgram(escrow_settings), GlobalGameProgram(escrow_settings)],
            lamports_per_byte_year=settings.lamports_per_byte_year,
            genesis_timestamp=settings.genesis_timestamp,
            journal=owned_journal,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/invocations", submit_invocation, methods=["POST"]),
        Route("/accounts/{address}", get_account, methods=["GET"]),
        Route("/airdrop", airdrop, methods=["POST"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        if owned_journal is not None and len(owned_journal):
            owned_journal.save(LocalJournalStorage(settings.journal_dir), settings.journal_name)

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.escrow_settings = escrow_settings
    app.state.ledger = ledger

    logger.info(
        "ledger server ready",
        room_program=str(escrow_settings.room_program_id),
        global_program=str(escrow_settings.global_program_id),
    )
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = LedgerServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
