import pytest
from starlette.testclient import TestClient

from escrow.logic.records import ROOM_SIZE
from escrow.messaging.instructions import CreateRoom, encode_room_instruction
from escrow.server.app import create_app
from escrow.server.settings import LedgerServerSettings
from escrow.tests.helpers.ledger import RENT_SYSVAR, SYSTEM_PROGRAM, wallet
from shared.storage import LocalJournalStorage

ROOM_RENT = (128 + ROOM_SIZE) * 3480 * 2


def _create_room_body(creator, room):
    data = encode_room_instruction(
        CreateRoom(max_players=4, entry_fee=100, room_slot=0, duration_minutes=10, map_size=2000)
    )
    return {
        "program": "room",
        "accounts": [
            {"key": str(creator), "is_signer": True, "is_writable": True},
            {"key": str(room), "is_writable": True},
            {"key": str(SYSTEM_PROGRAM)},
            {"key": str(RENT_SYSVAR)},
        ],
        "data": data.hex(),
    }


class TestLedgerServer:
    @pytest.fixture
    def server_settings(self, tmp_path):
        return LedgerServerSettings(journal_dir=str(tmp_path / "journals"))

    @pytest.fixture
    def client(self, server_settings, settings):
        return TestClient(create_app(settings=server_settings, escrow_settings=settings))

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_airdrop(self, client):
        alice = wallet("alice")
        response = client.post("/airdrop", json={"address": str(alice), "lamports": 500})
        assert response.status_code == 200
        assert response.json() == {"address": str(alice), "lamports": 500}

    @pytest.mark.parametrize(
        "body",
        [
            {"address": "not-base58!", "lamports": 1},
            {"address": str(wallet("alice")), "lamports": 0},
            {"address": str(wallet("alice")), "lamports": "5"},
            {"address": str(wallet("alice"))},
        ],
    )
    def test_airdrop_rejects_bad_body(self, client, body):
        assert client.post("/airdrop", json=body).status_code == 400

    def test_body_too_large(self, client):
        response = client.post("/airdrop", content=b"{" + b" " * 5000 + b"}")
        assert response.status_code == 413

    def test_invalid_json(self, client):
        assert client.post("/invocations", content=b"[").status_code == 400

    def test_create_room_and_read_it_back(self, client, settings, rooms):
        creator = wallet("alice")
        room = rooms.address(creator)
        client.post("/airdrop", json={"address": str(creator), "lamports": 10**9})

        response = client.post("/invocations", json=_create_room_body(creator, room))
        assert response.status_code == 200
        assert response.json() == {"ok": True, "error_code": None, "message": None}

        account = client.get(f"/accounts/{room}").json()
        assert account["lamports"] == ROOM_RENT + 100
        assert account["owner"] == str(settings.room_program_id)
        assert account["data_length"] == ROOM_SIZE
        record = account["record"]
        assert record["type"] == "room"
        assert record["creator"] == str(creator)
        assert record["status"] == "waiting_for_players"
        assert record["entry_fee"] == 100

    def test_rejected_invocation(self, client, rooms):
        creator = wallet("alice")
        response = client.post("/invocations", json=_create_room_body(creator, rooms.address(creator)))
        assert response.status_code == 422
        assert response.json()["error_code"] == "insufficient_funds"

    def test_invocation_with_bad_hex(self, client):
        body = {"program": "room", "accounts": [], "data": "zz"}
        assert client.post("/invocations", json=body).status_code == 400

    def test_unknown_program_name(self, client):
        body = {"program": "arcade", "accounts": [], "data": ""}
        assert client.post("/invocations", json=body).status_code == 400

    def test_plain_wallet_has_no_record(self, client):
        alice = wallet("alice")
        client.post("/airdrop", json={"address": str(alice), "lamports": 7})
        assert client.get(f"/accounts/{alice}").json()["record"] is None

    def test_missing_account(self, client):
        assert client.get(f"/accounts/{wallet('nobody')}").status_code == 404

    def test_invalid_address(self, client):
        assert client.get("/accounts/0OIl").status_code == 400

    def test_journal_saved_on_shutdown(self, server_settings, settings, tmp_path):
        alice = wallet("alice")
        with TestClient(create_app(settings=server_settings, escrow_settings=settings)) as client:
            client.post("/airdrop", json={"address": str(alice), "lamports": 5})

        saved = LocalJournalStorage(server_settings.journal_dir).load_journal(server_settings.journal_name)
        assert saved

    def test_provided_ledger_is_not_journaled_by_app(self, server_settings, settings, ledger):
        with TestClient(create_app(settings=server_settings, escrow_settings=settings, ledger=ledger)) as client:
            client.post("/airdrop", json={"address": str(wallet("alice")), "lamports": 5})

        with pytest.raises(FileNotFoundError):
            LocalJournalStorage(server_settings.journal_dir).load_journal(server_settings.journal_name)
