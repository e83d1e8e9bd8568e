import pytest

from escrow.logic.settings import EscrowSettings
from escrow.messaging.router import GlobalGameProgram, RoomProgram
from escrow.runtime.journal import InvocationJournal
from escrow.runtime.ledger import InMemoryLedger
from escrow.tests.helpers.ledger import GENESIS, GlobalClient, RoomClient, fund


@pytest.fixture
def settings() -> EscrowSettings:
    return EscrowSettings()


@pytest.fixture
def journal() -> InvocationJournal:
    return InvocationJournal()


@pytest.fixture
def ledger(settings, journal) -> InMemoryLedger:
    return InMemoryLedger(
        [RoomProgram(settings), GlobalGameProgram(settings)],
        genesis_timestamp=GENESIS,
        journal=journal,
    )


@pytest.fixture
def rooms(ledger, settings) -> RoomClient:
    return RoomClient(ledger, settings)


@pytest.fixture
def pool(ledger, settings) -> GlobalClient:
    return GlobalClient(ledger, settings)


@pytest.fixture
def players(ledger):
    """Ten funded wallets: alice, bob, carol, dave, ..."""
    return fund(ledger, "alice", "bob", "carol", "dave", "erin", "frank", "grace", "heidi", "ivan", "judy")


@pytest.fixture
def authority(ledger):
    return fund(ledger, "server-authority")[0]


@pytest.fixture
def initialized_pool(pool, authority) -> GlobalClient:
    result = pool.initialize(authority)
    assert result.ok, result
    return pool
