"""End-to-end sessions of the continuous global pool."""

from escrow.logic.records import GLOBAL_GAME_SIZE
from escrow.logic.settings import LAMPORTS_PER_SOL

GAME_RENT = (128 + GLOBAL_GAME_SIZE) * 3480 * 2


class TestGlobalSession:
    def test_eat_then_cash_out(self, ledger, initialized_pool, authority, settings, players):
        pool = initialized_pool
        alice, bob, carol = players[:3]
        stake = LAMPORTS_PER_SOL // 10
        for player in (alice, bob, carol):
            assert pool.join(player, stake).ok
        assert pool.game().total_pool == 3 * stake

        assert pool.update_value(authority, alice, bob, stake).ok
        assert pool.update_value(authority, alice, carol, stake).ok
        assert pool.game().active_players == 1

        before = ledger.balance(alice)
        assert pool.cash_out(alice).ok

        value = 3 * stake
        fee = value * 5 // 100
        assert ledger.balance(alice) == before + value - fee
        assert ledger.balance(settings.platform_wallet) == fee
        assert ledger.balance(pool.game_address) == GAME_RENT
        game = pool.game()
        assert game.total_pool == 0
        assert game.platform_fee_collected == fee
        assert game.active_players == 0
        assert game.total_players == 3

    def test_fee_change_applies_to_later_cash_outs(self, ledger, initialized_pool, authority, settings, players):
        pool = initialized_pool
        alice, bob = players[:2]
        pool.join(alice, 100_000_000)
        pool.join(bob, 100_000_000)

        pool.cash_out(alice)
        assert pool.update_params(authority, platform_fee_percent=10).ok
        pool.cash_out(bob)

        assert ledger.balance(settings.platform_wallet) == 5_000_000 + 10_000_000
        assert pool.game().platform_fee_collected == 15_000_000

    def test_player_returns_after_cash_out(self, initialized_pool, players):
        pool = initialized_pool
        alice = players[0]
        pool.join(alice, 100_000_000)
        pool.cash_out(alice)

        assert pool.join(alice, 60_000_000).ok

        state = pool.player_state(alice)
        assert state.is_active
        assert state.current_value == 60_000_000
        assert state.stake_amount == 160_000_000
        assert state.total_earned == 95_000_000
        assert pool.game().total_players == 1
