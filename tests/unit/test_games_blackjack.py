"""Unit tests for BlackjackService with an in-memory state store."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from src.ag_common.errors import GameNotFoundError
from src.ag_games.application.blackjack import BlackjackService, natural_outcome, showdown
from src.ag_games.domain.cards import Card, new_deck
from tests.conftest import make_wallet

_BJ = "src.ag_games.application.blackjack"


def _deck(*ranks: str) -> list[Card]:
    """Deal order: player, dealer, player, dealer, then draws."""
    return [Card(r, "♥") for r in ranks] + new_deck()


@pytest.fixture
def wallets() -> AsyncMock:
    mock = AsyncMock()
    mock.debit.return_value = make_wallet(stoneworks_dollar=90)
    mock.credit.return_value = make_wallet(stoneworks_dollar=115)
    mock.get_wallet.return_value = make_wallet(stoneworks_dollar=90)
    return mock


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(state_store, wallets: AsyncMock, scripted_rng) -> BlackjackService:
    return BlackjackService(
        store=state_store, history=AsyncMock(), wallets=wallets, rng=scripted_rng()
    )


@pytest.fixture(autouse=True)
def write_tx():
    with patch(
        "src.ag_games.application.rounds.write_transaction", new_callable=AsyncMock
    ) as mock:
        yield mock


class TestOutcomes:
    def test_both_naturals_push(self) -> None:
        assert natural_outcome(True, True, Decimal("10")) == ("push", Decimal("10"), False)

    def test_player_natural_pays_three_to_two(self) -> None:
        result, payout, won = natural_outcome(True, False, Decimal("10"))
        assert result == "blackjack"
        assert payout == Decimal("25")
        assert won

    def test_dealer_natural(self) -> None:
        assert natural_outcome(False, True, Decimal("10"))[0] == "dealer_blackjack"

    def test_showdown(self) -> None:
        assert showdown(18, 22, Decimal("10"))[:2] == ("dealer_bust", Decimal("20"))
        assert showdown(20, 18, Decimal("10"))[0] == "win"
        assert showdown(18, 18, Decimal("10"))[:2] == ("push", Decimal("10"))
        assert showdown(17, 19, Decimal("10"))[:2] == ("loss", Decimal("0"))


class TestDeal:
    async def test_deal_hides_hole_card(
        self, service: BlackjackService, state_store, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        with patch(f"{_BJ}.shuffled_deck", return_value=_deck("10", "9", "7", "8")):
            resp = await service.deal(db, "u1", Decimal("10"))

        assert resp.game_over is False
        assert resp.player_value == 17
        assert len(resp.dealer_hand) == 1
        assert resp.dealer_value == 9
        assert f"blackjack:{resp.game_id}" in state_store.values
        wallets.debit.assert_awaited_once()
        db.commit.assert_awaited_once()

    async def test_player_natural_settles_immediately(
        self, service: BlackjackService, state_store, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        with patch(f"{_BJ}.shuffled_deck", return_value=_deck("A", "9", "K", "8")):
            resp = await service.deal(db, "u1", Decimal("10"))

        assert resp.game_over is True
        assert resp.result == "blackjack"
        assert resp.amount_change == Decimal("15")
        wallets.credit.assert_awaited_once()
        assert state_store.values == {}

    async def test_dealer_natural_loses_bet(
        self, service: BlackjackService, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        with patch(f"{_BJ}.shuffled_deck", return_value=_deck("9", "A", "8", "K")):
            resp = await service.deal(db, "u1", Decimal("10"))
        assert resp.result == "dealer_blackjack"
        assert resp.amount_change == Decimal("-10")
        wallets.credit.assert_not_awaited()


class TestPlay:
    async def _deal(self, service: BlackjackService, db: AsyncMock, *ranks: str) -> str:
        with patch(f"{_BJ}.shuffled_deck", return_value=_deck(*ranks)):
            return (await service.deal(db, "u1", Decimal("10"))).game_id

    async def test_hit_then_bust(
        self, service: BlackjackService, state_store, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        game_id = await self._deal(service, db, "10", "9", "7", "8", "5")
        resp = await service.hit(db, "u1", game_id)

        assert resp.game_over is True
        assert resp.result == "bust"
        assert resp.player_value == 22
        wallets.credit.assert_not_awaited()
        wallets.get_wallet.assert_awaited_once()
        assert state_store.values == {}

    async def test_hit_keeps_hand_alive(
        self, service: BlackjackService, state_store, db: AsyncMock
    ) -> None:
        game_id = await self._deal(service, db, "5", "9", "7", "8", "2")
        resp = await service.hit(db, "u1", game_id)
        assert resp.game_over is False
        assert resp.player_value == 14
        assert len(state_store.values[f"blackjack:{game_id}"]["player"]) == 3

    async def test_stand_push_refunds(
        self, service: BlackjackService, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        game_id = await self._deal(service, db, "10", "9", "7", "8")
        resp = await service.stand(db, "u1", game_id)
        assert resp.result == "push"
        assert resp.amount_change == Decimal("0")
        assert len(resp.dealer_hand) == 2

    async def test_dealer_draws_to_seventeen(
        self, service: BlackjackService, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        # dealer 6 + 5 = 11, draws K -> 21
        game_id = await self._deal(service, db, "10", "6", "9", "5", "K")
        resp = await service.stand(db, "u1", game_id)
        assert resp.dealer_value == 21
        assert resp.result == "loss"

    async def test_hand_pays_once(self, service: BlackjackService, db: AsyncMock) -> None:
        game_id = await self._deal(service, db, "10", "9", "K", "8")
        await service.stand(db, "u1", game_id)
        with pytest.raises(GameNotFoundError):
            await service.stand(db, "u1", game_id)

    async def test_other_user_cannot_play(self, service: BlackjackService, db: AsyncMock) -> None:
        game_id = await self._deal(service, db, "10", "9", "7", "8")
        with pytest.raises(GameNotFoundError):
            await service.hit(db, "u2", game_id)

    async def test_missing_game_id(self, service: BlackjackService, db: AsyncMock) -> None:
        with pytest.raises(GameNotFoundError, match="game_id is required"):
            await service.stand(db, "u1", None)

    async def test_failed_payment_restores_hand(
        self, service: BlackjackService, state_store, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        game_id = await self._deal(service, db, "10", "6", "9", "5", "K")
        before = state_store.values[f"blackjack:{game_id}"]
        wallets.credit.side_effect = RuntimeError("db down")
        wallets.get_wallet.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await service.stand(db, "u1", game_id)

        db.rollback.assert_awaited()
        assert state_store.values[f"blackjack:{game_id}"] == before

        wallets.get_wallet.side_effect = None
        resp = await service.stand(db, "u1", game_id)
        assert resp.result == "loss"
        assert resp.dealer_value == 21
