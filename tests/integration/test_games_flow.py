"""Integration tests for the casino games (requires running PG + Redis).

Outcomes come from the live RNG, so assertions check balance bookkeeping
rather than specific results.
"""

import pytest
from httpx import AsyncClient

from tests.integration.conftest import bearer, fund, signup

pytestmark = pytest.mark.asyncio(loop_scope="session")


async def _player(client: AsyncClient, stoneworks_dollar: int = 100) -> dict:
    user = await signup(client)
    await fund(user["id"], stoneworks_dollar=stoneworks_dollar)
    return user


class TestCoinflip:
    async def test_balance_follows_outcome(self, client: AsyncClient) -> None:
        user = await _player(client)
        resp = await client.post(
            "/api/v1/games/coinflip",
            json={"betAmount": 10, "choice": "heads"},
            headers=bearer(user),
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["result"] in ("heads", "tails")
        assert data["amount_change"] in (10.0, -10.0)
        assert data["new_balance"] == 100 + data["amount_change"]

    async def test_bet_above_balance(self, client: AsyncClient) -> None:
        user = await _player(client, stoneworks_dollar=5)
        resp = await client.post(
            "/api/v1/games/coinflip",
            json={"betAmount": 10, "choice": "tails"},
            headers=bearer(user),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 2001


class TestPlinko:
    async def test_payout_is_bet_times_multiplier(self, client: AsyncClient) -> None:
        user = await _player(client)
        resp = await client.post(
            "/api/v1/games/plinko",
            json={"betAmount": 10, "rows": 12, "risk": "medium"},
            headers=bearer(user),
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert 0 <= data["landing_slot"] <= 12
        assert data["payout"] == pytest.approx(10 * data["multiplier"] * 0.95, abs=0.01)
        assert data["new_balance"] == pytest.approx(100 + data["amount_change"])

    async def test_unsupported_rows(self, client: AsyncClient) -> None:
        user = await _player(client)
        resp = await client.post(
            "/api/v1/games/plinko",
            json={"betAmount": 10, "rows": 10, "risk": "low"},
            headers=bearer(user),
        )
        assert resp.status_code == 422


class TestBlackjack:
    async def test_deal_then_stand(self, client: AsyncClient) -> None:
        user = await _player(client)
        deal = await client.post(
            "/api/v1/games/blackjack",
            json={"action": "deal", "betAmount": 10},
            headers=bearer(user),
        )
        assert deal.status_code == 200, deal.text
        data = deal.json()["data"]
        assert len(data["player_hand"]) == 2

        if not data["game_over"]:
            # Hole card stays hidden until the hand ends
            assert len(data["dealer_hand"]) == 1
            stand = await client.post(
                "/api/v1/games/blackjack",
                json={"action": "stand", "gameId": data["game_id"]},
                headers=bearer(user),
            )
            assert stand.status_code == 200, stand.text
            data = stand.json()["data"]

        assert data["game_over"] is True
        assert data["new_balance"] == pytest.approx(100 + data["amount_change"])

        replay = await client.post(
            "/api/v1/games/blackjack",
            json={"action": "stand", "gameId": data["game_id"]},
            headers=bearer(user),
        )
        assert replay.status_code == 404

    async def test_cannot_play_another_users_hand(self, client: AsyncClient) -> None:
        owner = await _player(client)
        other = await _player(client)
        deal = await client.post(
            "/api/v1/games/blackjack",
            json={"action": "deal", "betAmount": 10},
            headers=bearer(owner),
        )
        data = deal.json()["data"]
        if data["game_over"]:
            pytest.skip("natural blackjack ended the hand on the deal")

        resp = await client.post(
            "/api/v1/games/blackjack",
            json={"action": "hit", "gameId": data["game_id"]},
            headers=bearer(other),
        )
        assert resp.status_code == 404


class TestCrash:
    async def test_round_lifecycle(self, client: AsyncClient) -> None:
        user = await _player(client)
        headers = bearer(user)

        # Clear any round left over from an earlier run
        await client.post("/api/v1/games/crash/finalize", headers=headers)

        start = await client.post("/api/v1/games/crash/start", headers=headers)
        assert start.status_code == 200, start.text
        round_id = start.json()["data"]["round_id"]
        assert start.json()["data"]["crash_point"] is None

        bet = await client.post(
            "/api/v1/games/crash/bet", json={"betAmount": 5}, headers=headers
        )
        assert bet.status_code == 200, bet.text
        assert bet.json()["data"]["new_balance"] == 95.0

        again = await client.post(
            "/api/v1/games/crash/bet", json={"betAmount": 5}, headers=headers
        )
        assert again.status_code == 400

        current = await client.get("/api/v1/games/crash/round", headers=headers)
        assert current.json()["data"]["round_id"] == round_id
        assert current.json()["data"]["has_active_bet"] is True

        final = await client.post("/api/v1/games/crash/finalize", headers=headers)
        assert final.status_code == 200, final.text
        data = final.json()["data"]
        assert data["round_id"] == round_id
        assert data["crash_point"] >= 1.0
        assert data["bets_lost"] >= 1


class TestHistoryAndStats:
    async def test_history_and_stats(self, client: AsyncClient) -> None:
        user = await _player(client)
        for _ in range(3):
            await client.post(
                "/api/v1/games/coinflip",
                json={"betAmount": 1, "choice": "heads"},
                headers=bearer(user),
            )

        history = await client.get(
            "/api/v1/games/history", params={"limit": 2}, headers=bearer(user)
        )
        assert len(history.json()["data"]["games"]) == 2

        stats = (await client.get("/api/v1/games/stats", headers=bearer(user))).json()["data"]
        assert stats["total_games"] == 3
        assert stats["games_won"] + stats["games_lost"] == 3
