"""Unit tests for AdminService (mocked session rows and wallet repository)."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.ag_admin.application.service import (
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    MAX_GENERATE_ATTEMPTS,
    AdminService,
    generate_invite_code,
)
from src.ag_common.enums import Currency, TransactionType
from src.ag_common.errors import (
    InternalError,
    InvalidAmountError,
    InviteCodeExistsError,
    InviteCodeNotFoundError,
    InviteCodeUsedError,
    NegativeBalanceError,
    UserNotFoundError,
    WalletNotFoundError,
)
from tests.conftest import make_wallet

_SVC = "src.ag_admin.application.service"
_NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _result(one: object = None, all_: list | None = None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = all_ or []
    return result


def _invite_row(code_id: int = 1, code: str = "ABCD2345", is_used: bool = False) -> SimpleNamespace:
    return SimpleNamespace(
        id=code_id,
        code=code,
        is_used=is_used,
        created_by="admin",
        used_by=None,
        created_at=_NOW,
        used_at=None,
        created_by_username="root",
        used_by_username=None,
    )


@pytest.fixture
def wallets() -> AsyncMock:
    mock = AsyncMock()
    mock.lock_wallets.return_value = [make_wallet(user_id="u1", agon=100)]
    mock.credit.return_value = make_wallet(user_id="u1", agon=150)
    mock.debit.return_value = make_wallet(user_id="u1", agon=60)
    return mock


@pytest.fixture
def auctions() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(wallets: AsyncMock, auctions: AsyncMock) -> AdminService:
    return AdminService(wallets=wallets, auctions=auctions)


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture(autouse=True)
def ledger():
    with (
        patch(f"{_SVC}.log_activity", new_callable=AsyncMock) as log,
        patch(f"{_SVC}.write_transaction", new_callable=AsyncMock) as tx,
    ):
        yield {"log": log, "tx": tx}


class TestToggles:
    async def test_toggle_disabled(self, service: AdminService, db: AsyncMock, ledger: dict) -> None:
        db.execute.return_value = _result(
            SimpleNamespace(id="u1", username="alice", is_admin=False, disabled=True)
        )
        flags = await service.toggle_disabled(db, "admin", "u1")

        assert flags.disabled is True
        assert ledger["log"].await_args.args[2] == "admin_toggle_disabled"
        db.commit.assert_awaited_once()

    async def test_toggle_admin_unknown_user(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.return_value = _result(None)
        with pytest.raises(UserNotFoundError):
            await service.toggle_admin(db, "admin", "ghost")
        db.rollback.assert_awaited_once()


class TestAdjustBalance:
    async def test_credit(
        self, service: AdminService, wallets: AsyncMock, db: AsyncMock, ledger: dict
    ) -> None:
        resp = await service.adjust_balance(db, "admin", "u1", Currency.AGON, Decimal("50"))

        wallets.credit.assert_awaited_once_with(db, "u1", Currency.AGON, Decimal("50.000000"))
        ledger["tx"].assert_awaited_once_with(
            db,
            TransactionType.ADMIN_ADJUST,
            Currency.AGON,
            Decimal("50"),
            from_user_id="admin",
            to_user_id="u1",
            description="Admin credit",
        )
        assert resp.amount == Decimal("50")
        assert resp.wallet.agon == Decimal("150")

    async def test_debit(
        self, service: AdminService, wallets: AsyncMock, db: AsyncMock, ledger: dict
    ) -> None:
        await service.adjust_balance(db, "admin", "u1", Currency.AGON, Decimal("-40"))
        wallets.debit.assert_awaited_once_with(db, "u1", Currency.AGON, Decimal("40"))
        assert ledger["tx"].await_args.kwargs["description"] == "Admin debit"

    async def test_cannot_go_negative(
        self, service: AdminService, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        with pytest.raises(NegativeBalanceError):
            await service.adjust_balance(db, "admin", "u1", Currency.AGON, Decimal("-100.01"))
        wallets.debit.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_can_drain_to_zero(self, service: AdminService, wallets: AsyncMock, db: AsyncMock) -> None:
        await service.adjust_balance(db, "admin", "u1", Currency.AGON, Decimal("-100"))
        wallets.debit.assert_awaited_once()

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("0.0000001"), Decimal("Infinity")])
    async def test_rejects_zero_or_non_finite(
        self, service: AdminService, db: AsyncMock, amount: Decimal
    ) -> None:
        with pytest.raises(InvalidAmountError):
            await service.adjust_balance(db, "admin", "u1", Currency.AGON, amount)

    async def test_missing_wallet(self, service: AdminService, wallets: AsyncMock, db: AsyncMock) -> None:
        wallets.lock_wallets.return_value = []
        with pytest.raises(WalletNotFoundError):
            await service.adjust_balance(db, "admin", "ghost", Currency.AGON, Decimal("5"))


class TestMetrics:
    async def test_aggregates(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.side_effect = [
            _result(SimpleNamespace(total_users=10, disabled_users=1, admin_users=2)),
            _result(
                all_=[
                    SimpleNamespace(transaction_type="game", count=7, volume=Decimal("300")),
                    SimpleNamespace(transaction_type="payment", count=3, volume=Decimal("90")),
                ]
            ),
            _result(
                SimpleNamespace(
                    agon=Decimal("5000"), agon_escrow=Decimal("200"), stoneworks_dollar=Decimal("800")
                )
            ),
            _result(
                all_=[
                    SimpleNamespace(
                        game_type="coinflip",
                        total_games=4,
                        wins=1,
                        losses=3,
                        unique_players=2,
                        total_bet=Decimal("400"),
                        total_payout=Decimal("190"),
                    )
                ]
            ),
        ]

        resp = await service.metrics(db)

        assert resp.users.total_users == 10
        assert resp.total_transactions == 10
        assert resp.supply.agon_escrow == Decimal("200")
        by_game = {g.game_type: g for g in resp.games}
        assert set(by_game) == {"coinflip", "blackjack", "plinko", "crash"}
        assert by_game["coinflip"].house_profit == Decimal("210")
        assert by_game["coinflip"].win_rate == Decimal("25.00")
        assert by_game["crash"].total_games == 0
        assert by_game["crash"].win_rate == Decimal("0")

    async def test_activity_decodes_metadata(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.return_value = _result(
            all_=[
                SimpleNamespace(
                    id=1, user_id="u1", username="alice", action="login",
                    metadata='{"ip": "1.2.3.4"}', created_at=_NOW,
                ),
                SimpleNamespace(
                    id=2, user_id=None, username=None, action="system",
                    metadata=None, created_at=_NOW,
                ),
            ]
        )
        items = await service.activity(db, limit=50, offset=0)
        assert items[0].metadata == {"ip": "1.2.3.4"}
        assert items[1].metadata == {}


class TestInviteCodes:
    def test_generated_code_shape(self) -> None:
        code = generate_invite_code()
        assert len(code) == INVITE_CODE_LENGTH
        assert set(code) <= set(INVITE_CODE_ALPHABET)

    async def test_create(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.side_effect = [_result(SimpleNamespace(id=1)), _result(_invite_row())]
        item = await service.create_invite_code(db, "admin", "ABCD2345")
        assert item.code == "ABCD2345"
        assert item.created_by_username == "root"
        db.commit.assert_awaited_once()

    async def test_create_duplicate(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.return_value = _result(None)
        with pytest.raises(InviteCodeExistsError):
            await service.create_invite_code(db, "admin", "ABCD2345")
        db.rollback.assert_awaited_once()

    async def test_generate_retries_on_collision(
        self, wallets: AsyncMock, auctions: AsyncMock, db: AsyncMock
    ) -> None:
        codes = iter(["TAKEN111", "FRESH222"])
        service = AdminService(wallets=wallets, auctions=auctions, code_generator=lambda: next(codes))
        db.execute.side_effect = [
            _result(None),
            _result(SimpleNamespace(id=9)),
            _result(_invite_row(9, "FRESH222")),
        ]
        item = await service.generate_invite_code(db, "admin")
        assert item.id == 9
        assert item.code == "FRESH222"

    async def test_generate_gives_up(
        self, wallets: AsyncMock, auctions: AsyncMock, db: AsyncMock
    ) -> None:
        service = AdminService(wallets=wallets, auctions=auctions, code_generator=lambda: "SAMECODE")
        db.execute.return_value = _result(None)
        with pytest.raises(InternalError):
            await service.generate_invite_code(db, "admin")
        assert db.execute.await_count == MAX_GENERATE_ATTEMPTS

    async def test_delete_unused(self, service: AdminService, db: AsyncMock, ledger: dict) -> None:
        db.execute.side_effect = [_result(_invite_row()), _result()]
        await service.delete_invite_code(db, "admin", 1)
        assert db.execute.await_count == 2
        assert ledger["log"].await_args.args[3] == {"code": "ABCD2345"}
        db.commit.assert_awaited_once()

    async def test_delete_used_refused(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.return_value = _result(_invite_row(is_used=True))
        with pytest.raises(InviteCodeUsedError):
            await service.delete_invite_code(db, "admin", 1)
        assert db.execute.await_count == 1

    async def test_delete_missing(self, service: AdminService, db: AsyncMock) -> None:
        db.execute.return_value = _result(None)
        with pytest.raises(InviteCodeNotFoundError):
            await service.delete_invite_code(db, "admin", 404)


class TestAuctionDelegation:
    async def test_force_end(self, service: AdminService, auctions: AsyncMock, db: AsyncMock) -> None:
        await service.force_end_auction(db, "admin", 3)
        auctions.force_end_auction.assert_awaited_once_with(db, "admin", 3)

    async def test_release(self, service: AdminService, auctions: AsyncMock, db: AsyncMock) -> None:
        await service.auto_release_escrow(db, "admin", 3)
        auctions.auto_release_escrow.assert_awaited_once_with(db, "admin", 3)

    async def test_disputed(self, service: AdminService, auctions: AsyncMock, db: AsyncMock) -> None:
        auctions.list_pending_release.return_value = []
        assert await service.list_disputed(db) == []
