"""Unit tests for ConsumeCredit use case (FIFO consumption engine)

Tests cover:
- Soonest-expiring lots drained first
- All-or-nothing on insufficient credit
- Non-positive cost rejected
- Retry on concurrent modification, bounded by max_attempts
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from meta_ledger.app.use_cases.ledger.consume_credit import ConsumeCredit, plan_fifo_deductions
from meta_ledger.app.use_cases.ledger.dtos import ConsumeCommandDTO
from meta_ledger.domain.errors import ConcurrencyConflict, LedgerErrorCode
from meta_ledger.domain.ledger_event import LedgerEventType
from tests.unit.factories import make_lot


@pytest.fixture
def mock_lot_repo():
    """Mock credit lot repository"""
    return MagicMock()


@pytest.fixture
def mock_ledger_store():
    """Mock ledger store"""
    store = MagicMock()
    store.apply_atomic = AsyncMock()
    return store


@pytest.fixture
def consume_use_case(mock_lot_repo, mock_ledger_store, clock):
    return ConsumeCredit(
        lot_repo=mock_lot_repo,
        ledger_store=mock_ledger_store,
        max_attempts=3,
        clock=clock,
    )


@pytest.fixture
def three_lots():
    """5 + 5 + 5, expiring in 10, 20 and 30 days"""
    return [
        make_lot(1, remaining=5, expires_in_days=10),
        make_lot(2, remaining=5, expires_in_days=20),
        make_lot(3, remaining=5, expires_in_days=30),
    ]


class TestPlanFifoDeductions:

    def test_takes_from_lots_in_order(self, three_lots):
        deductions = plan_fifo_deductions(three_lots, 7)

        assert [(d.lot.id, d.amount) for d in deductions] == [(1, 5), (2, 2)]
        assert [d.remaining_after for d in deductions] == [0, 3]

    def test_exact_total_drains_every_lot(self, three_lots):
        deductions = plan_fifo_deductions(three_lots, 15)

        assert [d.amount for d in deductions] == [5, 5, 5]
        assert all(d.remaining_after == 0 for d in deductions)

    def test_insufficient_returns_none(self, three_lots):
        assert plan_fifo_deductions(three_lots, 16) is None

    def test_no_lots(self):
        assert plan_fifo_deductions([], 1) is None

    def test_skips_empty_lots(self):
        lots = [make_lot(1, remaining=0, initial_amount=5), make_lot(2, remaining=3)]

        deductions = plan_fifo_deductions(lots, 2)

        assert [(d.lot.id, d.amount) for d in deductions] == [(2, 2)]


@pytest.mark.asyncio
class TestConsumeCreditSuccess:

    async def test_consume_spans_lots_soonest_expiry_first(
        self, consume_use_case, mock_lot_repo, mock_ledger_store, three_lots, now
    ):
        """
        Given: Three lots of 5 expiring at t+10d, t+20d, t+30d
        When: 7 is consumed
        Then: First lot drained, second lot left with 3, third untouched
        """
        # Arrange
        mock_lot_repo.list_spendable = AsyncMock(return_value=three_lots)

        # Act
        result = await consume_use_case.execute(
            ConsumeCommandDTO(owner_id="user_1", cost=7, reason="feature:fermi")
        )

        # Assert
        assert result.is_ok()
        response = result.value
        assert response.cost == 7
        assert response.balance_after == 8
        assert [(d.lot_id, d.amount, d.remaining_after) for d in response.deductions] == [
            (1, 5, 0),
            (2, 2, 3),
        ]

        mock_lot_repo.list_spendable.assert_called_once_with("user_1", now)
        change = mock_ledger_store.apply_atomic.call_args.args[0]
        assert change.owner_id == "user_1"
        assert change.balance_delta == -7
        assert [(u.lot_id, u.expected_version, u.new_remaining) for u in change.lot_updates] == [
            (1, 1, 0),
            (2, 1, 3),
        ]
        assert all(u.require_unexpired for u in change.lot_updates)
        assert [(e.event_type, e.lot_id, e.amount) for e in change.events] == [
            (LedgerEventType.CONSUME, 1, 5),
            (LedgerEventType.CONSUME, 2, 2),
        ]
        assert all(e.reason == "feature:fermi" for e in change.events)
        assert all(e.occurred_at == now for e in change.events)

    async def test_consume_exact_balance(
        self, consume_use_case, mock_lot_repo, mock_ledger_store, three_lots
    ):
        mock_lot_repo.list_spendable = AsyncMock(return_value=three_lots)

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=15))

        assert result.is_ok()
        assert result.value.balance_after == 0
        assert len(mock_ledger_store.apply_atomic.call_args.args[0].events) == 3


@pytest.mark.asyncio
class TestConsumeCreditRejections:

    @pytest.mark.parametrize("cost", [0, -1])
    async def test_non_positive_cost_is_invalid(
        self, consume_use_case, mock_lot_repo, mock_ledger_store, cost
    ):
        mock_lot_repo.list_spendable = AsyncMock()

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=cost))

        assert result.is_err()
        assert result.error.code == LedgerErrorCode.INVALID_COST.value
        mock_lot_repo.list_spendable.assert_not_called()
        mock_ledger_store.apply_atomic.assert_not_called()

    async def test_insufficient_credit_touches_nothing(
        self, consume_use_case, mock_lot_repo, mock_ledger_store
    ):
        """
        Given: Spendable total of 4
        When: 5 is consumed
        Then: INSUFFICIENT_CREDIT and no write at all
        """
        mock_lot_repo.list_spendable = AsyncMock(
            return_value=[make_lot(1, remaining=3), make_lot(2, remaining=1)]
        )

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=5))

        assert result.is_err()
        assert result.error.code == LedgerErrorCode.INSUFFICIENT_CREDIT.value
        assert "Available: 4" in result.error.message
        mock_ledger_store.apply_atomic.assert_not_called()

    async def test_owner_without_lots_is_insufficient(
        self, consume_use_case, mock_lot_repo, mock_ledger_store
    ):
        mock_lot_repo.list_spendable = AsyncMock(return_value=[])

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=1))

        assert result.error.code == LedgerErrorCode.INSUFFICIENT_CREDIT.value


@pytest.mark.asyncio
class TestConsumeCreditConcurrency:

    async def test_retries_after_conflict_with_fresh_read(
        self, consume_use_case, mock_lot_repo, mock_ledger_store
    ):
        """
        Given: The first attempt loses a race on lot 1
        When: consume is executed
        Then: Lots are re-read and the second attempt succeeds on the new state
        """
        mock_lot_repo.list_spendable = AsyncMock(side_effect=[
            [make_lot(1, remaining=5, version=1), make_lot(2, remaining=5, expires_in_days=40)],
            [make_lot(1, remaining=2, version=2), make_lot(2, remaining=5, expires_in_days=40)],
        ])
        mock_ledger_store.apply_atomic = AsyncMock(side_effect=[ConcurrencyConflict(1), None])

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=4))

        assert result.is_ok()
        assert mock_lot_repo.list_spendable.call_count == 2
        second_change = mock_ledger_store.apply_atomic.call_args_list[1].args[0]
        assert [(u.lot_id, u.expected_version, u.new_remaining) for u in second_change.lot_updates] == [
            (1, 2, 0),
            (2, 1, 3),
        ]

    async def test_gives_up_after_max_attempts(
        self, consume_use_case, mock_lot_repo, mock_ledger_store, three_lots
    ):
        mock_lot_repo.list_spendable = AsyncMock(return_value=three_lots)
        mock_ledger_store.apply_atomic = AsyncMock(side_effect=ConcurrencyConflict(1))

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=2))

        assert result.is_err()
        assert result.error.code == LedgerErrorCode.CONCURRENCY_CONFLICT.value
        assert mock_ledger_store.apply_atomic.call_count == 3

    async def test_conflict_then_insufficient(
        self, consume_use_case, mock_lot_repo, mock_ledger_store
    ):
        """A concurrent consumer drained the lot: the retry reports INSUFFICIENT_CREDIT"""
        mock_lot_repo.list_spendable = AsyncMock(side_effect=[[make_lot(1, remaining=5)], []])
        mock_ledger_store.apply_atomic = AsyncMock(side_effect=ConcurrencyConflict(1))

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=5))

        assert result.error.code == LedgerErrorCode.INSUFFICIENT_CREDIT.value
        assert mock_ledger_store.apply_atomic.call_count == 1

    async def test_unexpected_error_is_reported(
        self, consume_use_case, mock_lot_repo
    ):
        mock_lot_repo.list_spendable = AsyncMock(side_effect=RuntimeError("connection reset"))

        result = await consume_use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=1))

        assert result.is_err()
        assert result.error.code == LedgerErrorCode.CONSUME_CREDIT_FAILED.value
        assert result.error.reason == "connection reset"

    async def test_commit_uses_a_fresh_clock_reading(
        self, mock_lot_repo, mock_ledger_store, now
    ):
        """
        Given: The clock moves on between reading lots and writing them
        When: consume is executed
        Then: The write, its events and the response carry the later time
        """
        later = now + timedelta(seconds=5)
        use_case = ConsumeCredit(
            lot_repo=mock_lot_repo,
            ledger_store=mock_ledger_store,
            clock=MagicMock(side_effect=[now, later]),
        )
        mock_lot_repo.list_spendable = AsyncMock(return_value=[make_lot(1, remaining=5)])

        result = await use_case.execute(ConsumeCommandDTO(owner_id="user_1", cost=2))

        assert result.is_ok()
        mock_lot_repo.list_spendable.assert_called_once_with("user_1", now)
        change, commit_time = mock_ledger_store.apply_atomic.call_args.args
        assert commit_time == later
        assert change.events[0].occurred_at == later
        assert result.value.consumed_at == later
