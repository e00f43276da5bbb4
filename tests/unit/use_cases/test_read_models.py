"""Unit tests for balance, lots, ledger history and usage summary"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from meta_ledger.app.use_cases.ledger.feature_catalog import default_feature_catalog
from meta_ledger.app.use_cases.ledger.get_balance import GetBalance
from meta_ledger.app.use_cases.ledger.get_usage_summary import GetUsageSummary
from meta_ledger.app.use_cases.ledger.list_active_lots import ListActiveLots
from meta_ledger.app.use_cases.ledger.list_ledger_events import ListLedgerEvents
from meta_ledger.domain.account_plan import AccountPlan, Plan
from meta_ledger.domain.ledger_event import LedgerEvent, LedgerEventType
from tests.unit.factories import make_lot


@pytest.fixture
def mock_lot_repo():
    return MagicMock()


@pytest.mark.asyncio
class TestGetBalance:

    async def test_balance_is_sum_of_spendable_lots(self, mock_lot_repo, clock, now):
        lots = [make_lot(1, remaining=2, expires_in_days=3), make_lot(2, remaining=5, expires_in_days=90)]
        mock_lot_repo.list_spendable = AsyncMock(return_value=lots)

        result = await GetBalance(mock_lot_repo, clock=clock).execute("user_1")

        assert result.is_ok()
        assert result.value.balance == 7
        assert result.value.active_lots == 2
        assert result.value.next_expiry == lots[0].expires_at
        mock_lot_repo.list_spendable.assert_called_once_with("user_1", now)

    async def test_owner_without_lots_has_zero(self, mock_lot_repo, clock):
        mock_lot_repo.list_spendable = AsyncMock(return_value=[])

        result = await GetBalance(mock_lot_repo, clock=clock).execute("user_1")

        assert result.value.balance == 0
        assert result.value.next_expiry is None


@pytest.mark.asyncio
class TestListActiveLots:

    async def test_lists_lots_in_consumption_order(self, mock_lot_repo, clock):
        mock_lot_repo.list_spendable = AsyncMock(
            return_value=[make_lot(3, remaining=1, expires_in_days=2), make_lot(1, remaining=4, expires_in_days=9)]
        )

        result = await ListActiveLots(mock_lot_repo, clock=clock).execute("user_1")

        assert [lot.id for lot in result.value.lots] == [3, 1]
        assert result.value.lots[0].source == "purchase"


@pytest.mark.asyncio
class TestListLedgerEvents:

    async def test_paginates_history(self):
        event_repo = MagicMock()
        events = [
            LedgerEvent(
                id=i,
                event_type=LedgerEventType.CONSUME,
                owner_id="user_1",
                amount=1,
                lot_id=1,
                reason="feature:fermi",
                occurred_at=datetime(2024, 1, i),
            )
            for i in (3, 2)
        ]
        event_repo.list_by_owner = AsyncMock(return_value=(events, 5))

        result = await ListLedgerEvents(event_repo).execute("user_1", limit=2, offset=0)

        assert result.value.total == 5
        assert result.value.has_more is True
        assert [e.event_type for e in result.value.events] == ["consume", "consume"]
        event_repo.list_by_owner.assert_called_once_with(owner_id="user_1", limit=2, offset=0)

    async def test_last_page_has_no_more(self):
        event_repo = MagicMock()
        event_repo.list_by_owner = AsyncMock(return_value=([], 4))

        result = await ListLedgerEvents(event_repo).execute("user_1", limit=2, offset=4)

        assert result.value.has_more is False


@pytest.mark.asyncio
class TestGetUsageSummary:

    async def test_free_plan_reports_remaining(self, clock):
        plan_repo = MagicMock()
        plan_repo.get_by_owner_id = AsyncMock(return_value=None)
        usage_repo = MagicMock()
        usage_repo.count_by_feature_since = AsyncMock(return_value={"case_generate": 2, "general_interview": 4})

        result = await GetUsageSummary(
            plan_repo, usage_repo, default_feature_catalog(), clock=clock
        ).execute("user_1")

        summary = result.value
        assert summary.plan == Plan.FREE
        assert summary.month_start == datetime(2023, 12, 31, 15, 0)
        items = {item.feature_key: item for item in summary.items}
        assert set(items) == {"case_generate", "fermi_generate", "general_interview"}
        assert (items["case_generate"].used_this_month, items["case_generate"].remaining) == (2, 1)
        assert items["fermi_generate"].remaining == 5
        assert items["general_interview"].remaining == 0

    async def test_unlimited_plan_has_no_limits(self, clock):
        plan_repo = MagicMock()
        plan_repo.get_by_owner_id = AsyncMock(
            return_value=AccountPlan(id=1, owner_id="user_1", plan=Plan.ELITE)
        )
        usage_repo = MagicMock()
        usage_repo.count_by_feature_since = AsyncMock(return_value={"case_generate": 12})

        result = await GetUsageSummary(
            plan_repo, usage_repo, default_feature_catalog(), clock=clock
        ).execute("user_1")

        case_generate = next(i for i in result.value.items if i.feature_key == "case_generate")
        assert case_generate.used_this_month == 12
        assert case_generate.monthly_limit is None
        assert case_generate.remaining is None
