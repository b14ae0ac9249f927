"""Agent dashboard aggregation"""

import pytest
from datetime import datetime, timezone
from cashpoint_gateway.domain.exceptions import AgentNotFoundError
from cashpoint_gateway.infrastructure.database.repositories import AgentRepository, CashTransactionRepository
from cashpoint_gateway.services.dashboard import DashboardService, local_day_bounds
from cashpoint_gateway.services.directory import AgentDirectory

AGENT_USER = "agent-user-001"
PHONE = "+233241234567"


@pytest.fixture
def dashboard(db, clock):
    return DashboardService(AgentDirectory(AgentRepository(db), clock), CashTransactionRepository(db), clock)


def test_local_day_bounds():
    start, end = local_day_bounds(datetime(2026, 10, 14, 23, 30, tzinfo=timezone.utc), "Africa/Accra")

    assert start == datetime(2026, 10, 14, tzinfo=timezone.utc)
    assert end == datetime(2026, 10, 15, tzinfo=timezone.utc)


async def test_metrics_count_completed_transactions_only(dashboard, cash_engine, agent_factory, wallet_factory):
    agent_factory(code="AGT001", user_id=AGENT_USER)
    wallet_factory("consumer-001", "500")

    done = (await cash_engine.initiate_cash_in("consumer-001", "AGT001", "100", PHONE)).transaction
    await cash_engine.confirm_transaction(AGENT_USER, str(done.id), "1234", "confirm")
    out = (await cash_engine.initiate_cash_out("consumer-001", "AGT001", "200", "1234")).transaction
    await cash_engine.confirm_transaction(AGENT_USER, str(out.id), "1234", "confirm")
    waiting = (await cash_engine.initiate_cash_in("consumer-001", "AGT001", "50", PHONE)).transaction

    view = dashboard.for_agent_user(AGENT_USER)

    assert view.agent.agent_code == "AGT001"
    assert view.metrics.total_transactions == 2
    assert view.metrics.total_volume_cents == 30000
    assert view.metrics.total_commission_cents == 100 + 300
    assert (view.metrics.cash_in_count, view.metrics.cash_out_count) == (1, 1)
    assert [t.id for t in view.pending] == [waiting.id]
    assert len(view.recent) == 3


def test_dashboard_requires_agent_profile(dashboard):
    with pytest.raises(AgentNotFoundError):
        dashboard.for_agent_user("consumer-001")
