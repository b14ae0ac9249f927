"""Agent dashboard - profile, balances and today's activity"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import List
from zoneinfo import ZoneInfo

from cashpoint_gateway.config import settings
from cashpoint_gateway.domain.models import Agent, CashTransaction, TransactionStatus, TransactionType
from cashpoint_gateway.infrastructure.database.repositories import CashTransactionRepository
from cashpoint_gateway.services.directory import AgentDirectory
from cashpoint_gateway.utils.clock import Clock, utc_now


@dataclass
class DailyMetrics:
    total_transactions: int
    total_volume_cents: int
    total_commission_cents: int
    cash_in_count: int
    cash_out_count: int


@dataclass
class AgentDashboard:
    agent: Agent
    metrics: DailyMetrics
    pending: List[CashTransaction]
    recent: List[CashTransaction]


def local_day_bounds(moment: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """UTC [start, end) of the local calendar day containing moment"""
    tz = ZoneInfo(tz_name)
    local_date = moment.astimezone(tz).date()
    start = datetime.combine(local_date, time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), (start + timedelta(days=1)).astimezone(timezone.utc)


def summarize(transactions: List[CashTransaction]) -> DailyMetrics:
    """Aggregate completed transactions only"""
    completed = [t for t in transactions if t.status == TransactionStatus.COMPLETED]
    return DailyMetrics(
        total_transactions=len(completed),
        total_volume_cents=sum(t.amount_cents for t in completed),
        total_commission_cents=sum(t.commission_cents for t in completed),
        cash_in_count=sum(1 for t in completed if t.type == TransactionType.CASH_IN),
        cash_out_count=sum(1 for t in completed if t.type == TransactionType.CASH_OUT),
    )


class DashboardService:
    def __init__(self, directory: AgentDirectory, transactions: CashTransactionRepository, clock: Clock = utc_now):
        self.directory = directory
        self.transactions = transactions
        self.clock = clock

    def for_agent_user(self, agent_user_id: str) -> AgentDashboard:
        agent = self.directory.find_by_owner(agent_user_id)
        since, until = local_day_bounds(self.clock(), settings.local_timezone)
        today = self.transactions.list_for_agent(agent.id, since, until)

        return AgentDashboard(
            agent=agent,
            metrics=summarize(today),
            pending=self.transactions.list_pending_for_agent(agent.id),
            recent=today[-10:],
        )
