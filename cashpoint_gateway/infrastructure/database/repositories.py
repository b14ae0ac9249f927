"""Data access layer for agents, cash transactions and wallets"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from cashpoint_gateway.domain.models import (
    Agent,
    AgentStatus,
    CashTransaction,
    Location,
    TransactionStatus,
    TransactionType,
    VerificationLevel,
    Wallet,
    WalletEntry,
    WorkingHours,
)
from cashpoint_gateway.infrastructure.database.models import (
    CashAgent,
    CashTransactionRecord,
    Wallet as WalletRow,
    WalletTransaction,
)


class BalanceUpdate(str, Enum):
    """Outcome of a guarded wallet balance change"""

    APPLIED = "applied"
    REJECTED = "rejected"
    MISSING = "missing"


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored as UTC"""
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class AgentRepository:
    """Repository for cash agents"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_domain(row: CashAgent) -> Agent:
        return Agent(
            id=row.id,
            user_id=row.user_id,
            agent_code=row.agent_code,
            business_name=row.business_name,
            location=Location(
                latitude=row.latitude,
                longitude=row.longitude,
                address=row.address,
                city=row.city,
                region=row.region,
            ),
            services=list(row.services or []),
            cash_balance_cents=row.cash_balance_cents,
            float_balance_cents=row.float_balance_cents,
            status=AgentStatus(row.status),
            working_hours=WorkingHours(
                open=row.open_time,
                close=row.close_time,
                days=list(row.working_days or []),
            ),
            commission_rates={k: Decimal(str(v)) for k, v in (row.commission_rates or {}).items()},
            rating=row.rating,
            total_transactions=row.total_transactions,
            verification_level=VerificationLevel(row.verification_level),
        )

    def add(self, agent: Agent) -> CashAgent:
        """Persist an onboarded agent"""
        row = CashAgent(
            id=agent.id,
            user_id=agent.user_id,
            agent_code=agent.agent_code,
            business_name=agent.business_name,
            latitude=agent.location.latitude,
            longitude=agent.location.longitude,
            address=agent.location.address,
            city=agent.location.city,
            region=agent.location.region,
            services=list(agent.services),
            cash_balance_cents=agent.cash_balance_cents,
            float_balance_cents=agent.float_balance_cents,
            commission_rates={k: str(v) for k, v in agent.commission_rates.items()},
            status=AgentStatus(agent.status).value,
            open_time=agent.working_hours.open,
            close_time=agent.working_hours.close,
            working_days=[d.lower() for d in agent.working_hours.days],
            rating=agent.rating,
            total_transactions=agent.total_transactions,
            verification_level=VerificationLevel(agent.verification_level).value,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def _one(self, *criteria) -> Optional[Agent]:
        row = self.db.execute(
            select(CashAgent).where(*criteria).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self.to_domain(row) if row else None

    def get_by_code(self, agent_code: str) -> Optional[Agent]:
        return self._one(CashAgent.agent_code == agent_code)

    def get_by_user_id(self, user_id: str) -> Optional[Agent]:
        return self._one(CashAgent.user_id == user_id)

    def list_in_box(self, min_lat: float, max_lat: float, lon_ranges: List[tuple[float, float]]) -> List[Agent]:
        """Agents whose coordinates fall inside a lat/lon box, any status"""
        rows = self.db.execute(
            select(CashAgent)
            .where(
                CashAgent.latitude.between(min_lat, max_lat),
                or_(*(CashAgent.longitude.between(lo, hi) for lo, hi in lon_ranges)),
            )
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [self.to_domain(r) for r in rows]

    def apply_balance_delta(self, agent_id: str, cash_delta_cents: int, float_delta_cents: int) -> bool:
        """
        Conditionally move agent balances and count the transaction.

        The WHERE clause re-checks non-negativity against the current row, so
        two racing confirmations cannot both drain the same balance.

        Returns: False when the guard rejected the update
        """
        result = self.db.execute(
            update(CashAgent)
            .where(
                CashAgent.id == agent_id,
                CashAgent.cash_balance_cents + cash_delta_cents >= 0,
                CashAgent.float_balance_cents + float_delta_cents >= 0,
            )
            .values(
                cash_balance_cents=CashAgent.cash_balance_cents + cash_delta_cents,
                float_balance_cents=CashAgent.float_balance_cents + float_delta_cents,
                total_transactions=CashAgent.total_transactions + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class CashTransactionRepository:
    """Repository for cash-in / cash-out transactions"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_domain(row: CashTransactionRecord) -> CashTransaction:
        return CashTransaction(
            id=row.id,
            reference=row.reference,
            agent_id=row.agent_id,
            agent_code=row.agent_code,
            customer_id=row.customer_id,
            customer_phone=row.customer_phone,
            type=TransactionType(row.type),
            amount_cents=row.amount_cents,
            commission_cents=row.commission_cents,
            status=TransactionStatus(row.status),
            created_at=_aware(row.created_at),
            completed_at=_aware(row.completed_at),
            metadata=dict(row.details or {}),
        )

    def create(self, txn: CashTransaction) -> CashTransactionRecord:
        row = CashTransactionRecord(
            id=txn.id,
            reference=txn.reference,
            agent_id=txn.agent_id,
            agent_code=txn.agent_code,
            customer_id=txn.customer_id,
            customer_phone=txn.customer_phone,
            type=txn.type.value,
            amount_cents=txn.amount_cents,
            commission_cents=txn.commission_cents,
            status=txn.status.value,
            details=dict(txn.metadata),
            created_at=txn.created_at,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, transaction_id: uuid.UUID) -> Optional[CashTransaction]:
        row = self.db.execute(
            select(CashTransactionRecord)
            .where(CashTransactionRecord.id == transaction_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self.to_domain(row) if row else None

    def find_by_reference(self, agent_id: str, customer_id: str, reference: str) -> Optional[CashTransaction]:
        row = self.db.execute(
            select(CashTransactionRecord).where(
                CashTransactionRecord.agent_id == agent_id,
                CashTransactionRecord.customer_id == customer_id,
                CashTransactionRecord.reference == reference,
            )
        ).scalar_one_or_none()
        return self.to_domain(row) if row else None

    def transition(
        self,
        transaction_id: uuid.UUID,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
        completed_at: Optional[datetime] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Compare-and-set status change; False when the row was not in from_status"""
        values: Dict[str, Any] = {"status": to_status.value}
        if completed_at is not None:
            values["completed_at"] = completed_at
        if details is not None:
            values["details"] = details
        result = self.db.execute(
            update(CashTransactionRecord)
            .where(
                CashTransactionRecord.id == transaction_id,
                CashTransactionRecord.status == from_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_for_agent(
        self,
        agent_id: str,
        since: datetime,
        until: datetime,
        status: Optional[TransactionStatus] = None,
    ) -> List[CashTransaction]:
        """Agent's transactions created in [since, until), oldest first"""
        query = select(CashTransactionRecord).where(
            CashTransactionRecord.agent_id == agent_id,
            CashTransactionRecord.created_at >= since,
            CashTransactionRecord.created_at < until,
        )
        if status is not None:
            query = query.where(CashTransactionRecord.status == status.value)
        rows = self.db.execute(query.order_by(CashTransactionRecord.created_at.asc())).scalars().all()
        return [self.to_domain(r) for r in rows]

    def list_pending_for_agent(self, agent_id: str, limit: int = 50) -> List[CashTransaction]:
        rows = self.db.execute(
            select(CashTransactionRecord)
            .where(
                CashTransactionRecord.agent_id == agent_id,
                CashTransactionRecord.status == TransactionStatus.PENDING.value,
            )
            .order_by(CashTransactionRecord.created_at.desc())
            .limit(limit)
        ).scalars().all()
        return [self.to_domain(r) for r in rows]


class WalletRepository:
    """Wallet balance store"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_domain(row: WalletRow) -> Wallet:
        return Wallet(
            id=row.id,
            user_id=row.user_id,
            wallet_type=row.wallet_type,
            balance_cents=row.balance_cents,
            pending_balance_cents=row.pending_balance_cents,
            currency=row.currency,
        )

    def add_wallet(self, user_id: str, balance_cents: int = 0, wallet_type: str = "primary", currency: str = "USD") -> Wallet:
        row = WalletRow(user_id=user_id, wallet_type=wallet_type, balance_cents=balance_cents, currency=currency)
        self.db.add(row)
        self.db.flush()
        return self.to_domain(row)

    def get_wallets(self, user_id: str) -> List[Wallet]:
        rows = self.db.execute(
            select(WalletRow)
            .where(WalletRow.user_id == user_id, WalletRow.is_active.is_(True))
            .order_by(WalletRow.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [self.to_domain(r) for r in rows]

    def get_primary_wallet(self, user_id: str) -> Optional[Wallet]:
        return next((w for w in self.get_wallets(user_id) if w.wallet_type == "primary"), None)

    def apply_balance_delta(self, wallet_id: int, delta_cents: int) -> BalanceUpdate:
        """
        Add delta to the balance in one guarded UPDATE.

        Returns: REJECTED when the result would be negative, MISSING when
        there is no such wallet
        """
        result = self.db.execute(
            update(WalletRow)
            .where(WalletRow.id == wallet_id, WalletRow.balance_cents + delta_cents >= 0)
            .values(balance_cents=WalletRow.balance_cents + delta_cents)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return BalanceUpdate.APPLIED
        exists = self.db.execute(select(WalletRow.id).where(WalletRow.id == wallet_id)).scalar_one_or_none()
        return BalanceUpdate.REJECTED if exists is not None else BalanceUpdate.MISSING

    def create_transaction_record(
        self,
        reference: str,
        type: str,
        amount_cents: int,
        created_at: datetime,
        from_wallet_id: Optional[int] = None,
        to_wallet_id: Optional[int] = None,
        fee_cents: int = 0,
        currency: str = "USD",
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> WalletTransaction:
        row = WalletTransaction(
            from_wallet_id=from_wallet_id,
            to_wallet_id=to_wallet_id,
            amount_cents=amount_cents,
            fee_cents=fee_cents,
            currency=currency,
            type=type,
            status="completed",
            description=description,
            reference=reference,
            details=details or {},
            created_at=created_at,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def get_recent_entries(self, wallet_id: int, limit: int = 5) -> List[WalletEntry]:
        """Newest-first ledger entries touching the wallet from either side"""
        rows = self.db.execute(
            select(WalletTransaction)
            .where((WalletTransaction.from_wallet_id == wallet_id) | (WalletTransaction.to_wallet_id == wallet_id))
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
        ).scalars().all()
        return [
            WalletEntry(
                reference=r.reference,
                type=r.type,
                amount_cents=r.amount_cents,
                fee_cents=r.fee_cents,
                status=r.status,
                created_at=_aware(r.created_at),
            )
            for r in rows
        ]
