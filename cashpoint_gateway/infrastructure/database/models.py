"""SQLAlchemy ORM models for agents, cash transactions and the wallet ledger"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class CashAgent(Base):
    """Cash agent with physical cash and digital float"""

    __tablename__ = "cash_agent"
    __table_args__ = (
        CheckConstraint("cash_balance_cents >= 0", name="ck_agent_cash_non_negative"),
        CheckConstraint("float_balance_cents >= 0", name="ck_agent_float_non_negative"),
    )

    id = Column(Text, primary_key=True)
    user_id = Column(Text, nullable=False, unique=True, index=True)
    agent_code = Column(Text, nullable=False, unique=True, index=True)
    business_name = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)
    address = Column(Text, nullable=False, default="")
    city = Column(Text, nullable=False, default="")
    region = Column(Text, nullable=False, default="")
    services = Column(JSON, nullable=False, default=list)
    cash_balance_cents = Column(BigInteger, nullable=False, default=0)
    float_balance_cents = Column(BigInteger, nullable=False, default=0)
    commission_rates = Column(JSON, nullable=False, default=dict)  # {"cash_in": "0.01", ...}
    status = Column(Text, nullable=False, default="active")
    open_time = Column(Text, nullable=False, default="08:00")
    close_time = Column(Text, nullable=False, default="18:00")
    working_days = Column(JSON, nullable=False, default=list)
    rating = Column(Float, nullable=False, default=0.0)
    total_transactions = Column(Integer, nullable=False, default=0)
    verification_level = Column(Text, nullable=False, default="basic")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("CashTransactionRecord", back_populates="agent")


class CashTransactionRecord(Base):
    """Cash-in / cash-out request and its lifecycle"""

    __tablename__ = "cash_transaction"
    __table_args__ = (
        UniqueConstraint("agent_id", "customer_id", "reference", name="uq_cash_transaction_reference"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference = Column(Text, nullable=False, index=True)
    agent_id = Column(Text, ForeignKey("cash_agent.id"), nullable=False, index=True)
    agent_code = Column(Text, nullable=False)
    customer_id = Column(Text, nullable=False, index=True)
    customer_phone = Column(Text, nullable=True)
    type = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    commission_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)
    details = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    agent = relationship("CashAgent", back_populates="transactions")


class Wallet(Base):
    """Customer wallet balance"""

    __tablename__ = "wallet"
    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="ck_wallet_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    wallet_type = Column(Text, nullable=False, default="primary")
    balance_cents = Column(BigInteger, nullable=False, default=0)
    pending_balance_cents = Column(BigInteger, nullable=False, default=0)
    currency = Column(Text, nullable=False, default="USD")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WalletTransaction(Base):
    """Wallet ledger entry written for every completed money movement"""

    __tablename__ = "wallet_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_wallet_id = Column(Integer, ForeignKey("wallet.id"), nullable=True, index=True)
    to_wallet_id = Column(Integer, ForeignKey("wallet.id"), nullable=True, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    fee_cents = Column(BigInteger, nullable=False, default=0)
    currency = Column(Text, nullable=False, default="USD")
    type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="completed")
    description = Column(Text, nullable=True)
    reference = Column(Text, nullable=False, index=True)
    details = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
