"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class TransactionType(str, Enum):
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"
    BILL_PAYMENT = "bill_payment"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class AgentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class VerificationLevel(str, Enum):
    BASIC = "basic"
    VERIFIED = "verified"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return list(VerificationLevel).index(self)


class ConfirmAction(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"


@dataclass
class Location:
    latitude: float
    longitude: float
    address: str = ""
    city: str = ""
    region: str = ""


@dataclass
class WorkingHours:
    """Daily window in agent local time, "HH:MM" strings, lowercase weekday names"""

    open: str
    close: str
    days: List[str]


@dataclass
class Agent:
    """Physical cash-handling point"""

    id: str
    user_id: str
    agent_code: str
    business_name: str
    location: Location
    services: List[str]
    cash_balance_cents: int
    float_balance_cents: int
    status: AgentStatus
    working_hours: WorkingHours
    commission_rates: Dict[str, Decimal] = field(default_factory=dict)
    rating: float = 0.0
    total_transactions: int = 0
    verification_level: VerificationLevel = VerificationLevel.BASIC


@dataclass
class RankedAgent:
    """Agent annotated with its distance from the search origin"""

    agent: Agent
    distance_km: float


@dataclass
class CashTransaction:
    """Single cash-in or cash-out request between a customer and an agent"""

    id: uuid.UUID
    reference: str
    agent_id: str
    agent_code: str
    customer_id: str
    customer_phone: Optional[str]
    type: TransactionType
    amount_cents: int
    commission_cents: int
    status: TransactionStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def customer_debit_cents(self) -> int:
        """What the customer pays at confirmation (zero for cash-in)"""
        if self.type == TransactionType.CASH_OUT:
            return self.amount_cents + self.commission_cents
        return 0


@dataclass
class UserProfile:
    """Identity record as returned by the identity service"""

    id: str
    phone: str
    first_name: str = ""
    last_name: str = ""
    role: str = "consumer"
    kyc_status: str = "pending"
    language: str = "en"
    created_at: Optional[datetime] = None


@dataclass
class Wallet:
    id: int
    user_id: str
    wallet_type: str
    balance_cents: int
    pending_balance_cents: int
    currency: str


@dataclass
class WalletEntry:
    """Ledger record of a completed wallet movement"""

    reference: str
    type: str  # "send", "receive", "topup", "withdraw", "payment"
    amount_cents: int
    fee_cents: int
    status: str
    created_at: datetime
