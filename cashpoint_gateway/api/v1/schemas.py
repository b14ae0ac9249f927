"""Pydantic schemas for API request/response validation

Bodies use camelCase on the wire; snake_case field names are accepted too.
Amounts are accepted raw so the engine can answer with INVALID_AMOUNT rather
than a generic validation error.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cashpoint_gateway.domain.models import Agent, CashTransaction, RankedAgent
from cashpoint_gateway.utils.money import from_cents

RawAmount = Optional[Union[Decimal, str]]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CashInRequest(CamelModel):
    """Request body for POST /v1/cash-in"""

    agent_code: Optional[str] = None
    amount: RawAmount = None
    customer_phone: Optional[str] = None
    reference: Optional[str] = Field(None, description="Client idempotency key")


class CashOutRequest(CamelModel):
    """Request body for POST /v1/cash-out"""

    agent_code: Optional[str] = None
    amount: RawAmount = None
    pin: Optional[str] = None
    reference: Optional[str] = Field(None, description="Client idempotency key")


class ConfirmRequest(CamelModel):
    """Request body for POST /v1/cash-transactions/confirm"""

    transaction_id: Optional[str] = None
    pin: Optional[str] = None
    action: Optional[str] = Field(None, description="confirm | cancel")


class LocationSchema(CamelModel):
    latitude: float
    longitude: float
    address: str
    city: str
    region: str


class WorkingHoursSchema(CamelModel):
    open: str
    close: str
    days: List[str]


class AgentBrief(CamelModel):
    name: str
    code: str
    location: LocationSchema

    @classmethod
    def from_domain(cls, agent: Agent) -> "AgentBrief":
        return cls(
            name=agent.business_name,
            code=agent.agent_code,
            location=LocationSchema(**vars(agent.location)),
        )


class NearbyAgent(CamelModel):
    id: str
    agent_code: str
    business_name: str
    location: LocationSchema
    services: List[str]
    rating: float
    total_transactions: int
    verification_level: str
    working_hours: WorkingHoursSchema
    distance: float = Field(..., description="Kilometers from the search origin")

    @classmethod
    def from_domain(cls, ranked: RankedAgent) -> "NearbyAgent":
        agent = ranked.agent
        return cls(
            id=agent.id,
            agent_code=agent.agent_code,
            business_name=agent.business_name,
            location=LocationSchema(**vars(agent.location)),
            services=agent.services,
            rating=agent.rating,
            total_transactions=agent.total_transactions,
            verification_level=agent.verification_level.value,
            working_hours=WorkingHoursSchema(**vars(agent.working_hours)),
            distance=round(ranked.distance_km, 3),
        )


class NearbyAgentsResponse(CamelModel):
    """Response for GET /v1/agents/nearby"""

    agents: List[NearbyAgent]
    search_radius: float
    total_found: int


class TransactionSchema(CamelModel):
    id: str
    reference: str
    type: str
    status: str
    amount: Decimal
    commission: Decimal
    agent_code: str
    customer_id: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, txn: CashTransaction) -> "TransactionSchema":
        return cls(
            id=str(txn.id),
            reference=txn.reference,
            type=txn.type.value,
            status=txn.status.value,
            amount=from_cents(txn.amount_cents),
            commission=from_cents(txn.commission_cents),
            agent_code=txn.agent_code,
            customer_id=txn.customer_id,
            created_at=txn.created_at,
            completed_at=txn.completed_at,
        )


class InitiationResponse(CamelModel):
    """Response for POST /v1/cash-in and /v1/cash-out"""

    success: bool = True
    transaction_id: str
    reference: str
    status: str
    amount: Decimal
    commission: Decimal
    total_deduction: Optional[Decimal] = None
    agent: AgentBrief
    estimated_completion: datetime


class ConfirmResponse(CamelModel):
    success: bool = True
    message: str
    transaction: TransactionSchema


class DashboardAgent(CamelModel):
    id: str
    agent_code: str
    business_name: str
    status: str
    rating: float
    verification_level: str


class Balances(CamelModel):
    cash: Decimal
    float_balance: Decimal = Field(..., alias="float")


class TodayMetrics(CamelModel):
    total_transactions: int
    total_volume: Decimal
    total_commission: Decimal
    cash_in_count: int
    cash_out_count: int


class DashboardResponse(CamelModel):
    """Response for GET /v1/agent/dashboard"""

    agent: DashboardAgent
    balances: Balances
    today_metrics: TodayMetrics
    pending_transactions: List[TransactionSchema]
    recent_transactions: List[TransactionSchema]
    working_hours: WorkingHoursSchema
    commission: Dict[str, Decimal]


class UssdRequest(CamelModel):
    """Gateway callback payload"""

    session_id: str = ""
    phone_number: str
    text: str = ""
    service_code: str = ""
