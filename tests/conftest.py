"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from cashpoint_gateway.api.main import create_app
from cashpoint_gateway.api.dependencies import (
    get_audit_client,
    get_clock,
    get_identity_client,
    get_notifier_client,
)
from cashpoint_gateway.infrastructure.database.models import Base
from cashpoint_gateway.infrastructure.database.repositories import AgentRepository, WalletRepository
from cashpoint_gateway.infrastructure.database.session import get_db
from cashpoint_gateway.domain.models import (
    Agent,
    AgentStatus,
    Location,
    UserProfile,
    VerificationLevel,
    WorkingHours,
)
from cashpoint_gateway.services.engine import CashTransactionEngine


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Wednesday 10:00 in Accra (UTC+0)
FIXED_NOW = datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)

# Accra city centre
ORIGIN = (5.6037, -0.1870)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

SENDER_PHONE = "+233241234567"
RECIPIENT_PHONE = "0551234567"
AGENT_PHONE = "+233241234569"
GOOD_PIN = "1234"


class FakeIdentityStore:
    """In-memory identity service"""

    def __init__(self):
        self.users_by_phone: Dict[str, UserProfile] = {}
        self.pins: Dict[str, str] = {}
        self.language_updates: List[Tuple[str, str]] = []

    def register(self, user_id: str, phone: str, pin: str = GOOD_PIN, **profile) -> UserProfile:
        user = UserProfile(id=user_id, phone=phone, **profile)
        self.users_by_phone[phone] = user
        self.pins[user_id] = pin
        return user

    async def find_user_by_phone(self, phone: str) -> Optional[UserProfile]:
        return self.users_by_phone.get(phone)

    async def validate_pin(self, user_id: str, pin: str) -> bool:
        return self.pins.get(user_id) == pin

    async def update_language(self, user_id: str, language: str) -> bool:
        self.language_updates.append((user_id, language))
        return True


class FakeNotifier:
    def __init__(self):
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    async def notify_agent(self, agent_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append((agent_id, event_type, payload))


class FakeAuditLog:
    def __init__(self):
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    async def log_event(self, user_id: str, event_type: str, details: Dict[str, Any], severity: str = "low") -> None:
        self.events.append((user_id, event_type, details))


class RecordingDispatch:
    """Stands in for BackgroundTasks.add_task"""

    def __init__(self):
        self.calls: List[Tuple[Callable, tuple]] = []

    def __call__(self, fn: Callable, *args: Any) -> None:
        self.calls.append((fn, args))

    @property
    def event_types(self) -> List[str]:
        return [args[1] for _, args in self.calls]


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def identity() -> FakeIdentityStore:
    store = FakeIdentityStore()
    store.register("consumer-001", SENDER_PHONE, first_name="Kofi", last_name="Mensah", kyc_status="verified")
    store.register("consumer-002", RECIPIENT_PHONE, first_name="Ama", last_name="Owusu")
    store.register("agent-user-001", AGENT_PHONE, role="agent")
    store.register("agent-user-002", "+233241234570", role="agent")
    return store


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def audit() -> FakeAuditLog:
    return FakeAuditLog()


@pytest.fixture
def dispatch() -> RecordingDispatch:
    return RecordingDispatch()


@pytest.fixture
def build_agent() -> Callable[..., Agent]:
    """Domain agent near ORIGIN, open Mon-Sat 08:00-18:00, well funded"""

    def _build(
        code: str = "AGT001",
        lat_offset: float = 0.01,
        lon_offset: float = 0.0,
        cash: str = "5000",
        float_: str = "10000",
        status: AgentStatus = AgentStatus.ACTIVE,
        rating: float = 4.5,
        services: Optional[List[str]] = None,
        days: Optional[List[str]] = None,
        open_time: str = "08:00",
        close_time: str = "18:00",
        user_id: Optional[str] = None,
        commission_rates: Optional[Dict[str, Decimal]] = None,
        verification: VerificationLevel = VerificationLevel.VERIFIED,
    ) -> Agent:
        return Agent(
            id=f"agent-{code.lower()}",
            user_id=user_id or f"user-{code.lower()}",
            agent_code=code,
            business_name=f"{code} Mobile Money",
            location=Location(
                latitude=ORIGIN[0] + lat_offset,
                longitude=ORIGIN[1] + lon_offset,
                address="123 Market Street",
                city="Accra",
                region="Greater Accra",
            ),
            services=services if services is not None else ["cash_in", "cash_out", "bill_payment"],
            cash_balance_cents=int(Decimal(cash) * 100),
            float_balance_cents=int(Decimal(float_) * 100),
            status=status,
            working_hours=WorkingHours(open=open_time, close=close_time, days=days or WEEKDAYS),
            commission_rates=commission_rates or {},
            rating=rating,
            verification_level=verification,
        )

    return _build


@pytest.fixture
def agent_factory(db: Session, build_agent) -> Callable[..., Agent]:
    """Persist agents built by build_agent"""

    def _create(**kwargs) -> Agent:
        agent = build_agent(**kwargs)
        AgentRepository(db).add(agent)
        db.commit()
        return agent

    return _create


@pytest.fixture
def wallet_factory(db: Session):
    def _create(user_id: str, balance: str = "0"):
        wallet = WalletRepository(db).add_wallet(user_id, int(Decimal(balance) * 100))
        db.commit()
        return wallet

    return _create


@pytest.fixture
def concurrent_wallet_credit(db: Session) -> Generator[List[str], None, None]:
    """Credit every wallet by one cent just before each wallet balance UPDATE, as a racing writer would"""
    statements: List[str] = []

    def _before(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("UPDATE wallet SET"):
            cursor.execute("UPDATE wallet SET balance_cents = balance_cents + 1")
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", _before)
    yield statements
    event.remove(engine, "before_cursor_execute", _before)


@pytest.fixture
def cash_engine(db: Session, identity, notifier, dispatch, clock) -> CashTransactionEngine:
    return CashTransactionEngine(db, identity, notifier, dispatch, clock)


@pytest.fixture
def client(db: Session, identity, notifier, audit, clock) -> TestClient:
    """Create FastAPI test client with test database and in-memory collaborators"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_client] = lambda: identity
    app.dependency_overrides[get_notifier_client] = lambda: notifier
    app.dependency_overrides[get_audit_client] = lambda: audit
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)
