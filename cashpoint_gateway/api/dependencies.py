"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from cashpoint_gateway.infrastructure.clients.audit import AuditClient
from cashpoint_gateway.infrastructure.clients.identity import IdentityClient
from cashpoint_gateway.infrastructure.clients.notifier import NotifierClient
from cashpoint_gateway.infrastructure.database.repositories import AgentRepository, CashTransactionRepository
from cashpoint_gateway.infrastructure.database.session import get_db
from cashpoint_gateway.services.dashboard import DashboardService
from cashpoint_gateway.services.directory import AgentDirectory
from cashpoint_gateway.services.engine import CashTransactionEngine
from cashpoint_gateway.services.ussd_navigator import UssdNavigator
from cashpoint_gateway.utils.clock import Clock, utc_now


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity as asserted by the upstream auth proxy"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return x_user_id


def get_clock() -> Clock:
    return utc_now


def get_identity_client() -> IdentityClient:
    """Provide identity service client instance"""
    return IdentityClient()


def get_notifier_client() -> NotifierClient:
    """Provide agent notification client instance"""
    return NotifierClient()


def get_audit_client() -> AuditClient:
    """Provide security audit client instance"""
    return AuditClient()


def get_directory(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> AgentDirectory:
    return AgentDirectory(AgentRepository(db), clock)


def get_engine(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
    notifier: NotifierClient = Depends(get_notifier_client),
    clock: Clock = Depends(get_clock),
) -> CashTransactionEngine:
    """Engine whose side effects run after the response is sent"""
    return CashTransactionEngine(db, identity, notifier, background_tasks.add_task, clock)


def get_dashboard_service(
    db: Session = Depends(get_db),
    directory: AgentDirectory = Depends(get_directory),
    clock: Clock = Depends(get_clock),
) -> DashboardService:
    return DashboardService(directory, CashTransactionRepository(db), clock)


def get_navigator(
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
    clock: Clock = Depends(get_clock),
) -> UssdNavigator:
    return UssdNavigator(db, identity, clock)
