"""GET /v1/agents/nearby and GET /v1/agent/dashboard"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from cashpoint_gateway.api.dependencies import get_current_user_id, get_dashboard_service, get_directory
from cashpoint_gateway.api.v1.schemas import (
    Balances,
    DashboardAgent,
    DashboardResponse,
    NearbyAgent,
    NearbyAgentsResponse,
    TodayMetrics,
    TransactionSchema,
    WorkingHoursSchema,
)
from cashpoint_gateway.domain.commission import default_rates
from cashpoint_gateway.domain.models import VerificationLevel
from cashpoint_gateway.services.dashboard import DashboardService
from cashpoint_gateway.services.directory import AgentDirectory
from cashpoint_gateway.utils.money import from_cents

router = APIRouter()


@router.get("/agents/nearby", response_model=NearbyAgentsResponse)
def get_nearby_agents(
    lat: Optional[str] = Query(None, description="Latitude in decimal degrees"),
    lon: Optional[str] = Query(None, description="Longitude in decimal degrees"),
    radius: Optional[str] = Query(None, description="Search radius in km (default 5)"),
    service: Optional[str] = Query(None, description="cash_in | cash_out | bill_payment"),
    min_verification: Optional[VerificationLevel] = Query(None, alias="minVerification"),
    directory: AgentDirectory = Depends(get_directory),
):
    """
    Agents that can serve the caller right now, closest first.

    Returns:
        Up to 20 agents with distance in km; 400 INVALID_LOCATION on bad coordinates
    """
    result = directory.find_nearby(lat, lon, radius, service, min_verification)
    return NearbyAgentsResponse(
        agents=[NearbyAgent.from_domain(r) for r in result.agents],
        search_radius=result.radius_km,
        total_found=result.total_found,
    )


@router.get("/agent/dashboard", response_model=DashboardResponse)
def get_agent_dashboard(
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service),
):
    dashboard = service.for_agent_user(user_id)
    agent, metrics = dashboard.agent, dashboard.metrics

    return DashboardResponse(
        agent=DashboardAgent(
            id=agent.id,
            agent_code=agent.agent_code,
            business_name=agent.business_name,
            status=agent.status.value,
            rating=agent.rating,
            verification_level=agent.verification_level.value,
        ),
        balances=Balances(
            cash=from_cents(agent.cash_balance_cents),
            float_balance=from_cents(agent.float_balance_cents),
        ),
        today_metrics=TodayMetrics(
            total_transactions=metrics.total_transactions,
            total_volume=from_cents(metrics.total_volume_cents),
            total_commission=from_cents(metrics.total_commission_cents),
            cash_in_count=metrics.cash_in_count,
            cash_out_count=metrics.cash_out_count,
        ),
        pending_transactions=[TransactionSchema.from_domain(t) for t in dashboard.pending],
        recent_transactions=[TransactionSchema.from_domain(t) for t in dashboard.recent],
        working_hours=WorkingHoursSchema(**vars(agent.working_hours)),
        commission={**default_rates(), **agent.commission_rates},
    )
