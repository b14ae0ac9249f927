"""Agent eligibility and ranking for nearby-agent search"""

from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple

from cashpoint_gateway.domain.geo import haversine_km
from cashpoint_gateway.domain.models import Agent, AgentStatus, RankedAgent, VerificationLevel, WorkingHours


def weekday_name(moment: datetime) -> str:
    return moment.strftime("%A").lower()


def is_within_working_hours(hours: WorkingHours, local_now: datetime) -> bool:
    """
    True when local_now falls inside the agent's declared window.

    Bounds are inclusive. A window whose close is earlier than its open runs
    past midnight; the after-midnight part belongs to the previous day's entry.
    """
    current_time = local_now.strftime("%H:%M")
    days = {d.lower() for d in hours.days}
    today = weekday_name(local_now)

    if hours.open <= hours.close:
        return today in days and hours.open <= current_time <= hours.close

    yesterday = weekday_name(local_now - timedelta(days=1))
    if current_time >= hours.open:
        return today in days
    return current_time <= hours.close and yesterday in days


def is_eligible(
    agent: Agent,
    local_now: datetime,
    min_float_cents: int,
    service: Optional[str] = None,
    min_verification: Optional[VerificationLevel] = None,
) -> bool:
    """Filter pipeline: service offered, active, float above threshold, open now"""
    if service and service not in agent.services:
        return False
    if agent.status != AgentStatus.ACTIVE:
        return False
    if agent.float_balance_cents <= min_float_cents:
        return False
    if not is_within_working_hours(agent.working_hours, local_now):
        return False
    if min_verification is not None and agent.verification_level.rank < min_verification.rank:
        return False
    return True


def compare_ranked(tie_tolerance_km: float):
    """
    Two-level comparator: distance ascending, but distances closer than the
    tolerance count as a tie and the higher rating goes first.
    """

    def _compare(a: RankedAgent, b: RankedAgent) -> int:
        if abs(a.distance_km - b.distance_km) < tie_tolerance_km:
            if a.agent.rating != b.agent.rating:
                return -1 if a.agent.rating > b.agent.rating else 1
            return 0
        return -1 if a.distance_km < b.distance_km else 1

    return _compare


def rank_agents(candidates: Iterable[RankedAgent], tie_tolerance_km: float) -> List[RankedAgent]:
    # Pre-sort by plain distance so chains of near-ties resolve the same way on every call
    by_distance = sorted(candidates, key=lambda c: (c.distance_km, c.agent.agent_code))
    return sorted(by_distance, key=cmp_to_key(compare_ranked(tie_tolerance_km)))


def select_nearby(
    agents: Iterable[Agent],
    latitude: float,
    longitude: float,
    radius_km: float,
    local_now: datetime,
    min_float_cents: int,
    tie_tolerance_km: float,
    limit: int,
    service: Optional[str] = None,
    min_verification: Optional[VerificationLevel] = None,
) -> Tuple[List[RankedAgent], int]:
    """
    Filter, measure, and rank agents around a point.

    Returns: (ranked agents truncated to limit, total number that qualified)
    """
    candidates = []
    for agent in agents:
        if not is_eligible(agent, local_now, min_float_cents, service, min_verification):
            continue
        distance = haversine_km(latitude, longitude, agent.location.latitude, agent.location.longitude)
        if distance > radius_km:
            continue
        candidates.append(RankedAgent(agent=agent, distance_km=distance))

    ranked = rank_agents(candidates, tie_tolerance_km)
    return ranked[:limit], len(ranked)
