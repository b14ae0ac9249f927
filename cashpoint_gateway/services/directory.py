"""Agent lookup and nearby-agent search"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from cashpoint_gateway.config import settings
from cashpoint_gateway.domain.exceptions import AgentNotFoundError
from cashpoint_gateway.domain.geo import bounding_box
from cashpoint_gateway.domain.matching import select_nearby
from cashpoint_gateway.domain.models import Agent, RankedAgent, VerificationLevel
from cashpoint_gateway.domain.validation import parse_coordinates, parse_radius
from cashpoint_gateway.infrastructure.database.repositories import AgentRepository
from cashpoint_gateway.infrastructure.observability.metrics import nearby_results_histogram
from cashpoint_gateway.utils.clock import Clock, to_local, utc_now
from cashpoint_gateway.utils.money import to_cents

logger = logging.getLogger(__name__)


@dataclass
class NearbySearchResult:
    agents: List[RankedAgent]
    radius_km: float
    total_found: int


class AgentDirectory:
    """Answers which agents can serve a customer right now, closest first"""

    def __init__(self, agents: AgentRepository, clock: Clock = utc_now):
        self.agents = agents
        self.clock = clock

    def find_nearby(
        self,
        latitude: Any,
        longitude: Any,
        radius_km: Any = None,
        service: Optional[str] = None,
        min_verification: Optional[VerificationLevel] = None,
    ) -> NearbySearchResult:
        """
        Agents within radius that offer the service, are active, hold float
        above the operating threshold and are open now.

        Raises:
            InvalidLocationError: Coordinates missing, unparsable or out of range
        """
        lat, lon = parse_coordinates(latitude, longitude)
        radius = parse_radius(radius_km, settings.default_search_radius_km)

        candidates = self.agents.list_in_box(*bounding_box(lat, lon, radius))
        ranked, total = select_nearby(
            candidates,
            latitude=lat,
            longitude=lon,
            radius_km=radius,
            local_now=to_local(self.clock(), settings.local_timezone),
            min_float_cents=to_cents(settings.min_float_balance),
            tie_tolerance_km=settings.ranking_tie_tolerance_km,
            limit=settings.max_nearby_results,
            service=service or None,
            min_verification=min_verification,
        )

        nearby_results_histogram.observe(total)
        logger.info(
            "Nearby agent search",
            extra={"radius_km": radius, "service": service, "candidates": len(candidates), "found": total},
        )
        return NearbySearchResult(agents=ranked, radius_km=radius, total_found=total)

    def find_by_code(self, agent_code: str) -> Agent:
        agent = self.agents.get_by_code(agent_code)
        if agent is None:
            raise AgentNotFoundError(f"Agent {agent_code} not found")
        return agent

    def find_by_owner(self, user_id: str) -> Agent:
        agent = self.agents.get_by_user_id(user_id)
        if agent is None:
            raise AgentNotFoundError("Agent profile not found")
        return agent
