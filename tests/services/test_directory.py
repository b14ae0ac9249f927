"""Nearby-agent search against the database"""

import pytest
from cashpoint_gateway.domain.exceptions import AgentNotFoundError, InvalidLocationError
from cashpoint_gateway.domain.models import AgentStatus
from cashpoint_gateway.infrastructure.database.repositories import AgentRepository
from cashpoint_gateway.services.directory import AgentDirectory

LAT, LON = "5.6037", "-0.1870"


@pytest.fixture
def directory(db, clock):
    return AgentDirectory(AgentRepository(db), clock)


def test_returns_only_serviceable_agents_closest_first(directory, agent_factory):
    agent_factory(code="FAR", lat_offset=0.03)
    agent_factory(code="NEAR", lat_offset=0.005)
    agent_factory(code="SUSP", lat_offset=0.001, status=AgentStatus.SUSPENDED)
    agent_factory(code="LOWF", lat_offset=0.002, float_="500", rating=5.0)
    agent_factory(code="SHUT", lat_offset=0.003, days=["sunday"])

    result = directory.find_nearby(LAT, LON)

    assert [r.agent.agent_code for r in result.agents] == ["NEAR", "FAR"]
    assert result.total_found == 2
    assert result.radius_km == 5.0
    assert result.agents[0].distance_km < result.agents[1].distance_km


def test_default_radius_excludes_distant_agents(directory, agent_factory):
    agent_factory(code="EDGE", lat_offset=0.06)  # ~6.7 km

    assert directory.find_nearby(LAT, LON).agents == []
    assert [r.agent.agent_code for r in directory.find_nearby(LAT, LON, "10").agents] == ["EDGE"]


def test_service_filter(directory, agent_factory):
    agent_factory(code="CASHIN", services=["cash_in"])

    assert len(directory.find_nearby(LAT, LON, service="cash_in").agents) == 1
    assert directory.find_nearby(LAT, LON, service="cash_out").agents == []


def test_no_qualifying_agents_is_an_empty_result(directory):
    result = directory.find_nearby(LAT, LON)

    assert result.agents == []
    assert result.total_found == 0


@pytest.mark.parametrize("lat,lon", [(None, LON), (LAT, ""), ("north", LON), ("95", LON)])
def test_invalid_location(directory, lat, lon):
    with pytest.raises(InvalidLocationError):
        directory.find_nearby(lat, lon)


def test_lookup_by_code_and_owner(directory, agent_factory):
    agent = agent_factory(code="AGT001", user_id="agent-user-001")

    assert directory.find_by_code("AGT001").id == agent.id
    assert directory.find_by_owner("agent-user-001").agent_code == "AGT001"

    with pytest.raises(AgentNotFoundError):
        directory.find_by_code("NOPE")
    with pytest.raises(AgentNotFoundError):
        directory.find_by_owner("consumer-001")


def test_agents_across_the_antimeridian_are_found(directory, agent_factory):
    # Agent at 179.99 E, customer at 179.99 W, about 2 km apart
    agent_factory(code="DATELINE", lat_offset=0.0, lon_offset=179.99 - float(LON))

    result = directory.find_nearby(LAT, "-179.99")

    assert [r.agent.agent_code for r in result.agents] == ["DATELINE"]
    assert result.agents[0].distance_km < 3
