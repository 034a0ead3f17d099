"""
Pytest configuration and shared fixtures.
"""

import pytest

from relaysim.core import Simulation, SimulationConfig
from relaysim.peers import Relay


@pytest.fixture
def config():
    """Default simulation configuration."""
    return SimulationConfig()


@pytest.fixture
def simulation(config):
    """Empty simulation with the zone-aware control plane."""
    return Simulation(config=config)


@pytest.fixture
def two_zone_simulation(simulation):
    """Relay R1 in zone z1 at the origin, R2 in zone z2 at (100, 0)."""
    simulation.add_relay(Relay("R1", (0.0, 0.0), "z1"))
    simulation.add_relay(Relay("R2", (100.0, 0.0), "z2"))
    return simulation


@pytest.fixture
def check_consistency():
    """Assert that the global table and every peer's table agree."""

    def check(simulation):
        table = simulation.connections
        peers = list(simulation.relays.values()) + list(simulation.clients.values())
        for connection in table.values():
            assert connection.source.connections.get(connection.id) is connection
            assert connection.target.connections.get(connection.id) is connection
            assert connection.source.running and connection.target.running
        for peer in peers:
            for connection_id, connection in peer.connections.items():
                assert table.get(connection_id) is connection
                assert peer is connection.source or peer is connection.target

    return check
