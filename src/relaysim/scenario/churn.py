"""
Churn driver: random client arrivals and departures.

Every `interval` of virtual time the driver may add one client and may
remove one. New clients publish a fresh stream (always, if nothing is
being published yet) or subscribe to a random live stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from relaysim.peers.relay import Relay

if TYPE_CHECKING:
    from relaysim.core.clock import ScheduledCall
    from relaysim.core.simulation import Simulation, SimulationConfig
    from relaysim.peers.client import Client

logger = logging.getLogger(__name__)


@dataclass
class ChurnConfig:
    """Configuration for the churn driver."""

    interval: float = 1000.0           # Virtual time between churn rounds
    add_probability: float = 0.2       # Chance of adding a client each round
    remove_probability: float = 0.15   # Chance of removing a client each round
    publish_probability: float = 0.2   # Chance a new client publishes rather than subscribes
    max_clients: int = 100             # No arrivals at or above this many clients
    min_clients: int = 5               # No departures at or below this many clients
    area: tuple[float, float] = (5.0, 95.0)  # Client positions are uniform in area x area
    seed: int | None = None


def default_relays() -> list[Relay]:
    """The four relays of the reference scenario, two zones of two."""
    return [
        Relay("us-ny-1", (90.0, 80.0), "us-ny"),
        Relay("us-ny-2", (90.0, 85.0), "us-ny"),
        Relay("us-az-1", (50.0, 95.0), "us-az"),
        Relay("us-az-2", (55.0, 95.0), "us-az"),
    ]


class ChurnDriver:
    """Creates and destroys clients at random on a fixed virtual-time period."""

    def __init__(self, simulation: "Simulation", config: ChurnConfig | None = None):
        self.simulation = simulation
        self.config = config or ChurnConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.next_stream_id = 0
        self.rounds = 0
        self.clients_added = 0
        self.clients_removed = 0
        self._pending: "ScheduledCall | None" = None

    @property
    def running(self) -> bool:
        return self._pending is not None

    def start(self) -> None:
        if self._pending is None:
            self._pending = self.simulation.clock.delay(self._round, self.config.interval)

    def stop(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _round(self) -> None:
        self.rounds += 1
        cfg = self.config
        clients = self.simulation.clients

        if len(clients) < cfg.max_clients and self.rng.random() < cfg.add_probability:
            self.add_client()

        clients = self.simulation.clients
        if len(clients) > cfg.min_clients and self.rng.random() < cfg.remove_probability:
            names = sorted(clients)
            self.remove_client(clients[names[int(self.rng.integers(len(names)))]])

        self._pending = self.simulation.clock.delay(self._round, cfg.interval)

    def add_client(self) -> "Client":
        """Create a client at a random position and start its publish or subscribe flow."""
        low, high = self.config.area
        name = self._unique_name()
        x, y = self.rng.uniform(low, high, size=2)
        client = self.simulation.create_client(name, (float(x), float(y)))
        self.clients_added += 1

        streams = sorted(self.simulation.streams)
        if not streams or self.rng.random() < self.config.publish_probability:
            stream_id = self.next_stream_id
            self.next_stream_id += 1
            client.publish_stream(stream_id)
        else:
            stream_id = streams[int(self.rng.integers(len(streams)))]
            client.subscribe_stream(stream_id)
        return client

    def remove_client(self, client: "Client") -> None:
        logger.info("t=%.1f shutting down %s", self.simulation.clock.now, client.name)
        client.shutdown()
        self.clients_removed += 1

    def _unique_name(self) -> str:
        existing = self.simulation.clients
        while True:
            name = f"client-{int(self.rng.integers(10000))}"
            if name not in existing:
                return name


def create_scenario(
    churn_config: ChurnConfig | None = None,
    simulation_config: "SimulationConfig | None" = None,
) -> tuple["Simulation", ChurnDriver]:
    """Build a simulation with the default relays and a started churn driver."""
    from relaysim.core.simulation import Simulation

    simulation = Simulation(config=simulation_config)
    for relay in default_relays():
        simulation.add_relay(relay)
    driver = ChurnDriver(simulation, churn_config)
    driver.start()
    return simulation, driver
