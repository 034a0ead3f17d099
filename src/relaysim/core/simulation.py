"""
Simulation: the context object owning all shared state.

Every registry the peers and the control plane read or mutate lives here:
relays, clients, the global connection table and the set of live stream
ids. Nothing is global, so several simulations can coexist (one per test).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from relaysim.core.clock import Clock
from relaysim.core.rpc import LatencyModel

if TYPE_CHECKING:
    from relaysim.control.base import Control
    from relaysim.core.connections import Connection
    from relaysim.peers.base import Peer
    from relaysim.peers.client import Client
    from relaysim.peers.relay import Relay

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    """Configuration for a relay network simulation."""

    latency_scale: float = 20.0   # Virtual time per unit of distance/latency
    client_latency: float = 20.0  # Latency contribution of a client's access link
    relay_latency: float = 2.0    # Latency contribution of a relay
    relay_capacity: int = 30      # Default max live connections per relay
    failed_grace: float = 5000.0  # How long a failed client lingers before shutting down


class Simulation:
    """
    Owns the clock, the latency model, the control plane and all registries.

    The registries are mutated only by the connection lifecycle functions and
    by the peers themselves. Outside readers use the snapshot accessors,
    which return copies.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        control: "Control | None" = None,
        clock: Clock | None = None,
    ):
        self.config = config or SimulationConfig()
        self.clock = clock or Clock()
        self.latency = LatencyModel(scale=self.config.latency_scale)

        self._relays: dict[str, "Relay"] = {}
        self._clients: dict[str, "Client"] = {}
        self._connections: dict[int, "Connection"] = {}
        self._streams: set[int] = set()
        self._next_connection_id = 0
        self._observers: list[Callable[["Simulation"], None]] = []

        if control is None:
            from relaysim.control.zones import ZoneControl
            control = ZoneControl(self)
        self.control = control

    # ─────────────────────────────────────────────────────────────
    # Snapshots
    # ─────────────────────────────────────────────────────────────

    @property
    def relays(self) -> dict[str, "Relay"]:
        return dict(self._relays)

    @property
    def clients(self) -> dict[str, "Client"]:
        return dict(self._clients)

    @property
    def connections(self) -> dict[int, "Connection"]:
        return dict(self._connections)

    @property
    def streams(self) -> frozenset[int]:
        return frozenset(self._streams)

    def has_stream(self, stream_id: int) -> bool:
        """Whether `stream_id` is currently published by a running client."""
        return stream_id in self._streams

    def stats(self) -> dict:
        """Counts of clients, streams and connections."""
        return {
            "time": self.clock.now,
            "n_relays": len(self._relays),
            "n_clients": len(self._clients),
            "n_streams": len(self._streams),
            "n_connections": len(self._connections),
        }

    # ─────────────────────────────────────────────────────────────
    # Registries
    # ─────────────────────────────────────────────────────────────

    def add_relay(self, relay: "Relay") -> "Relay":
        if relay.name in self._relays:
            raise ValueError(f"Duplicate relay name: {relay.name}")
        if relay.capacity is None:
            relay.capacity = self.config.relay_capacity
        relay.simulation = self
        self._relays[relay.name] = relay
        self.notify()
        return relay

    def add_client(self, client: "Client") -> "Client":
        if client.name in self._clients:
            raise ValueError(f"Duplicate client name: {client.name}")
        self._clients[client.name] = client
        self.notify()
        return client

    def create_client(self, name: str, position: tuple[float, float]) -> "Client":
        """Create a client at `position` and register it."""
        from relaysim.peers.client import Client
        return self.add_client(Client(self, name, position))

    def unregister_peer(self, peer: "Peer") -> None:
        """Drop a stopped client from the registry and withdraw its stream."""
        from relaysim.peers.client import Client
        if not isinstance(peer, Client):
            return
        self._clients.pop(peer.name, None)
        if peer.published_stream_id is not None:
            self.withdraw_stream(peer.published_stream_id)

    def register_stream(self, stream_id: int) -> None:
        if stream_id in self._streams:
            raise ValueError(f"Stream {stream_id} is already published")
        self._streams.add(stream_id)

    def withdraw_stream(self, stream_id: int) -> None:
        if stream_id in self._streams:
            self._streams.discard(stream_id)
            logger.info("t=%.1f stream %d withdrawn", self.clock.now, stream_id)

    def allocate_connection_id(self) -> int:
        connection_id = self._next_connection_id
        self._next_connection_id += 1
        return connection_id

    # ─────────────────────────────────────────────────────────────
    # Observers and running
    # ─────────────────────────────────────────────────────────────

    def add_observer(self, callback: Callable[["Simulation"], None]) -> None:
        """Register a callback invoked after every topology change."""
        self._observers.append(callback)

    def remove_observer(self, callback: Callable[["Simulation"], None]) -> None:
        self._observers.remove(callback)

    def notify(self) -> None:
        for callback in list(self._observers):
            callback(self)

    def run(self, until: float | None = None) -> dict:
        """Run the clock (to exhaustion or up to `until`) and return stats."""
        fired = self.clock.run(until=until)
        stats = self.stats()
        stats["events_fired"] = fired
        return stats
