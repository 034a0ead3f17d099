"""
Relay: a static forwarding node in the distribution network.

Relays belong to a zone and can hold a fixed number of live connections.
A relay serves a stream only while it is receiving it. When a subscriber
asks for a stream the relay does not have yet, the relay first pulls it
from an upstream relay that already receives it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from relaysim.core.connections import establish
from relaysim.core.errors import NoEligibleRelay, RelayOverloaded
from relaysim.core.rpc import Operation
from relaysim.core.simulation import SimulationConfig
from relaysim.peers.base import Peer

if TYPE_CHECKING:
    from relaysim.core.connections import Connection
    from relaysim.peers.client import Client

logger = logging.getLogger(__name__)


class Relay(Peer):
    """A relay in a zone, with a cap on its live connection count."""

    def __init__(
        self,
        name: str,
        position: tuple[float, float],
        zone: str,
        capacity: int | None = None,
    ):
        super().__init__(name, position)
        self.zone = zone
        self.capacity = capacity  # Filled from SimulationConfig when None

    def latency_contribution(self) -> float:
        if self.simulation is None:
            return SimulationConfig().relay_latency
        return self.simulation.config.relay_latency

    def is_overloaded(self) -> bool:
        """A relay is overloaded once its live connections reach capacity."""
        return self.capacity is not None and self.load >= self.capacity

    def has_capacity(self, n_connections: int = 1) -> bool:
        """Whether `n_connections` more connections fit without exceeding capacity."""
        return self.capacity is None or self.load + n_connections <= self.capacity

    def receives(self, stream_id: int) -> bool:
        return bool(self.incoming(stream_id))

    def is_origin_of(self, stream_id: int) -> bool:
        """Whether this relay receives `stream_id` directly from a client."""
        from relaysim.peers.client import Client
        return any(isinstance(c.source, Client) for c in self.incoming(stream_id))

    def forwards(self, stream_id: int) -> bool:
        """Whether this relay already sends `stream_id` to some target."""
        return bool(self.outgoing(stream_id))

    def can_serve_stream(self, stream_id: int) -> bool:
        return self.receives(stream_id)

    # ─────────────────────────────────────────────────────────────
    # RPC surface
    # ─────────────────────────────────────────────────────────────

    def handle_rpc(self, operation: Operation, *args: Any) -> Any:
        if operation is Operation.PING:
            return self.ping()
        if operation is Operation.PUBLISH:
            return self.accept_publisher(*args)
        if operation is Operation.SUBSCRIBE:
            return self.attach_subscriber(*args)
        raise ValueError(f"Relay {self.name} does not handle {operation}")

    def ping(self) -> None:
        return None

    def accept_publisher(self, publisher: "Client", stream_id: int) -> "Connection | None":
        """Start receiving `stream_id` from its publishing client."""
        self._admit(1)
        return establish(self.simulation, publisher, self, stream_id)

    def attach_subscriber(self, subscriber: "Client", stream_id: int) -> "Connection | None":
        """
        Start sending `stream_id` to `subscriber`.

        If this relay is not yet receiving the stream it first connects to
        the least-loaded relay that is receiving it and has room for one more
        connection.

        Raises:
            RelayOverloaded: if this relay has no room for the new connections
            NoEligibleRelay: if no upstream relay can feed the stream

        Returns:
            The connection to the subscriber, or None if the stream has
            ended in the meantime
        """
        if not self.simulation.has_stream(stream_id):
            return None
        if self.receives(stream_id):
            self._admit(1)
        else:
            self._admit(2)
            upstream = self.select_upstream(stream_id)
            if upstream is None:
                raise NoEligibleRelay(
                    f"no relay with spare capacity receives stream {stream_id}"
                )
            establish(self.simulation, upstream, self, stream_id)
            logger.debug(
                "t=%.1f %s pulls stream %d from %s",
                self.simulation.clock.now, self.name, stream_id, upstream.name,
            )
        return establish(self.simulation, self, subscriber, stream_id)

    def select_upstream(self, stream_id: int) -> "Relay | None":
        candidates = [
            relay for relay in self.simulation.relays.values()
            if relay is not self
            and relay.running
            and relay.receives(stream_id)
            and relay.has_capacity()
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda r: (r.load, r.name))

    def _admit(self, n_connections: int) -> None:
        if not self.has_capacity(n_connections):
            raise RelayOverloaded(self.name, self.load, self.capacity)
