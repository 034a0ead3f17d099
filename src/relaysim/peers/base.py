"""
Base class for peers.

A peer is anything that can sit at either end of a stream connection:
clients at the edge and relays in the middle. Peers have a position on
the simulated map, which together with their own latency contribution
determines RPC delays.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from relaysim.core.connections import Connection
    from relaysim.core.rpc import Operation
    from relaysim.core.simulation import Simulation


class Peer(ABC):
    """
    Base class for clients and relays.

    `connections` holds every live connection with this peer as source or
    target, keyed by connection id.
    """

    def __init__(self, name: str, position: tuple[float, float]):
        self.name = name
        self.position = (float(position[0]), float(position[1]))
        self.connections: dict[int, "Connection"] = {}
        self.running = True
        self.simulation: "Simulation | None" = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    @property
    def load(self) -> int:
        """Number of live connections incident to this peer."""
        return len(self.connections)

    def incoming(self, stream_id: int | None = None) -> list["Connection"]:
        """Connections this peer receives, optionally filtered by stream."""
        return [
            c for c in self.connections.values()
            if c.target is self and (stream_id is None or c.stream_id == stream_id)
        ]

    def outgoing(self, stream_id: int | None = None) -> list["Connection"]:
        """Connections this peer sends on, optionally filtered by stream."""
        return [
            c for c in self.connections.values()
            if c.source is self and (stream_id is None or c.stream_id == stream_id)
        ]

    @abstractmethod
    def latency_contribution(self) -> float:
        """Latency this peer adds to every RPC it takes part in."""
        ...

    @abstractmethod
    def can_serve_stream(self, stream_id: int) -> bool:
        """Whether this peer can act as the source of `stream_id`."""
        ...

    @abstractmethod
    def handle_rpc(self, operation: "Operation", *args: Any) -> Any:
        """Run `operation` on this peer on behalf of a remote caller."""
        ...
