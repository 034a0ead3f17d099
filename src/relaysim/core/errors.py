"""
Error kinds raised by the relay network simulation.

NoEligibleRelay and StreamMismatch surface to the client flow that triggered
them. RoutingInconsistency is only ever reported, never raised through a
client flow.
"""


class SimulationError(Exception):
    """Base class for all simulation errors."""


class NoEligibleRelay(SimulationError):
    """No relay is available to take a new connection."""


class RelayOverloaded(NoEligibleRelay):
    """A relay refused admission because it has no spare capacity."""

    def __init__(self, relay_name: str, connections: int, capacity: int):
        super().__init__(
            f"relay {relay_name} is at capacity ({connections}/{capacity})"
        )
        self.relay_name = relay_name
        self.connections = connections
        self.capacity = capacity


class StreamMismatch(SimulationError):
    """A peer was asked to serve a stream it does not hold."""

    def __init__(self, peer_name: str, stream_id: int):
        super().__init__(f"{peer_name} cannot serve stream {stream_id}")
        self.peer_name = peer_name
        self.stream_id = stream_id


class RoutingInconsistency(SimulationError):
    """No origin relay was found for a stream that is still live."""

    def __init__(self, stream_id: int):
        super().__init__(f"stream {stream_id} is live but no relay receives it")
        self.stream_id = stream_id


class TaskCancelled(SimulationError):
    """The result of a cancelled task was requested."""
