"""
Core engine primitives.

This layer knows nothing about zones or routing policy. It only knows:
- Virtual time and suspended coroutines (Clock, Task)
- Distance-based RPC latency (LatencyModel, rpc)
- Directed stream connections and their lifecycle
- The Simulation context that owns every registry
"""

from relaysim.core.clock import Clock, ScheduledCall, Task
from relaysim.core.connections import Connection, establish, shutdown_peer, teardown
from relaysim.core.errors import (
    NoEligibleRelay,
    RelayOverloaded,
    RoutingInconsistency,
    SimulationError,
    StreamMismatch,
    TaskCancelled,
)
from relaysim.core.rpc import LatencyModel, Operation, rpc
from relaysim.core.simulation import Simulation, SimulationConfig

__all__ = [
    "Clock",
    "ScheduledCall",
    "Task",
    "Connection",
    "establish",
    "shutdown_peer",
    "teardown",
    "NoEligibleRelay",
    "RelayOverloaded",
    "RoutingInconsistency",
    "SimulationError",
    "StreamMismatch",
    "TaskCancelled",
    "LatencyModel",
    "Operation",
    "rpc",
    "Simulation",
    "SimulationConfig",
]
