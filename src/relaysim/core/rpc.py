"""
Simulated RPC between peers.

A call is modelled as one propagation delay to the target, a synchronous
invocation of the operation on the target, and the same delay back. The
delay depends only on the two peers' positions and latency contributions,
so it is symmetric.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from relaysim.core.clock import Clock
    from relaysim.peers.base import Peer

logger = logging.getLogger(__name__)


class Operation(Enum):
    """Operations a peer can be asked to perform over RPC."""

    PING = "ping"
    PUBLISH = "publish"      # args: (publisher, stream_id)
    SUBSCRIBE = "subscribe"  # args: (subscriber, stream_id)


@dataclass
class LatencyModel:
    """Maps a pair of peers to a one-way propagation delay."""

    scale: float = 20.0  # Virtual time units per unit of distance/latency

    def one_way_delay(self, source: "Peer", target: "Peer") -> float:
        """
        One-way delay between two peers.

        delay = scale * (|source - target| + source latency + target latency)
        """
        dx, dy = np.subtract(source.position, target.position)
        distance = float(np.hypot(dx, dy))
        base = source.latency_contribution() + target.latency_contribution()
        return self.scale * (distance + base)

    def round_trip(self, source: "Peer", target: "Peer") -> float:
        return 2.0 * self.one_way_delay(source, target)


async def rpc(
    clock: "Clock",
    latency: LatencyModel,
    source: "Peer",
    target: "Peer",
    operation: Operation,
    *args: Any,
) -> Any:
    """
    Call `operation` on `target` as if over the network.

    Suspends for the one-way delay, runs the operation synchronously on the
    target, suspends for the same delay again and returns the result.
    Exceptions raised by the operation propagate to the caller after the
    return trip.
    """
    delay = latency.one_way_delay(source, target)
    await clock.sleep(delay)
    logger.debug(
        "t=%.1f %s -> %s %s%r", clock.now, source.name, target.name, operation.value, args
    )
    try:
        result = target.handle_rpc(operation, *args)
    except Exception:
        await clock.sleep(delay)
        raise
    await clock.sleep(delay)
    return result
