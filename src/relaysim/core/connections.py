"""
Directed stream connections and their lifecycle.

A Connection is referenced from three places: the simulation's global
connection table and the connection tables of its two endpoints. Every
function here adds or removes all three references together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from relaysim.core.errors import StreamMismatch

if TYPE_CHECKING:
    from relaysim.core.simulation import Simulation
    from relaysim.peers.base import Peer

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """Directed edge: `target` receives `stream_id` from `source`."""

    id: int
    source: "Peer"
    target: "Peer"
    stream_id: int

    def other(self, peer: "Peer") -> "Peer":
        """The endpoint that is not `peer`."""
        return self.target if peer is self.source else self.source

    def __repr__(self) -> str:
        return (
            f"Connection({self.id}, {self.source.name} -> {self.target.name}, "
            f"stream={self.stream_id})"
        )


def establish(
    simulation: "Simulation",
    source: "Peer",
    target: "Peer",
    stream_id: int,
) -> Connection | None:
    """
    Create a connection carrying `stream_id` from `source` to `target`.

    Raises:
        StreamMismatch: if `source` cannot serve the stream

    Returns:
        The new connection, or None if either endpoint is no longer running
    """
    if not source.can_serve_stream(stream_id):
        raise StreamMismatch(source.name, stream_id)

    if not (source.running and target.running):
        logger.debug(
            "t=%.1f not connecting %s -> %s: endpoint stopped",
            simulation.clock.now, source.name, target.name,
        )
        return None

    connection = Connection(
        id=simulation.allocate_connection_id(),
        source=source,
        target=target,
        stream_id=stream_id,
    )
    simulation._connections[connection.id] = connection
    source.connections[connection.id] = connection
    target.connections[connection.id] = connection
    logger.debug("t=%.1f added %r", simulation.clock.now, connection)
    simulation.notify()
    return connection


def teardown(simulation: "Simulation", connection: Connection, notify: bool = True) -> None:
    """Remove a connection from the global table and from both endpoints."""
    simulation._connections.pop(connection.id, None)
    connection.source.connections.pop(connection.id, None)
    connection.target.connections.pop(connection.id, None)
    logger.debug("t=%.1f removed %r", simulation.clock.now, connection)
    if notify:
        simulation.notify()


def shutdown_peer(simulation: "Simulation", peer: "Peer") -> list[Connection]:
    """
    Stop `peer` and drop every connection incident to it.

    Clients are also removed from the client registry and their published
    stream stops being live. Relays stay registered.

    Returns:
        The connections that were removed
    """
    peer.running = False
    simulation.unregister_peer(peer)

    removed = list(peer.connections.values())
    for connection in removed:
        teardown(simulation, connection, notify=False)

    simulation.notify()
    return removed
