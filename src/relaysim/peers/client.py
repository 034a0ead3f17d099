"""
Client: an edge peer that publishes or subscribes to one stream.

Flow:
    created -> finding_home -> publishing | subscribing -> connected | failed

Finding a home relay asks the control plane for candidates (one per zone),
pings all of them concurrently and keeps the lowest round trip. A client
that finds no relay, or whose relay refuses admission, becomes failed,
lingers for a grace period and shuts itself down.

Every coroutine a client starts is tracked, and shutting down cancels the
ones still pending, so nothing fires against a client that is gone.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Coroutine

from relaysim.core.connections import shutdown_peer
from relaysim.core.errors import NoEligibleRelay, StreamMismatch
from relaysim.core.rpc import Operation, rpc
from relaysim.peers.base import Peer

if TYPE_CHECKING:
    from relaysim.core.clock import Task
    from relaysim.core.simulation import Simulation
    from relaysim.peers.relay import Relay

logger = logging.getLogger(__name__)


class ClientState(Enum):
    CREATED = "created"
    FINDING_HOME = "finding_home"
    PUBLISHING = "publishing"
    SUBSCRIBING = "subscribing"
    CONNECTED = "connected"
    FAILED = "failed"
    SHUTDOWN = "shutdown"


class Client(Peer):
    """A client at `position` that publishes or subscribes through a home relay."""

    def __init__(
        self,
        simulation: "Simulation",
        name: str,
        position: tuple[float, float],
    ):
        super().__init__(name, position)
        self.simulation = simulation
        self.published_stream_id: int | None = None
        self.subscribed_stream_id: int | None = None
        self.home_relay: "Relay | None" = None
        self.failed = False
        self.state = ClientState.CREATED
        self._tasks: list["Task"] = []

    def latency_contribution(self) -> float:
        return self.simulation.config.client_latency

    def can_serve_stream(self, stream_id: int) -> bool:
        """A client can only ever serve the stream it publishes."""
        return self.published_stream_id is not None and self.published_stream_id == stream_id

    def handle_rpc(self, operation: Operation, *args: Any) -> Any:
        if operation is Operation.PING:
            return None
        raise ValueError(f"Client {self.name} does not handle {operation}")

    @property
    def pending_tasks(self) -> list["Task"]:
        return [task for task in self._tasks if not task.done()]

    # ─────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────

    def publish_stream(self, stream_id: int) -> "Task":
        """
        Start publishing `stream_id`.

        The stream becomes live immediately; the connection to the home
        relay follows once the network round trips complete.
        """
        if self.published_stream_id is not None:
            raise ValueError(
                f"{self.name} already publishes stream {self.published_stream_id}"
            )
        self.published_stream_id = stream_id
        self.simulation.register_stream(stream_id)
        logger.info("t=%.1f %s will publish %d", self.simulation.clock.now, self.name, stream_id)
        return self._spawn(self._publish(stream_id), f"{self.name}.publish({stream_id})")

    def subscribe_stream(self, stream_id: int) -> "Task":
        """Start subscribing to `stream_id`."""
        self.subscribed_stream_id = stream_id
        logger.info("t=%.1f %s will subscribe %d", self.simulation.clock.now, self.name, stream_id)
        return self._spawn(self._subscribe(stream_id), f"{self.name}.subscribe({stream_id})")

    def shutdown(self) -> None:
        """Stop the client, cancel its pending work and drop its connections."""
        if not self.running:
            return
        self.state = ClientState.SHUTDOWN
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        removed = shutdown_peer(self.simulation, self)
        logger.info(
            "t=%.1f %s shut down (%d connections dropped)",
            self.simulation.clock.now, self.name, len(removed),
        )

    # ─────────────────────────────────────────────────────────────
    # Flows
    # ─────────────────────────────────────────────────────────────

    async def find_home_relay(self) -> "Relay":
        """
        Ping every candidate relay and return the one with the lowest round trip.

        Raises:
            NoEligibleRelay: if the control plane offers no candidate
        """
        self.state = ClientState.FINDING_HOME
        candidates = list(self.simulation.control.list_candidate_relays())
        if not candidates:
            raise NoEligibleRelay(f"no relay available for {self.name}")

        pings = [
            self._spawn(self.ping(relay), f"{self.name}.ping({relay.name})")
            for relay in candidates
        ]
        results = await self.simulation.clock.gather(*pings)

        # min() keeps the first of equal round trips, i.e. candidate order
        relay, round_trip = min(results, key=lambda result: result[1])
        self.home_relay = relay
        logger.info(
            "t=%.1f %s home relay is %s (rtt %.1f)",
            self.simulation.clock.now, self.name, relay.name, round_trip,
        )
        return relay

    async def ping(self, relay: "Relay") -> tuple["Relay", float]:
        clock = self.simulation.clock
        start = clock.now
        await self._call(relay, Operation.PING)
        return relay, clock.now - start

    async def _publish(self, stream_id: int) -> None:
        try:
            home = await self.find_home_relay()
            self.state = ClientState.PUBLISHING
            connection = await self._call(home, Operation.PUBLISH, self, stream_id)
        except StreamMismatch as exc:
            logger.error("t=%.1f %s: %s", self.simulation.clock.now, self.name, exc)
            await self._fail(exc)
            return
        except NoEligibleRelay as exc:
            await self._fail(exc)
            return

        if connection is not None:
            self._connected(home)

    async def _subscribe(self, stream_id: int) -> None:
        try:
            home = await self.find_home_relay()
            self.state = ClientState.SUBSCRIBING
            candidates = self.simulation.control.resolve_subscription(home, stream_id)
            if not candidates:
                # Either the stream is gone or routing is inconsistent; the
                # control plane reports the latter. Both end here.
                logger.info(
                    "t=%.1f %s: no route to stream %d",
                    self.simulation.clock.now, self.name, stream_id,
                )
                self.shutdown()
                return
            connection = await self._call(candidates[0], Operation.SUBSCRIBE, self, stream_id)
        except StreamMismatch as exc:
            logger.error("t=%.1f %s: %s", self.simulation.clock.now, self.name, exc)
            await self._fail(exc)
            return
        except NoEligibleRelay as exc:
            await self._fail(exc)
            return

        if connection is None:
            logger.info(
                "t=%.1f %s: stream %d ended before it was attached",
                self.simulation.clock.now, self.name, stream_id,
            )
            self.shutdown()
            return
        self._connected(candidates[0])

    async def _fail(self, reason: Exception) -> None:
        self.failed = True
        self.state = ClientState.FAILED
        logger.info("t=%.1f %s failed: %s", self.simulation.clock.now, self.name, reason)
        await self.simulation.clock.sleep(self.simulation.config.failed_grace)
        self.shutdown()

    def _connected(self, relay: "Relay") -> None:
        self.state = ClientState.CONNECTED
        logger.info("t=%.1f %s connected via %s", self.simulation.clock.now, self.name, relay.name)

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    def _call(self, target: Peer, operation: Operation, *args: Any) -> Coroutine:
        sim = self.simulation
        return rpc(sim.clock, sim.latency, self, target, operation, *args)

    def _spawn(self, coro: Coroutine, name: str) -> "Task":
        task = self.simulation.clock.spawn(coro, name=name)
        if task.done():
            self._forget(task)
        else:
            self._tasks.append(task)
            task.add_done_callback(self._forget)
        return task

    def _forget(self, task: "Task") -> None:
        if task in self._tasks:
            self._tasks.remove(task)
        error = task.exception()
        if error is not None and not task.awaited and self.running and not self.failed:
            # The flow died outside its handled errors; finish the state machine.
            self._spawn(self._fail(error), f"{self.name}.fail")
