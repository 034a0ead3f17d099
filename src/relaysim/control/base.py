"""
The control plane capability.

Clients consult the control plane twice: to get the relays worth pinging
when choosing a home relay, and to find where to attach a subscription.
Any object with these two methods can be plugged into a Simulation.
"""

from __future__ import annotations

from typing import Protocol, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from relaysim.peers.relay import Relay


class Control(Protocol):
    """Protocol for relay selection and subscription routing policies."""

    def list_candidate_relays(self) -> Sequence["Relay"]:
        """
        Relays a client should ping to choose its home relay.

        An empty result means no relay is available at all.
        """
        ...

    def resolve_subscription(self, home_relay: "Relay", stream_id: int) -> list["Relay"]:
        """
        Ordered relays a subscriber could attach to; the first one is used.

        An empty result means the subscription cannot be routed.
        """
        ...
