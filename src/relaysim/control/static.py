"""
StaticControl: a fixed-answer control plane for exercising client flows.

It ignores the live network state and returns whatever it was configured
with, recording every routing request it receives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relaysim.peers.relay import Relay


@dataclass
class StaticControl:
    """Control plane returning preconfigured candidates and routes."""

    relays: list["Relay"] = field(default_factory=list)
    routes: dict[int, list["Relay"]] = field(default_factory=dict)
    requests: list[tuple[str, int]] = field(default_factory=list, init=False)

    def list_candidate_relays(self) -> list["Relay"]:
        return list(self.relays)

    def resolve_subscription(self, home_relay: "Relay", stream_id: int) -> list["Relay"]:
        self.requests.append((home_relay.name, stream_id))
        return list(self.routes.get(stream_id, []))
