"""
ZoneControl: zone-aware relay selection and subscription routing.

Both operations are computed from the simulation's current relay and
connection state on every call; no routing table is kept.

Relay selection:
- Group relays by zone
- In each zone keep the least-loaded relay that is not overloaded
- Zones without such a relay contribute nothing

Subscription routing, in preference order:
1. The origin relay (receives the stream straight from its publisher),
   if it is not overloaded
2. Relays in the subscriber's home zone already forwarding the stream
3. Only if nothing above qualified: the home relay itself, which will pull
   the stream from upstream on demand
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from relaysim.core.errors import RoutingInconsistency

if TYPE_CHECKING:
    from relaysim.core.simulation import Simulation
    from relaysim.peers.relay import Relay

logger = logging.getLogger(__name__)


def _by_load(relay: "Relay") -> tuple[int, str]:
    return relay.load, relay.name


class ZoneControl:
    """Production control plane reading the simulation's live state."""

    def __init__(self, simulation: "Simulation"):
        self.simulation = simulation

    def _running_relays(self) -> list["Relay"]:
        return [r for r in self.simulation.relays.values() if r.running]

    def relays_by_zone(self) -> dict[str, list["Relay"]]:
        zones: dict[str, list["Relay"]] = defaultdict(list)
        for relay in self._running_relays():
            zones[relay.zone].append(relay)
        return dict(zones)

    def list_candidate_relays(self) -> list["Relay"]:
        """One least-loaded, non-overloaded relay per zone, ordered by zone name."""
        candidates = []
        zones = self.relays_by_zone()
        for zone in sorted(zones):
            eligible = [r for r in zones[zone] if not r.is_overloaded()]
            if eligible:
                candidates.append(min(eligible, key=_by_load))
        return candidates

    def origin_relays(self, stream_id: int) -> list["Relay"]:
        """Relays receiving `stream_id` directly from a client, least loaded first."""
        origins = [r for r in self._running_relays() if r.is_origin_of(stream_id)]
        return sorted(origins, key=_by_load)

    def resolve_subscription(self, home_relay: "Relay", stream_id: int) -> list["Relay"]:
        origins = self.origin_relays(stream_id)
        if not origins:
            if self.simulation.has_stream(stream_id):
                logger.warning(
                    "t=%.1f routing anomaly: %s",
                    self.simulation.clock.now, RoutingInconsistency(stream_id),
                )
            return []

        candidates = [r for r in origins if not r.is_overloaded()]

        in_zone = sorted(
            (
                r for r in self._running_relays()
                if r.zone == home_relay.zone
                and r not in candidates
                and not r.is_overloaded()
                and r.forwards(stream_id)
            ),
            key=_by_load,
        )
        candidates.extend(in_zone)

        if not candidates and not home_relay.is_overloaded():
            candidates.append(home_relay)
        return candidates
