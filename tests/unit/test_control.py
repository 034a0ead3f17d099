"""Unit tests for ZoneControl and StaticControl."""

import logging

import pytest

from relaysim.control import StaticControl, ZoneControl
from relaysim.core import Simulation
from relaysim.core.connections import establish
from relaysim.peers import Relay


def publish(simulation, relay, stream_id, name=None):
    """Attach a publishing client of `stream_id` to `relay`."""
    client = simulation.create_client(name or f"pub-{stream_id}", relay.position)
    client.published_stream_id = stream_id
    simulation.register_stream(stream_id)
    establish(simulation, client, relay, stream_id)
    return client


def fill(simulation, relay, n, stream_id=1000):
    """Give `relay` n extra outgoing connections to dummy subscribers."""
    if not relay.receives(stream_id):
        publish(simulation, relay, stream_id, name=f"filler-{relay.name}")
    for i in range(n):
        sink = simulation.create_client(f"sink-{relay.name}-{i}", relay.position)
        establish(simulation, relay, sink, stream_id)


class TestListCandidateRelays:
    """Tests for home relay candidates."""

    def test_one_least_loaded_relay_per_zone(self, simulation):
        a1 = simulation.add_relay(Relay("a1", (0.0, 0.0), "a"))
        a2 = simulation.add_relay(Relay("a2", (1.0, 0.0), "a"))
        b1 = simulation.add_relay(Relay("b1", (50.0, 0.0), "b"))
        fill(simulation, a1, 2)

        candidates = simulation.control.list_candidate_relays()
        assert candidates == [a2, b1]

    def test_ties_break_by_name(self, simulation):
        simulation.add_relay(Relay("z-2", (0.0, 0.0), "z"))
        first = simulation.add_relay(Relay("z-1", (0.0, 0.0), "z"))

        assert simulation.control.list_candidate_relays() == [first]

    def test_capacity_scenario(self, simulation):
        r1 = simulation.add_relay(Relay("R1", (0.0, 0.0), "z1", capacity=1))
        r2 = simulation.add_relay(Relay("R2", (5.0, 0.0), "z1", capacity=1))

        assert simulation.control.list_candidate_relays() == [r1]
        publish(simulation, r1, 1)

        assert r1.is_overloaded()
        assert simulation.control.list_candidate_relays() == [r2]

    def test_never_returns_overloaded_relays(self, simulation):
        relays = [
            simulation.add_relay(Relay(f"r{i}", (float(i), 0.0), f"z{i % 3}", capacity=3))
            for i in range(6)
        ]
        for i, relay in enumerate(relays):
            fill(simulation, relay, i % 4, stream_id=100 + i)

        candidates = simulation.control.list_candidate_relays()
        zones = [r.zone for r in candidates]
        assert len(zones) == len(set(zones))
        for relay in candidates:
            assert not relay.is_overloaded()
            same_zone = [
                r for r in relays if r.zone == relay.zone and not r.is_overloaded()
            ]
            assert relay.load == min(r.load for r in same_zone)

    def test_empty_when_everything_overloaded(self, simulation):
        r1 = simulation.add_relay(Relay("R1", (0.0, 0.0), "z1", capacity=1))
        r2 = simulation.add_relay(Relay("R2", (0.0, 0.0), "z2", capacity=1))
        publish(simulation, r1, 1)
        publish(simulation, r2, 2)

        assert simulation.control.list_candidate_relays() == []

    def test_default_control_is_zone_control(self, simulation):
        assert isinstance(simulation.control, ZoneControl)


class TestResolveSubscription:
    """Tests for subscription routing."""

    def test_cross_zone_origin(self, two_zone_simulation):
        sim = two_zone_simulation
        r1, r2 = sim.relays["R1"], sim.relays["R2"]
        publish(sim, r1, 7)

        assert sim.control.resolve_subscription(r2, 7) == [r1]

    def test_in_zone_forwarders_follow_origin(self, simulation):
        origin = simulation.add_relay(Relay("o", (0.0, 0.0), "east"))
        home = simulation.add_relay(Relay("h", (90.0, 0.0), "west"))
        forwarder = simulation.add_relay(Relay("f", (80.0, 0.0), "west"))
        idle = simulation.add_relay(Relay("i", (85.0, 0.0), "west"))
        publish(simulation, origin, 7)
        establish(simulation, origin, forwarder, 7)
        sink = simulation.create_client("sink", (80.0, 1.0))
        establish(simulation, forwarder, sink, 7)

        candidates = simulation.control.resolve_subscription(home, 7)
        assert candidates == [origin, forwarder]
        assert idle not in candidates

    def test_overloaded_origin_falls_back_to_in_zone_forwarder(self, simulation):
        origin = simulation.add_relay(Relay("o", (0.0, 0.0), "east", capacity=3))
        home = simulation.add_relay(Relay("h", (90.0, 0.0), "west"))
        forwarder = simulation.add_relay(Relay("f", (80.0, 0.0), "west"))
        publish(simulation, origin, 7)
        establish(simulation, origin, forwarder, 7)
        establish(simulation, forwarder, simulation.create_client("s1", (0.0, 0.0)), 7)
        establish(simulation, origin, simulation.create_client("s2", (0.0, 0.0)), 7)

        assert origin.is_overloaded()
        assert simulation.control.resolve_subscription(home, 7) == [forwarder]

    def test_home_relay_is_last_resort(self, simulation):
        origin = simulation.add_relay(Relay("o", (0.0, 0.0), "east", capacity=1))
        home = simulation.add_relay(Relay("h", (90.0, 0.0), "west"))
        publish(simulation, origin, 7)

        assert simulation.control.resolve_subscription(home, 7) == [home]

    def test_empty_when_home_also_overloaded(self, simulation):
        origin = simulation.add_relay(Relay("o", (0.0, 0.0), "east", capacity=1))
        home = simulation.add_relay(Relay("h", (90.0, 0.0), "west", capacity=1))
        publish(simulation, origin, 7)
        publish(simulation, home, 8)

        assert simulation.control.resolve_subscription(home, 7) == []

    def test_gone_stream_is_silent(self, two_zone_simulation, caplog):
        sim = two_zone_simulation
        r1, r2 = sim.relays["R1"], sim.relays["R2"]
        publisher = publish(sim, r1, 7)
        publisher.shutdown()

        with caplog.at_level(logging.WARNING):
            assert sim.control.resolve_subscription(r2, 7) == []
        assert "anomaly" not in caplog.text

    def test_live_stream_without_origin_is_reported(self, two_zone_simulation, caplog):
        sim = two_zone_simulation
        client = sim.create_client("orphan", (0.0, 0.0))
        client.published_stream_id = 9
        sim.register_stream(9)

        with caplog.at_level(logging.WARNING, logger="relaysim.control.zones"):
            assert sim.control.resolve_subscription(sim.relays["R2"], 9) == []
        assert "anomaly" in caplog.text
        assert "stream 9" in caplog.text


class TestStaticControl:
    """Tests for the fixed-answer control double."""

    def test_returns_configured_answers(self):
        relay = Relay("r", (0.0, 0.0), "z")
        control = StaticControl(relays=[relay], routes={3: [relay]})

        assert control.list_candidate_relays() == [relay]
        assert control.resolve_subscription(relay, 3) == [relay]
        assert control.resolve_subscription(relay, 4) == []
        assert control.requests == [("r", 3), ("r", 4)]

    def test_pluggable_into_simulation(self):
        control = StaticControl()
        simulation = Simulation(control=control)
        assert simulation.control is control
