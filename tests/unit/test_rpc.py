"""Unit tests for LatencyModel and rpc."""

import pytest

from relaysim.core.clock import Clock
from relaysim.core.rpc import LatencyModel, Operation, rpc
from relaysim.core.simulation import SimulationConfig
from relaysim.peers import Relay


class TestLatencyModel:
    """Tests for the distance-based delay model."""

    def test_one_way_delay(self):
        model = LatencyModel(scale=20.0)
        a = Relay("a", (0.0, 0.0), "z")
        b = Relay("b", (3.0, 4.0), "z")

        # 20 * (distance 5 + relay latency 2 + relay latency 2)
        assert model.one_way_delay(a, b) == pytest.approx(180.0)
        assert model.round_trip(a, b) == pytest.approx(360.0)

    def test_delay_is_symmetric(self, simulation):
        relay = simulation.add_relay(Relay("r", (12.5, 40.0), "z"))
        client = simulation.create_client("c", (71.0, 3.25))
        model = simulation.latency

        assert model.one_way_delay(client, relay) == pytest.approx(
            model.one_way_delay(relay, client)
        )

    def test_colocated_peers_pay_base_latency(self, simulation):
        relay = simulation.add_relay(Relay("r", (10.0, 10.0), "z"))
        client = simulation.create_client("c", (10.0, 10.0))

        expected = simulation.config.latency_scale * (
            simulation.config.client_latency + simulation.config.relay_latency
        )
        assert simulation.latency.one_way_delay(client, relay) == pytest.approx(expected)

    def test_unregistered_relay_uses_config_default(self):
        relay = Relay("r", (0.0, 0.0), "z")
        assert relay.latency_contribution() == SimulationConfig().relay_latency


class TestRpc:
    """Tests for the simulated remote call."""

    def test_operation_runs_after_one_way_delay(self):
        clock = Clock()
        model = LatencyModel(scale=1.0)
        caller = Relay("caller", (0.0, 0.0), "z")
        target = Relay("target", (6.0, 8.0), "z")
        seen_at = []
        target.ping = lambda: seen_at.append(clock.now)

        async def call():
            await rpc(clock, model, caller, target, Operation.PING)
            return clock.now

        task = clock.spawn(call())
        clock.run()

        # one way = 1 * (10 + 2 + 2)
        assert seen_at == [pytest.approx(14.0)]
        assert task.result() == pytest.approx(28.0)

    def test_symmetric_round_trip(self):
        clock = Clock()
        model = LatencyModel()
        a = Relay("a", (1.0, 2.0), "z")
        b = Relay("b", (30.0, 70.0), "z")

        async def timed(source, target):
            start = clock.now
            await rpc(clock, model, source, target, Operation.PING)
            return clock.now - start

        forward = clock.spawn(timed(a, b))
        backward = clock.spawn(timed(b, a))
        clock.run()

        assert forward.result() == pytest.approx(backward.result())

    def test_errors_propagate_after_return_trip(self, simulation):
        relay = simulation.add_relay(Relay("r", (0.0, 0.0), "z"))
        client = simulation.create_client("c", (0.0, 0.0))
        clock = simulation.clock

        async def call():
            try:
                await rpc(clock, simulation.latency, relay, client, Operation.SUBSCRIBE)
            except ValueError:
                return clock.now

        task = clock.spawn(call())
        clock.run()
        assert task.result() == pytest.approx(simulation.latency.round_trip(relay, client))
