#!/usr/bin/env python3
"""
Demo: Relay Network Under Client Churn

Runs the reference four-relay scenario with random client arrivals and
departures:
1. Two zones (us-ny, us-az) with two relays each
2. Every second of virtual time a client may join or leave
3. Joining clients publish a new stream or subscribe to a live one
4. Report relay loads and network counts at regular checkpoints
"""

import logging
import sys

from relaysim.core import SimulationConfig
from relaysim.scenario import ChurnConfig, create_scenario


def main():
    logging.basicConfig(
        level=logging.INFO if "-v" in sys.argv else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    print("=" * 60)
    print("  RELAY NETWORK UNDER CHURN")
    print("=" * 60)

    sim_config = SimulationConfig(relay_capacity=12)
    churn_config = ChurnConfig(seed=42, add_probability=0.4, remove_probability=0.15)
    simulation, driver = create_scenario(churn_config, sim_config)

    print(f"\n1. Setup:")
    for relay in simulation.relays.values():
        print(f"   {relay.name:<8} zone={relay.zone:<6} position={relay.position}")
    print(f"   Relay capacity: {sim_config.relay_capacity} connections")
    print(f"   Churn: add p={churn_config.add_probability}, "
          f"remove p={churn_config.remove_probability}, every {churn_config.interval:.0f}")

    print("\n2. Running...")
    n_checkpoints = 10
    step = 20000.0
    for i in range(1, n_checkpoints + 1):
        stats = simulation.run(until=i * step)
        loads = " ".join(
            f"{r.name}={r.load:>2}" for r in simulation.relays.values()
        )
        print(f"   t={stats['time']:>8.0f}  clients={stats['n_clients']:>3}  "
              f"streams={stats['n_streams']:>2}  connections={stats['n_connections']:>3}  {loads}")

    failed = sum(1 for c in simulation.clients.values() if c.failed)

    print("\n" + "=" * 60)
    print("  SUMMARY")
    print("=" * 60)
    print(f"  • {driver.clients_added} clients joined, {driver.clients_removed} removed by churn")
    print(f"  • {len(simulation.clients)} clients still running, {failed} waiting out a failure")
    print(f"  • {len(simulation.streams)} live streams over {len(simulation.connections)} connections")
    print("=" * 60)


if __name__ == "__main__":
    main()
