"""
relaysim: discrete-event simulator of a relay-based stream distribution network.

Clients publish or subscribe to streams, relays forward streams to each
other and to clients, and a control plane picks each client's home relay
and routes subscriptions to the nearest available copy of a stream.

Core concepts:
- Virtual time only advances by jumping to the next scheduled event
- Peers call each other through a simulated RPC with distance-based latency
- Relays have a fixed connection capacity; admission never exceeds it
- Every connection is tracked globally and by both of its endpoints
"""

__version__ = "0.1.0"
