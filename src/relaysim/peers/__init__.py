"""
Peers: the endpoints of stream connections.

- Relay: static, zoned, capacity-limited forwarder
- Client: publishes or subscribes to one stream through a home relay
"""

from relaysim.peers.base import Peer
from relaysim.peers.client import Client, ClientState
from relaysim.peers.relay import Relay

__all__ = [
    "Peer",
    "Client",
    "ClientState",
    "Relay",
]
