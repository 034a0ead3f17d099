"""
Control plane policies.

- ZoneControl: one least-loaded relay per zone, origin-first routing
- StaticControl: fixed answers, for testing client flows in isolation
"""

from relaysim.control.base import Control
from relaysim.control.static import StaticControl
from relaysim.control.zones import ZoneControl

__all__ = [
    "Control",
    "StaticControl",
    "ZoneControl",
]
