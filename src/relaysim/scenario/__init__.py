"""
Scenario scripting: the reference relays and random client churn.
"""

from relaysim.scenario.churn import ChurnConfig, ChurnDriver, create_scenario, default_relays

__all__ = [
    "ChurnConfig",
    "ChurnDriver",
    "create_scenario",
    "default_relays",
]
