"""
BCG - BIRD Config Generator for declarative BGP peering policy.

Turns a peering configuration into BIRD daemon configuration with:
- Peer policy resolution with defaults and validation
- PeeringDB max-prefix and AS-Set enrichment
- bgpq4-based IRR prefix filter generation
- Per-session filter policy compilation
- Control socket reconfiguration of the running daemon
"""

__version__ = "1.0.0"
__author__ = "BCG Project"
