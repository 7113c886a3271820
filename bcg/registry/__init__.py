"""
External registry clients.

Two data sources feed peer enrichment:
- PeeringDB, for per-ASN max-prefix counts and the registered AS-Set
- bgpq4, for expanding an AS-Set into an IRR prefix filter
"""

from .base import ASMetadataSource, PrefixFilterSource
from .bgpq4_wrapper import BGPq4PrefixFilter, parse_bird_prefix_set
from .peeringdb import PeeringDBClient

__all__ = [
    "ASMetadataSource",
    "PrefixFilterSource",
    "PeeringDBClient",
    "BGPq4PrefixFilter",
    "parse_bird_prefix_set",
]
