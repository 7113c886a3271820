"""
Peer resolution: defaults, validation and registry enrichment.
"""

from .peer_resolver import PeerResolver, RegistryLookup

__all__ = ["PeerResolver", "RegistryLookup"]
