"""
BCG Data Models

This module contains the core data models shared by the resolver, the
policy compiler and the rendering step.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


# Closed sets accepted by the peering configuration
PEERING_POLICIES = ("any", "cone", "none")
PREFIX_LIMIT_ACTIONS = ("disable", "restart", "block", "warn")

DEFAULT_PREFIX_LIMIT_ACTION = "disable"
DEFAULT_LOCAL_PREF = 100
DEFAULT_IRRDB = "rr.ntt.net"
DEFAULT_RTR_SERVER = "127.0.0.1"

# Upstream sessions carry full tables
UPSTREAM_MAX_PREFIX4 = 1000000
UPSTREAM_MAX_PREFIX6 = 100000

NO_QUERY_TIME = "[No time-specific operations performed]"


class ImportAction(Enum):
    """What a session does with received routes"""
    ACCEPT_ALL = "accept-all"
    ACCEPT_ON_MATCH = "accept-on-match"
    REJECT_ALL = "reject-all"


class RouteTag(Enum):
    """Relationship of a route to this network, stored as a large community"""
    ORIGINATED = "originated"
    UPSTREAM = "upstream"
    PEER = "peer"
    DOWNSTREAM = "downstream"

    @property
    def community_function(self) -> int:
        """Second data part of the (ASN, 0, n) large community"""
        return ROUTE_TAG_COMMUNITIES[self]


ROUTE_TAG_COMMUNITIES = {
    RouteTag.ORIGINATED: 100,
    RouteTag.UPSTREAM: 200,
    RouteTag.PEER: 300,
    RouteTag.DOWNSTREAM: 400,
}


def address_family(address: str) -> int:
    """Address family of a neighbor address or prefix: 6 if it contains ':', else 4"""
    return 6 if ":" in address else 4


@dataclass
class PeerRecord:
    """
    A single peer network as decoded from the peering configuration.

    Fields left at their zero value are filled in by the resolver. The record
    itself is never modified by resolution.
    """
    asn: int
    as_set: str = ""
    max_prefix4: int = 0
    max_prefix6: int = 0
    prefix_limit_action: str = ""
    prefix_filter4: List[str] = field(default_factory=list)
    prefix_filter6: List[str] = field(default_factory=list)
    import_policy: str = ""
    export_policy: str = ""
    local_pref: int = 0
    neighbors: List[str] = field(default_factory=list)
    multihop: bool = False
    passive: bool = False
    disabled: bool = False
    auto_max_prefix: bool = False
    auto_prefix_filter: bool = False
    pre_import: str = ""
    pre_export: str = ""
    prepends: int = 0
    query_time: str = ""  # Observability only


@dataclass
class GlobalConfig:
    """Configuration of this router and its peers"""
    asn: int
    router_id: str
    prefixes: List[str] = field(default_factory=list)
    peers: Dict[str, PeerRecord] = field(default_factory=dict)  # Insertion order is output order
    irrdb: str = ""
    rtr_server: str = ""


@dataclass(frozen=True)
class RegistryMaxPrefixes:
    """AS metadata returned by PeeringDB for one ASN"""
    asn: int
    name: str
    as_set: str
    max_prefix4: int
    max_prefix6: int


@dataclass(frozen=True)
class ResolvedPeerPolicy:
    """
    A peer after defaults, validation and enrichment.

    Every optional field is populated and the filter lists are concrete
    prefixes, never macros.
    """
    name: str
    asn: int
    as_set: str
    max_prefix4: int
    max_prefix6: int
    prefix_limit_action: str
    prefix_filter4: Tuple[str, ...]
    prefix_filter6: Tuple[str, ...]
    import_policy: str
    export_policy: str
    local_pref: int
    neighbors: Tuple[str, ...]
    multihop: bool = False
    passive: bool = False
    disabled: bool = False
    pre_import: str = ""
    pre_export: str = ""
    prepends: int = 0
    query_time: str = NO_QUERY_TIME
    warnings: Tuple[str, ...] = ()

    def max_prefix(self, family: int) -> int:
        return self.max_prefix4 if family == 4 else self.max_prefix6

    def prefix_filter(self, family: int) -> Tuple[str, ...]:
        return self.prefix_filter4 if family == 4 else self.prefix_filter6


@dataclass(frozen=True)
class SessionDescriptor:
    """Filter policy of one BGP session (one neighbor address)"""
    peer_name: str
    protocol_name: str
    neighbor: str
    family: int
    asn: int
    import_action: ImportAction
    import_tag: Optional[RouteTag]
    prefix_filter: Tuple[str, ...]
    export_tags: FrozenSet[RouteTag]
    prepends: int
    prefix_limit: int
    prefix_limit_action: str
    local_pref: int
    multihop: bool = False
    passive: bool = False
    disabled: bool = False
    pre_import: str = ""
    pre_export: str = ""

    def exports(self, tag: RouteTag) -> bool:
        """Whether routes carrying ``tag`` are re-advertised on this session"""
        return tag in self.export_tags

    @property
    def sorted_export_tags(self) -> List[RouteTag]:
        """Export tags in a stable order for rendering"""
        return [tag for tag in RouteTag if tag in self.export_tags]


@dataclass(frozen=True)
class CompiledPeer:
    """A resolved peer together with its compiled sessions"""
    policy: ResolvedPeerPolicy
    sessions: Tuple[SessionDescriptor, ...]
