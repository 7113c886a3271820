"""
Filter Policy Compiler

Derives one SessionDescriptor per neighbor address from a resolved peer
policy. Pure and side-effect free; the rendering step consumes the result.

Import policy:
    any   accept all, tag upstream
    cone  accept routes matching the peer's prefix filter, tag peer
    none  reject all

Export policy:
    any   originated + upstream + peer + downstream
    cone  originated + downstream
    none  nothing
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from bcg.models import (
    ImportAction,
    ResolvedPeerPolicy,
    RouteTag,
    SessionDescriptor,
    address_family,
)

IMPORT_RULES: Dict[str, Tuple[ImportAction, Optional[RouteTag]]] = {
    "any": (ImportAction.ACCEPT_ALL, RouteTag.UPSTREAM),
    "cone": (ImportAction.ACCEPT_ON_MATCH, RouteTag.PEER),
    "none": (ImportAction.REJECT_ALL, None),
}

EXPORT_RULES = {
    "any": frozenset({RouteTag.ORIGINATED, RouteTag.UPSTREAM, RouteTag.PEER, RouteTag.DOWNSTREAM}),
    "cone": frozenset({RouteTag.ORIGINATED, RouteTag.DOWNSTREAM}),
    "none": frozenset(),
}

_IDENTIFIER_UNSAFE = re.compile(r"[^A-Za-z0-9_]+")


def protocol_identifier(peer_name: str) -> str:
    """Peer name reduced to characters valid in a BIRD symbol"""
    return _IDENTIFIER_UNSAFE.sub("_", peer_name).strip("_").upper() or "PEER"


def session_name(policy: ResolvedPeerPolicy, family: int, index: int) -> str:
    """BIRD protocol name for the ``index``-th session of ``family``"""
    return f"AS{policy.asn}_{protocol_identifier(policy.name)}_v{family}_{index}"


def prefix_set_name(policy: ResolvedPeerPolicy) -> str:
    """Base name of the peer's BIRD prefix set defines (suffixed _V4 / _V6)"""
    return f"AS{policy.asn}_{protocol_identifier(policy.name)}_PFX"


def split_by_family(prefixes: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split prefixes or addresses into (IPv4, IPv6), keeping order"""
    ipv4, ipv6 = [], []
    for prefix in prefixes:
        (ipv6 if address_family(prefix) == 6 else ipv4).append(prefix)
    return ipv4, ipv6


def compile_sessions(policy: ResolvedPeerPolicy) -> List[SessionDescriptor]:
    """
    Compile the per-session filter policy of one peer

    Sessions are returned in neighbor order.

    Raises:
        KeyError: If the policy carries an import/export value outside the
            closed set (cannot happen for resolver output)
    """
    import_action, import_tag = IMPORT_RULES[policy.import_policy]
    export_tags = EXPORT_RULES[policy.export_policy]

    sessions = []
    counters = {4: 0, 6: 0}
    for neighbor in policy.neighbors:
        family = address_family(neighbor)
        index = counters[family]
        counters[family] += 1

        prefix_filter = (
            policy.prefix_filter(family) if import_action is ImportAction.ACCEPT_ON_MATCH else ()
        )

        sessions.append(SessionDescriptor(
            peer_name=policy.name,
            protocol_name=session_name(policy, family, index),
            neighbor=neighbor,
            family=family,
            asn=policy.asn,
            import_action=import_action,
            import_tag=import_tag,
            prefix_filter=prefix_filter,
            export_tags=export_tags,
            prepends=policy.prepends,
            prefix_limit=policy.max_prefix(family),
            prefix_limit_action=policy.prefix_limit_action,
            local_pref=policy.local_pref,
            multihop=policy.multihop,
            passive=policy.passive,
            disabled=policy.disabled,
            pre_import=policy.pre_import,
            pre_export=policy.pre_export,
        ))

    return sessions
