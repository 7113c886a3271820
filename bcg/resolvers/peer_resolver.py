#!/usr/bin/env python3
"""
Peer Policy Resolver

Turns a decoded PeerRecord into a ResolvedPeerPolicy:
1. Prefix-limit action default and validation
2. Cone import prerequisites (AS-Set, prefix filters)
3. Max-prefix limits (upstream override, cone requirement)
4. Local preference default
5. PeeringDB max-prefix enrichment
6. IRR prefix filter enrichment
7. Import/export policy validation
8. Neighbor address validation

Each step short-circuits on failure. The input record is never modified.
"""

import ipaddress
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from bcg.models import (
    DEFAULT_IRRDB,
    DEFAULT_LOCAL_PREF,
    DEFAULT_PREFIX_LIMIT_ACTION,
    NO_QUERY_TIME,
    PEERING_POLICIES,
    PREFIX_LIMIT_ACTIONS,
    UPSTREAM_MAX_PREFIX4,
    UPSTREAM_MAX_PREFIX6,
    GlobalConfig,
    PeerRecord,
    RegistryMaxPrefixes,
    ResolvedPeerPolicy,
)
from bcg.registry.base import ASMetadataSource, PrefixFilterSource
from bcg.registry.bgpq4_wrapper import as_set_object
from bcg.utils.error_handling import ConfigValidationError, RegistryFetchError

RFC1123_FORMAT = "%a, %d %b %Y %H:%M:%S UTC"


def _annotate(error: RegistryFetchError, peer_name: str) -> RegistryFetchError:
    """Attach the peer name to a registry error raised on its behalf"""
    if error.peer is None:
        error.peer = peer_name
        error.message = f"Peer {peer_name}: {error.message}"
        error.args = (error.message,)
    return error


class RegistryLookup:
    """
    PeeringDB data for one peer, fetched at most once.

    A lookup lives for a single resolve() call; it is never shared between
    peers.
    """

    def __init__(self, source: ASMetadataSource, asn: int, peer_name: str):
        self.source = source
        self.asn = asn
        self.peer_name = peer_name
        self._metadata: Optional[RegistryMaxPrefixes] = None

    @property
    def fetched(self) -> bool:
        return self._metadata is not None

    def get(self) -> RegistryMaxPrefixes:
        if self._metadata is None:
            try:
                self._metadata = self.source.fetch_as_metadata(self.asn)
            except RegistryFetchError as e:
                raise _annotate(e, self.peer_name)
        return self._metadata


class PeerResolver:
    """Apply defaults, validation and registry enrichment to peers"""

    def __init__(self,
                 metadata_source: ASMetadataSource,
                 prefix_filter_source: PrefixFilterSource,
                 logger: Optional[logging.Logger] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            metadata_source: PeeringDB (or a fake) for max-prefix and AS-Set data
            prefix_filter_source: bgpq4 (or a fake) for AS-Set expansion
            logger: Optional logger instance
            clock: Returns the current time; used for the enrichment timestamp
        """
        self.metadata_source = metadata_source
        self.prefix_filter_source = prefix_filter_source
        self.logger = logger or logging.getLogger("bcg.resolver")
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _timestamp(self) -> str:
        return self.clock().strftime(RFC1123_FORMAT)

    def resolve(self, peer_name: str, record: PeerRecord,
                global_config: GlobalConfig) -> ResolvedPeerPolicy:
        """
        Resolve one peer

        Raises:
            ConfigValidationError: If the peer violates a policy invariant
            RegistryFetchError: If enrichment was requested and failed
        """
        warnings: List[str] = []

        def warn(message: str):
            self.logger.warning(message)
            warnings.append(message)

        # Prefix-limit action
        action = record.prefix_limit_action or DEFAULT_PREFIX_LIMIT_ACTION
        if action not in PREFIX_LIMIT_ACTIONS:
            raise ConfigValidationError(
                f"Peer {peer_name} has an invalid pfxlimitaction {action!r}. "
                f"Acceptable values are {', '.join(PREFIX_LIMIT_ACTIONS)}",
                peer=peer_name,
                field="pfxlimitaction",
            )

        import_policy = record.import_policy
        as_set = record.as_set
        prefix_filter4 = list(record.prefix_filter4)
        prefix_filter6 = list(record.prefix_filter6)

        # Cone import needs an AS-Set and prefix filters unless they come from the IRR
        if import_policy == "cone" and not record.auto_prefix_filter:
            if not as_set:
                raise ConfigValidationError(
                    f"Peer {peer_name} has a cone filtered import policy and has no AS-Set defined",
                    peer=peer_name,
                    field="as-set",
                    guidance="Set autopfxfilter to true to enable automatic IRRDB imports",
                )
            if not as_set_object(as_set).upper().startswith("AS"):
                warn(f"AS-Set for {peer_name} (as-set: {as_set}) doesn't start with 'AS' and might be invalid")

            if import_policy != "none" and (not prefix_filter4 or not prefix_filter6):
                raise ConfigValidationError(
                    f"Peer {peer_name} has a cone filtered import policy and has no prefix filters defined",
                    peer=peer_name,
                    field="pfxfilter4" if not prefix_filter4 else "pfxfilter6",
                    guidance="Set autopfxfilter to true to enable automatic IRRDB imports",
                )

        max_prefix4 = record.max_prefix4
        max_prefix6 = record.max_prefix6
        upstream = import_policy == "any"

        if upstream:
            warn(
                f"Peer {peer_name} is an upstream session; setting max-prefix limits to "
                f"{UPSTREAM_MAX_PREFIX4} IPv4 and {UPSTREAM_MAX_PREFIX6} IPv6"
                + (" (automaxpfx ignored)" if record.auto_max_prefix else "")
            )
            max_prefix4 = UPSTREAM_MAX_PREFIX4
            max_prefix6 = UPSTREAM_MAX_PREFIX6
        elif import_policy == "cone":
            if not record.auto_max_prefix and (max_prefix4 == 0 or max_prefix6 == 0):
                raise ConfigValidationError(
                    f"Peer {peer_name} has no max-prefix limits configured",
                    peer=peer_name,
                    field="maxpfx4" if max_prefix4 == 0 else "maxpfx6",
                    guidance="Set automaxpfx to true to pull limits from PeeringDB",
                )

        local_pref = record.local_pref or DEFAULT_LOCAL_PREF

        lookup = RegistryLookup(self.metadata_source, record.asn, peer_name)
        query_time = NO_QUERY_TIME

        if record.auto_max_prefix and not upstream:
            metadata = lookup.get()
            max_prefix4 = metadata.max_prefix4
            max_prefix6 = metadata.max_prefix6

            self.logger.info(f"AutoMaxPfx AS{record.asn} MaxPfx4: {max_prefix4}")
            self.logger.info(f"AutoMaxPfx AS{record.asn} MaxPfx6: {max_prefix6}")
            query_time = self._timestamp()

        if record.auto_prefix_filter:
            metadata = lookup.get()
            if not metadata.as_set:
                raise RegistryFetchError(
                    f"Peer {peer_name}: PeeringDB has no AS-Set registered for AS{record.asn}",
                    asn=record.asn,
                    peer=peer_name,
                    guidance="Disable autopfxfilter and configure as-set and prefix filters manually",
                )

            irrdb = global_config.irrdb or DEFAULT_IRRDB
            self.logger.info(f"Running IRRDB query for AS{record.asn} ({metadata.as_set} via {irrdb})")
            try:
                prefix_filter4 = self.prefix_filter_source.expand(metadata.as_set, 4, irrdb)
                prefix_filter6 = self.prefix_filter_source.expand(metadata.as_set, 6, irrdb)
            except RegistryFetchError as e:
                raise _annotate(e, peer_name)
            as_set = metadata.as_set

            self.logger.info(f"AutoPfxFilter AS{record.asn} IPv4 aggregated entries: {len(prefix_filter4)}")
            self.logger.info(f"AutoPfxFilter AS{record.asn} IPv6 aggregated entries: {len(prefix_filter6)}")
            query_time = self._timestamp()

        for direction, policy in (("import", import_policy), ("export", record.export_policy)):
            if policy not in PEERING_POLICIES:
                raise ConfigValidationError(
                    f"Peer {peer_name} has an invalid {direction} policy {policy!r}. "
                    "Acceptable values are 'any', 'cone', or 'none'",
                    peer=peer_name,
                    field=direction,
                )

        if not record.neighbors:
            raise ConfigValidationError(
                f"Peer {peer_name} has no neighbor addresses",
                peer=peer_name,
                field="neighbors",
            )
        for address in record.neighbors:
            try:
                ipaddress.ip_address(address if isinstance(address, str) else "")
            except ValueError:
                raise ConfigValidationError(
                    f"Neighbor address of peer {peer_name} (addr: {address}) "
                    "is not a valid IPv4 or IPv6 address",
                    peer=peer_name,
                    field="neighbors",
                )

        if record.prepends < 0:
            raise ConfigValidationError(
                f"Peer {peer_name} has a negative prepend count: {record.prepends}",
                peer=peer_name,
                field="prepends",
            )

        self.logger.info(
            f"Policy for AS{record.asn}: import {import_policy}, export {record.export_policy}"
        )

        return ResolvedPeerPolicy(
            name=peer_name,
            asn=record.asn,
            as_set=as_set,
            max_prefix4=max_prefix4,
            max_prefix6=max_prefix6,
            prefix_limit_action=action,
            prefix_filter4=tuple(prefix_filter4),
            prefix_filter6=tuple(prefix_filter6),
            import_policy=import_policy,
            export_policy=record.export_policy,
            local_pref=local_pref,
            neighbors=tuple(record.neighbors),
            multihop=record.multihop,
            passive=record.passive,
            disabled=record.disabled,
            pre_import=record.pre_import,
            pre_export=record.pre_export,
            prepends=record.prepends,
            query_time=query_time,
            warnings=tuple(warnings),
        )
