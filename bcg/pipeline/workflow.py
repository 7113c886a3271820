#!/usr/bin/env python3
"""
Pipeline Orchestration - BIRD configuration workflow

Implements the complete generation run:
1. Load the peering configuration
2. Apply and validate global defaults (IRR server, RTR server, router-id, prefixes)
3. Resolve and compile every peer, one at a time, in configuration order
4. Render and write the BIRD configuration
5. Ask the running BIRD daemon to reconfigure

The first error aborts the run; nothing is written unless every peer
resolved. A dry run stops after step 3.
"""

import dataclasses
import ipaddress
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from bcg.appliers.bird_socket import BirdControlClient
from bcg.generators.policy_compiler import compile_sessions, prefix_set_name
from bcg.generators.renderer import PolicyRenderer, peer_filename
from bcg.loaders.config_file import load_config_file
from bcg.models import DEFAULT_IRRDB, DEFAULT_RTR_SERVER, CompiledPeer, GlobalConfig
from bcg.registry.base import ASMetadataSource, PrefixFilterSource
from bcg.registry.bgpq4_wrapper import BGPq4PrefixFilter
from bcg.registry.peeringdb import PeeringDBClient
from bcg.resolvers.peer_resolver import PeerResolver
from bcg.utils.config import BCGConfig, get_config
from bcg.utils.error_handling import ConfigValidationError
from bcg.utils.logging import LoggingTimer, get_logger

logger = get_logger("bcg.pipeline")


@dataclass
class PipelineConfig:
    """Pipeline execution configuration"""
    config_file: str
    output_directory: str = "/etc/bird/"
    templates_directory: Optional[str] = None  # None selects the packaged templates
    socket_path: Optional[str] = None  # None uses the bird settings section
    dry_run: bool = False


@dataclass
class PipelineResult:
    """Complete pipeline execution results"""
    success: bool
    peers_resolved: int
    sessions_compiled: int
    execution_time: float
    output_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    reconfigured: bool = False
    dry_run: bool = False
    bird_response: str = ""


def check_unique_symbols(peers: List[CompiledPeer]):
    """
    Reject peers whose names reduce to the same BIRD symbol or file name

    Raises:
        ConfigValidationError: Naming both peers and the shared name
    """
    owners: Dict[str, str] = {}
    for peer in peers:
        name = peer.policy.name
        claimed = [session.protocol_name for session in peer.sessions]
        claimed += [prefix_set_name(peer.policy), peer_filename(peer)]
        for symbol in claimed:
            owner = owners.setdefault(symbol, name)
            if owner != name:
                raise ConfigValidationError(
                    f"Peers {owner!r} and {name!r} both map to {symbol}",
                    peer=name,
                    guidance="Rename one of the peers so their names differ in letters or digits",
                )


def apply_global_defaults(config: GlobalConfig,
                          logger: Optional[logging.Logger] = None) -> GlobalConfig:
    """
    Fill in global defaults and validate global fields

    Returns a new GlobalConfig; ``config`` is left untouched.

    Raises:
        ConfigValidationError: If the router-id is not an IPv4 address or an
            originated prefix is not valid CIDR
    """
    logger = logger or logging.getLogger("bcg.pipeline")

    irrdb = config.irrdb or DEFAULT_IRRDB
    rtr_server = config.rtr_server or DEFAULT_RTR_SERVER
    logger.info(f"IRRDB host: {irrdb}")
    logger.info(f"RTR server: {rtr_server}")

    try:
        ipaddress.IPv4Address(config.router_id)
    except ValueError:
        raise ConfigValidationError(
            f"Router ID ({config.router_id}) is not a valid IPv4 address",
            field="router-id",
            guidance="Use a dotted-quad IPv4 address, e.g. 192.0.2.1",
        )

    for prefix in config.prefixes:
        try:
            ipaddress.ip_network(prefix, strict=False)
        except ValueError:
            raise ConfigValidationError(
                f"Originated prefix {prefix} is not a valid IPv4 or IPv6 CIDR prefix",
                field="prefixes",
            )

    return dataclasses.replace(
        config,
        prefixes=list(config.prefixes),
        peers=dict(config.peers),
        irrdb=irrdb,
        rtr_server=rtr_server,
    )


class BirdConfigPipeline:
    """Complete BIRD configuration pipeline orchestrator"""

    def __init__(self,
                 config: PipelineConfig,
                 settings: Optional[BCGConfig] = None,
                 metadata_source: Optional[ASMetadataSource] = None,
                 prefix_filter_source: Optional[PrefixFilterSource] = None,
                 renderer: Optional[PolicyRenderer] = None,
                 control_client: Optional[BirdControlClient] = None,
                 logger=None):
        """
        Args:
            config: What to read, where to write, and whether to apply
            settings: Tool settings; the global settings are used when omitted
            metadata_source: PeeringDB client override (tests)
            prefix_filter_source: bgpq4 wrapper override (tests)
            renderer: Template renderer override
            control_client: BIRD control socket client override
            logger: Optional BCGLogger (see bcg.utils.logging.get_logger)
        """
        self.config = config
        self.settings = settings or get_config()
        self.logger = logger or get_logger("bcg.pipeline")

        self.metadata_source = metadata_source or PeeringDBClient(
            base_url=self.settings.peeringdb.base_url,
            timeout=self.settings.peeringdb.timeout,
            api_key=self.settings.peeringdb.api_key,
        )
        self.prefix_filter_source = prefix_filter_source or BGPq4PrefixFilter(
            bgpq4_path=self.settings.bgpq4.path,
            command_timeout=self.settings.bgpq4.timeout,
        )
        self.resolver = PeerResolver(self.metadata_source, self.prefix_filter_source)

        templates = config.templates_directory
        self.renderer = renderer or PolicyRenderer(Path(templates) if templates else None)

        self.control_client = control_client or BirdControlClient(
            socket_path=config.socket_path or self.settings.bird.socket_path,
            timeout=self.settings.bird.timeout,
            buffer_size=self.settings.bird.buffer_size,
        )

    def resolve_peers(self, global_config: GlobalConfig) -> List[CompiledPeer]:
        """Resolve and compile every peer in configuration order, then check for name clashes"""
        compiled = []
        for name, record in global_config.peers.items():
            policy = self.resolver.resolve(name, record, global_config)
            sessions = compile_sessions(policy)
            self.logger.debug(f"Peer {name}: {len(sessions)} sessions")
            compiled.append(CompiledPeer(policy=policy, sessions=tuple(sessions)))
        check_unique_symbols(compiled)
        return compiled

    def enrich(self, global_config: GlobalConfig) -> Tuple[GlobalConfig, List[CompiledPeer]]:
        """Apply global defaults, then resolve and compile all peers"""
        global_config = apply_global_defaults(global_config, self.logger.logger)

        start_time = time.time()
        with LoggingTimer(self.logger.logger, "peer resolution"):
            peers = self.resolve_peers(global_config)
        self.logger.log_batch_summary("Resolved", len(peers), time.time() - start_time)

        return global_config, peers

    def run(self) -> PipelineResult:
        """
        Execute the complete pipeline

        Raises:
            BCGError: The first failure of any stage, unchanged
        """
        start_time = time.time()
        self.logger.info(f"Loading peering configuration from {self.config.config_file}")

        global_config, peers = self.enrich(load_config_file(self.config.config_file))

        result = PipelineResult(
            success=True,
            peers_resolved=len(peers),
            sessions_compiled=sum(len(peer.sessions) for peer in peers),
            execution_time=0.0,
            warnings=[warning for peer in peers for warning in peer.policy.warnings],
            dry_run=self.config.dry_run,
        )

        if self.config.dry_run:
            self.logger.info("Dry run: not writing configuration or reconfiguring BIRD")
        else:
            with LoggingTimer(self.logger.logger, "configuration output"):
                written = self.renderer.write(Path(self.config.output_directory), global_config, peers)
            result.output_files = [str(path) for path in written]

            reply = self.control_client.apply_configuration(self.settings.bird.command)
            result.reconfigured = True
            result.bird_response = reply.message

        result.execution_time = time.time() - start_time
        return result


@logger.time_operation("pipeline run")
def run_pipeline(config_file: str,
                 output_dir: str = "/etc/bird/",
                 templates_dir: Optional[str] = None,
                 socket_path: Optional[str] = None,
                 dry_run: bool = False,
                 settings: Optional[BCGConfig] = None) -> PipelineResult:
    """
    Convenience function to run the complete pipeline

    Args:
        config_file: Peering configuration (YAML, TOML or JSON)
        output_dir: Directory for bird.conf and the per-peer files
        templates_dir: Directory with global.j2 and peer.j2
        socket_path: BIRD control socket
        dry_run: Resolve and compile only
        settings: Tool settings

    Returns:
        Pipeline execution results
    """
    config = PipelineConfig(
        config_file=config_file,
        output_directory=output_dir,
        templates_directory=templates_dir,
        socket_path=socket_path,
        dry_run=dry_run,
    )

    result = BirdConfigPipeline(config, settings=settings, logger=logger).run()
    logger.info(
        f"Pipeline completed: {result.peers_resolved} peers, "
        f"{result.sessions_compiled} sessions in {result.execution_time:.2f}s"
    )
    return result
