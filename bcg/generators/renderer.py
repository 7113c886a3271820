"""
BIRD configuration rendering

Renders the global and per-peer Jinja2 templates and writes them to the
output directory: ``bird.conf`` plus one ``AS<asn>_<NAME>.conf`` per peer.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined, TemplateError

from bcg.generators.policy_compiler import prefix_set_name, split_by_family
from bcg.models import CompiledPeer, GlobalConfig, RouteTag
from bcg.utils.error_handling import OutputError

GLOBAL_TEMPLATE = "global.j2"
PEER_TEMPLATE = "peer.j2"
GLOBAL_OUTPUT = "bird.conf"
PEER_GLOB = "AS*.conf"

_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9 _./-]+")


def build_bird_set(entries: Sequence[str]) -> str:
    """Format entries as the body of a BIRD set, one per line"""
    return ",\n".join(f"    {entry}" for entry in entries)


def bird_string(value: str) -> str:
    """
    Make text safe inside a double-quoted BIRD string or a comment line

    BIRD strings have no escape sequences, so double quotes become single
    quotes and backslashes and control characters are dropped.
    """
    value = value.replace('"', "'").replace("\\", "")
    return "".join(char for char in value if char.isprintable())


def normalize_name(name: str) -> str:
    """Make a peer name safe for use in a file name"""
    name = _FILENAME_UNSAFE.sub("", name).lstrip(".")
    return name.upper().replace(" ", "_").replace("/", "-")


def peer_filename(peer: CompiledPeer) -> str:
    return f"AS{peer.policy.asn}_{normalize_name(peer.policy.name)}.conf"


class PolicyRenderer:
    """Render BIRD configuration from compiled peers"""

    def __init__(self, templates_dir: Optional[Path] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            templates_dir: Directory containing global.j2 and peer.j2;
                the packaged templates are used when omitted
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger("bcg.renderer")

        if templates_dir is not None:
            loader = FileSystemLoader(str(templates_dir))
        else:
            loader = PackageLoader("bcg", "templates")

        self.env = Environment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self.env.filters["bird_set"] = build_bird_set
        self.env.filters["bird_string"] = bird_string
        self.env.globals["RouteTag"] = RouteTag

    def _render(self, template_name: str, **context) -> str:
        try:
            return self.env.get_template(template_name).render(**context)
        except TemplateError as e:
            raise OutputError(
                f"Failed to render {template_name}: {e}",
                guidance="Check the templates directory",
            )

    def render_global(self, config: GlobalConfig, output_dir: Optional[Path] = None) -> str:
        origin4, origin6 = split_by_family(config.prefixes)
        include_glob = str(Path(output_dir) / PEER_GLOB) if output_dir is not None else PEER_GLOB
        return self._render(
            GLOBAL_TEMPLATE,
            config=config,
            origin4=origin4,
            origin6=origin6,
            include_glob=include_glob,
        )

    def render_peer(self, peer: CompiledPeer, config: GlobalConfig) -> str:
        policy = peer.policy
        cone = policy.import_policy == "cone"
        return self._render(
            PEER_TEMPLATE,
            peer=policy,
            sessions=peer.sessions,
            prefix_set4=build_bird_set(policy.prefix_filter4) if cone else "",
            prefix_set6=build_bird_set(policy.prefix_filter6) if cone else "",
            prefix_set_base=prefix_set_name(policy),
            config=config,
        )

    def write(self, output_dir: Path, config: GlobalConfig,
              peers: Iterable[CompiledPeer]) -> List[Path]:
        """
        Render everything, then write it to ``output_dir``

        Raises:
            OutputError: If a template fails or a file cannot be written
        """
        rendered = [(Path(output_dir) / GLOBAL_OUTPUT, self.render_global(config, output_dir))]
        for peer in peers:
            rendered.append((Path(output_dir) / peer_filename(peer), self.render_peer(peer, config)))

        written = []
        try:
            Path(output_dir).mkdir(parents=True, exist_ok=True)
            for path, content in rendered:
                path.write_text(content)
                written.append(path)
                self.logger.info(f"Wrote {path}")
        except OSError as e:
            raise OutputError(
                f"Failed to write BIRD configuration to {output_dir}: {e}",
                guidance="Check that the output directory exists and is writable",
            )

        return written
