#!/usr/bin/env python3
"""
IRR Prefix Filter Generator using bgpq4

Expands an AS-Set into an aggregated BIRD prefix set by running
``bgpq4 -h <irr host> -Ab<family> <as-set>`` and parsing its output.
"""

import logging
import re
from typing import List, Optional

from bcg.registry.base import PrefixFilterSource
from bcg.utils.error_handling import BGPq4ExecutionError, PrefixFilterParseError
from bcg.utils.subprocess_manager import ProcessState, run_with_resource_management


# "<name> = [ <entries> ];" as emitted by bgpq4 -b
_PREFIX_SET_PATTERN = re.compile(
    r"^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*=\s*\[(?P<body>.*)\]\s*;\s*$",
    re.DOTALL,
)

# Prefix with optional BIRD length range or +/- operator
_PREFIX_ENTRY_PATTERN = re.compile(
    r"^[0-9A-Fa-f:.]+/\d{1,3}(\{\d{1,3},\d{1,3}\}|[+-])?$"
)

# Entry separator: a comma outside a {min,max} length range
_ENTRY_SEPARATOR = re.compile(r",(?![^{}]*\})")

_AS_SET_OBJECT_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.:-]*$")
_HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.:-]*$")


def parse_bird_prefix_set(output: str) -> List[str]:
    """
    Parse bgpq4 BIRD output into an ordered list of prefixes

    Grammar: an identifier, ``=``, ``[``, zero or more entries separated by
    commas and newlines, ``]``, ``;``. Comment lines starting with ``#`` are
    ignored.

    Raises:
        PrefixFilterParseError: If the output does not follow the grammar
    """
    text = "\n".join(
        line for line in output.splitlines() if not line.lstrip().startswith("#")
    )

    match = _PREFIX_SET_PATTERN.match(text)
    if not match:
        raise PrefixFilterParseError(
            "bgpq4 output is not a BIRD prefix set",
            technical_details=output[:200],
        )

    prefixes = []
    for entry in _ENTRY_SEPARATOR.split(match.group("body")):
        entry = entry.strip()
        if not entry:
            continue
        if not _PREFIX_ENTRY_PATTERN.match(entry):
            raise PrefixFilterParseError(
                f"Unexpected entry in bgpq4 output: {entry!r}",
                technical_details=output[:200],
            )
        prefixes.append(entry)

    return prefixes


def as_set_object(macro: str) -> str:
    """Strip an optional ``SOURCE::`` qualifier from an AS-Set macro"""
    if "::" in macro:
        return macro.split("::")[1]
    return macro


def validate_as_set_object(name: str) -> str:
    """
    Validate an AS-Set object name for safe command construction

    Raises:
        ValueError: If the name is empty or could be read as an option
    """
    if not isinstance(name, str):
        raise ValueError(f"AS-Set must be string, got {type(name).__name__}")

    if not name:
        raise ValueError("AS-Set cannot be empty")

    if not _AS_SET_OBJECT_PATTERN.match(name):
        raise ValueError(f"AS-Set contains invalid characters: {name}")

    if len(name) > 255:
        raise ValueError(f"AS-Set too long (max 255 characters): {len(name)}")

    return name


class BGPq4PrefixFilter(PrefixFilterSource):
    """Wrapper for the bgpq4 prefix filter generator"""

    def __init__(self,
                 bgpq4_path: str = "bgpq4",
                 command_timeout: int = 60,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize bgpq4 wrapper

        Args:
            bgpq4_path: bgpq4 executable name or path
            command_timeout: Command execution timeout in seconds
            logger: Optional logger instance
        """
        self.bgpq4_path = bgpq4_path
        self.command_timeout = command_timeout
        self.logger = logger or logging.getLogger("bcg.registry.bgpq4")

    def build_command(self, macro: str, family: int, irr_host: str) -> List[str]:
        """
        Build the bgpq4 command line

        Raises:
            ValueError: If any argument is unsafe or out of range
        """
        if family not in (4, 6):
            raise ValueError(f"Address family must be 4 or 6, got {family}")

        if not irr_host or not _HOSTNAME_PATTERN.match(irr_host):
            raise ValueError(f"Invalid IRR server name: {irr_host!r}")

        obj = validate_as_set_object(as_set_object(macro))
        return [self.bgpq4_path, "-h", irr_host, f"-Ab{family}", obj]

    def expand(self, macro: str, family: int, irr_host: str) -> List[str]:
        try:
            command = self.build_command(macro, family, irr_host)
        except ValueError as e:
            raise BGPq4ExecutionError(
                f"Refusing to run bgpq4 for {macro!r}: {e}",
                guidance="Check the AS-Set registered in PeeringDB and the irrdb setting",
            )

        self.logger.info(f"Running {' '.join(command)}")

        try:
            result = run_with_resource_management(command, timeout=self.command_timeout)
        except OSError as e:
            raise BGPq4ExecutionError(
                f"Cannot execute bgpq4 ({self.bgpq4_path}): {e}",
                guidance="Install bgpq4 or set BCG_BGPQ4_PATH",
            )

        if result.state == ProcessState.TIMEOUT:
            raise BGPq4ExecutionError(
                f"bgpq4 timed out after {self.command_timeout}s expanding {macro} (IPv{family})",
                guidance="Check connectivity to the IRR server or raise BCG_BGPQ4_TIMEOUT",
            )

        if result.state != ProcessState.COMPLETED:
            raise BGPq4ExecutionError(
                f"bgpq4 error (code {result.returncode}) expanding {macro} (IPv{family})",
                technical_details=result.stderr.strip(),
            )

        prefixes = parse_bird_prefix_set(result.stdout)
        self.logger.debug(
            f"bgpq4 expanded {macro} (IPv{family}) to {len(prefixes)} entries "
            f"in {result.execution_time:.2f}s"
        )
        return prefixes
