"""
Configuration Application Module

Applies generated BIRD configuration to the running daemon through its
control socket and maps run failures to process exit codes.
"""

from .bird_socket import BirdControlClient, ReconfigurationResult, parse_reply
from .exit_codes import BCGExitCodes, exit_code_for_error

__all__ = [
    "BirdControlClient",
    "ReconfigurationResult",
    "parse_reply",
    "BCGExitCodes",
    "exit_code_for_error",
]
