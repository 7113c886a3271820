"""
BCG Exit Codes - Standardized Exit Codes for Monitoring Integration

Each error class of the run maps to its own exit code so that operators and
monitoring can tell "configuration rejected" from "configuration written but
not applied".
"""

from enum import IntEnum

from bcg.utils.error_handling import (
    BGPq4ExecutionError,
    ConfigValidationError,
    OutputError,
    ReconfigurationError,
    RegistryFetchError,
)


class BCGExitCodes(IntEnum):
    """
    Standardized exit codes for BCG runs

    Exit codes follow UNIX conventions:
    - 0: Success
    - 1-2: General/usage errors
    - 3-63: Application-specific errors
    - 128+: Signal termination
    """

    SUCCESS = 0

    GENERAL_ERROR = 1
    INVALID_USAGE = 2

    CONFIG_VALIDATION_FAILED = 3
    REGISTRY_FETCH_FAILED = 4
    BGPQ4_EXECUTION_FAILED = 5
    OUTPUT_FAILED = 6
    RECONFIGURATION_FAILED = 7

    SIGINT_TERMINATION = 130   # Ctrl+C (SIGINT = 2, 128+2)
    SIGTERM_TERMINATION = 143  # SIGTERM = 15, 128+15


EXIT_CODE_DESCRIPTIONS = {
    BCGExitCodes.SUCCESS: "Operation completed successfully",
    BCGExitCodes.GENERAL_ERROR: "General error occurred",
    BCGExitCodes.INVALID_USAGE: "Invalid command line usage",
    BCGExitCodes.CONFIG_VALIDATION_FAILED: "Peering configuration failed validation",
    BCGExitCodes.REGISTRY_FETCH_FAILED: "PeeringDB or IRR query failed",
    BCGExitCodes.BGPQ4_EXECUTION_FAILED: "bgpq4 execution failed",
    BCGExitCodes.OUTPUT_FAILED: "Rendering or writing BIRD configuration failed",
    BCGExitCodes.RECONFIGURATION_FAILED: "BIRD was not reconfigured",
    BCGExitCodes.SIGINT_TERMINATION: "Interrupted by user (Ctrl+C)",
    BCGExitCodes.SIGTERM_TERMINATION: "Terminated by system signal",
}


def exit_code_for_error(error: BaseException) -> BCGExitCodes:
    """Map an exception raised during a run to its exit code"""
    # Subclasses first
    if isinstance(error, BGPq4ExecutionError):
        return BCGExitCodes.BGPQ4_EXECUTION_FAILED
    if isinstance(error, RegistryFetchError):
        return BCGExitCodes.REGISTRY_FETCH_FAILED
    if isinstance(error, ConfigValidationError):
        return BCGExitCodes.CONFIG_VALIDATION_FAILED
    if isinstance(error, ReconfigurationError):
        return BCGExitCodes.RECONFIGURATION_FAILED
    if isinstance(error, OutputError):
        return BCGExitCodes.OUTPUT_FAILED
    if isinstance(error, KeyboardInterrupt):
        return BCGExitCodes.SIGINT_TERMINATION
    return BCGExitCodes.GENERAL_ERROR


def get_exit_code_description(exit_code: BCGExitCodes) -> str:
    """Human-readable description for an exit code"""
    return EXIT_CODE_DESCRIPTIONS.get(exit_code, f"Unknown exit code: {int(exit_code)}")
