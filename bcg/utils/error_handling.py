#!/usr/bin/env python3
"""
BCG Error Handling Utilities

Provides the error taxonomy, standardized error formatting, parameter
validation, and user guidance for consistent error reporting across BCG.

Error Format Standards:
- INFO: "✓ {message}"                    # Success messages
- WARNING: "⚠ {message}"                 # Warning messages
- ERROR: "✗ {message}"                   # Error messages
- FATAL: "✗ Fatal: {message}"            # Critical errors

There is no recovery path in BCG: every error aborts the run once it has
been reported.
"""

import logging
import os
from functools import wraps
from pathlib import Path
from typing import Optional, Union


class ErrorSeverity:
    """Error severity levels for consistent classification"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class BCGError(Exception):
    """Base exception class for BCG with standardized error handling"""

    def __init__(self, message: str, severity: str = ErrorSeverity.ERROR,
                 guidance: Optional[str] = None, technical_details: Optional[str] = None):
        self.message = message
        self.severity = severity
        self.guidance = guidance
        self.technical_details = technical_details
        super().__init__(message)


class ConfigValidationError(BCGError):
    """Raised when the peering configuration violates a policy invariant"""

    def __init__(self, message: str, peer: Optional[str] = None,
                 field: Optional[str] = None, guidance: Optional[str] = None):
        self.peer = peer
        self.field = field
        super().__init__(message, ErrorSeverity.FATAL, guidance)


class RegistryFetchError(BCGError):
    """Raised when PeeringDB or the IRR prefix filter query fails"""

    def __init__(self, message: str, asn: Optional[int] = None, peer: Optional[str] = None,
                 guidance: Optional[str] = None, technical_details: Optional[str] = None):
        self.asn = asn
        self.peer = peer
        super().__init__(message, ErrorSeverity.FATAL, guidance, technical_details)


class PrefixFilterParseError(RegistryFetchError):
    """Raised when bgpq4 output does not follow the BIRD prefix set grammar"""
    pass


class BGPq4ExecutionError(RegistryFetchError):
    """Raised when the bgpq4 subprocess fails or times out"""
    pass


class ReconfigurationError(BCGError):
    """Raised when the BIRD daemon could not be told to reload"""

    def __init__(self, message: str, socket_path: Optional[str] = None,
                 technical_details: Optional[str] = None):
        self.socket_path = socket_path
        super().__init__(
            message,
            ErrorSeverity.FATAL,
            "Configuration files were written but NOT applied; run 'birdc configure' manually",
            technical_details,
        )


class OutputError(BCGError):
    """Raised when templates cannot be rendered or written"""
    pass


class ErrorFormatter:
    """Renders errors as the one or two line messages the CLI prints"""

    SYMBOLS = {
        ErrorSeverity.INFO: "✓",
        ErrorSeverity.WARNING: "⚠",
        ErrorSeverity.ERROR: "✗",
        ErrorSeverity.FATAL: "✗ Fatal:",
    }

    # (exception type, message prefix, suggestion) for errors raised outside BCG
    STANDARD_ERRORS = (
        (FileNotFoundError, "File not found", "Check that the path is correct"),
        (PermissionError, "Permission denied", "Check file permissions or run as the bird user"),
        (ValueError, "Invalid input", "Check the configuration values"),
    )

    @classmethod
    def format_message(cls, message: str, severity: str = ErrorSeverity.ERROR,
                       guidance: Optional[str] = None) -> str:
        text = f"{cls.SYMBOLS.get(severity, '•')} {message}"
        if guidance:
            text += f"\n  Suggestion: {guidance}"
        return text

    @classmethod
    def format_error(cls, error: BaseException, hide_technical: bool = True) -> str:
        """Format an exception, optionally with its technical details"""
        if isinstance(error, BCGError):
            text = cls.format_message(error.message, error.severity, error.guidance)
            if error.technical_details and not hide_technical:
                text += f"\n  Technical: {error.technical_details}"
            return text

        if isinstance(error, KeyboardInterrupt):
            return cls.format_message("Operation interrupted by user", ErrorSeverity.WARNING)

        for error_type, prefix, guidance in cls.STANDARD_ERRORS:
            if isinstance(error, error_type):
                return cls.format_message(f"{prefix}: {error}", ErrorSeverity.ERROR, guidance)

        if hide_technical:
            return cls.format_message("Unexpected error occurred", ErrorSeverity.ERROR,
                                      "Check logs for details or run with --verbose")
        return cls.format_message(f"Unexpected {type(error).__name__}: {error}")


class ParameterValidator:
    """Checks for paths and numbers supplied by the user"""

    @staticmethod
    def validate_file_exists(file_path: Union[str, Path], parameter_name: str = "file") -> Path:
        path = Path(file_path)

        if not path.is_file():
            problem = "Path is not a file" if path.exists() else "File does not exist"
            raise ConfigValidationError(
                f"{problem}: {path}",
                field=parameter_name,
                guidance=f"Pass the path of an existing file as --{parameter_name}",
            )
        if not os.access(path, os.R_OK):
            raise ConfigValidationError(
                f"Cannot read file: {path}",
                field=parameter_name,
                guidance="Check file permissions or run as the bird user",
            )
        return path

    @staticmethod
    def validate_directory(dir_path: Union[str, Path], parameter_name: str = "directory") -> Path:
        """Reject paths that exist but are not directories"""
        path = Path(dir_path)
        if path.exists() and not path.is_dir():
            raise ConfigValidationError(
                f"Path exists but is not a directory: {path}",
                field=parameter_name,
                guidance=f"Pass a directory as --{parameter_name}",
            )
        return path

    @staticmethod
    def validate_as_number(as_number: Union[str, int],
                           parameter_name: str = "asn", peer: Optional[str] = None) -> int:
        """Parse 65001 or "AS65001" into a 32-bit AS number"""
        where = f" (peer {peer})" if peer else ""

        value = None
        if isinstance(as_number, int) and not isinstance(as_number, bool):
            value = as_number
        elif isinstance(as_number, str):
            digits = as_number[2:] if as_number[:2].upper() == "AS" else as_number
            if digits.isdigit():
                value = int(digits)

        if value is None:
            raise ConfigValidationError(
                f"AS number must be an integer, got '{as_number}'{where}",
                peer=peer,
                field=parameter_name,
                guidance="Use a numeric AS number (e.g., 65001 or AS65001)",
            )

        # RFC 6793
        if not 0 < value <= 4294967295:
            raise ConfigValidationError(
                f"AS number out of valid range (1-4294967295), got {value}{where}",
                peer=peer,
                field=parameter_name,
                guidance="Use a valid 32-bit AS number",
            )
        return value


def handle_errors(logger_name: str = None, hide_technical: bool = False):
    """Turn exceptions escaping a command function into printed errors and exit codes"""
    # Imported here to avoid a cycle with appliers.exit_codes
    from bcg.appliers.exit_codes import BCGExitCodes, exit_code_for_error, get_exit_code_description

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(logger_name or f"bcg.{func.__name__}")
            try:
                return func(*args, **kwargs)
            except BCGError as e:
                logger.error(f"{func.__name__} aborted ({e.severity}): {e.message}")
                print(ErrorFormatter.format_error(e, hide_technical))
                code = exit_code_for_error(e)
                logger.info(f"Exit code {int(code)}: {get_exit_code_description(code)}")
                return int(code)
            except KeyboardInterrupt as e:
                logger.info(f"{func.__name__} interrupted by user")
                print(ErrorFormatter.format_error(e))
                return int(BCGExitCodes.SIGINT_TERMINATION)
            except Exception as e:
                logger.exception(f"Unexpected error in {func.__name__}: {e}")
                print(ErrorFormatter.format_error(e, hide_technical))
                return int(BCGExitCodes.GENERAL_ERROR)

        return wrapper
    return decorator


def print_success(message: str):
    print(ErrorFormatter.format_message(message, ErrorSeverity.INFO))


def print_warning(message: str, guidance: str = None):
    print(ErrorFormatter.format_message(message, ErrorSeverity.WARNING, guidance))


__all__ = [
    'ErrorSeverity', 'BCGError', 'ConfigValidationError', 'RegistryFetchError',
    'PrefixFilterParseError', 'BGPq4ExecutionError', 'ReconfigurationError', 'OutputError',
    'ErrorFormatter', 'ParameterValidator', 'handle_errors',
    'print_success', 'print_warning',
]
