#!/usr/bin/env python3
"""
BCG - BIRD Configuration Generator

Usage examples:
bcg --config /etc/bcg/config.yml --output /etc/bird/
bcg --config peering.toml --dryrun -v
"""

import argparse
import platform
import sys

from bcg import __version__
from bcg.appliers.exit_codes import BCGExitCodes
from bcg.pipeline.workflow import run_pipeline
from bcg.utils.config import get_config_manager
from bcg.utils.error_handling import (
    ConfigValidationError,
    ErrorFormatter,
    ParameterValidator,
    handle_errors,
    print_success,
    print_warning,
)
from bcg.utils.logging import get_logger, setup_logging


def setup_app_logging(verbose: bool = False, quiet: bool = False):
    """Configure logging for the application"""
    if quiet:
        level = "WARNING"
    elif verbose:
        level = "DEBUG"
    else:
        level = None  # settings / BCG_LOG_LEVEL

    setup_logging(level=level, console_colors=True)

    logger = get_logger("bcg.system")
    logger.debug(f"bcg {__version__} on {platform.system()} {platform.release()}, Python {sys.version.split()[0]}")


def validate_args(args):
    """Validate paths given on the command line"""
    ParameterValidator.validate_file_exists(args.config, "config")
    ParameterValidator.validate_directory(args.output, "output")
    if args.templates:
        templates = ParameterValidator.validate_directory(args.templates, "templates")
        if not templates.exists():
            raise ConfigValidationError(
                f"Templates directory does not exist: {templates}",
                field="templates",
                guidance="Omit --templates to use the packaged templates",
            )
    return args


@handle_errors("bcg.main")
def cmd_generate(args):
    """Generate BIRD configuration and reconfigure the daemon"""
    validate_args(args)

    result = run_pipeline(
        config_file=args.config,
        output_dir=args.output,
        templates_dir=args.templates,
        socket_path=args.socket,
        dry_run=args.dryrun,
    )

    for warning in result.warnings:
        print_warning(warning)

    if result.dry_run:
        print_success(
            f"Dry run: {result.peers_resolved} peers resolved, "
            f"{result.sessions_compiled} sessions compiled; nothing written"
        )
    else:
        print_success(f"Wrote {len(result.output_files)} files to {args.output}")
        print_success(f"BIRD reconfigured: {result.bird_response}")

    return int(BCGExitCodes.SUCCESS)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser"""
    settings = get_config_manager().get_config()

    parser = argparse.ArgumentParser(
        prog="bcg",
        description="BCG - BIRD Configuration Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--version", action="version", version=f"bcg {__version__}")

    parser.add_argument("-c", "--config", default=settings.output.config_file,
                        help=f"Peering configuration file, YAML/TOML/JSON (default: {settings.output.config_file})")
    parser.add_argument("-o", "--output", default=settings.output.output_dir,
                        help=f"Output directory for BIRD configuration (default: {settings.output.output_dir})")
    parser.add_argument("-t", "--templates", default=settings.output.templates_dir,
                        help="Templates directory (default: packaged templates)")
    parser.add_argument("-s", "--socket", default=None,
                        help=f"BIRD control socket (default: {settings.bird.socket_path})")
    parser.add_argument("-n", "--dryrun", action="store_true",
                        help="Resolve and validate only; do not write files or reconfigure BIRD")

    verbose_group = parser.add_mutually_exclusive_group()
    verbose_group.add_argument("-v", "--verbose", action="store_true",
                               help="Enable verbose logging")
    verbose_group.add_argument("-q", "--quiet", action="store_true",
                               help="Quiet mode (warnings only)")

    return parser


def main(argv=None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_app_logging(args.verbose, args.quiet)

    issues = get_config_manager().validate_config()
    if issues:
        for issue in issues:
            print(ErrorFormatter.format_message(f"Invalid setting: {issue}"))
        return int(BCGExitCodes.CONFIG_VALIDATION_FAILED)

    return cmd_generate(args)


if __name__ == "__main__":
    sys.exit(main())
