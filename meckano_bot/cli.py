"""
Command-line interface for the Meckano report filler.

This module provides the CLI using argparse and orchestrates
the complete fill run.
"""

import argparse
import random
import sys
from pathlib import Path

from .config import Config, ConfigError
from .playwright_client import BootstrapError, run_fill_operation
from .time_utils import generate_time_entry
from .logging_utils import setup_logging, get_logger, log_section, log_error, register_secret


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='meckano_bot',
        description='Automated entrance/exit filling for the Meckano monthly report',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials and the time window are read from the environment
(MECKANO_EMAIL, MECKANO_PASSWORD, MIN_ENTRANCE_HOUR, ...) or a .env file.

Examples:
  # Dry run - validate configuration and show a sample entry
  python -m meckano_bot fill --dry-run

  # Fill the report in headful mode (see browser)
  python -m meckano_bot fill

  # Fill in headless mode with a specific .env file
  python -m meckano_bot fill --headless --env-file ~/.meckano.env

  # Verbose output for debugging
  python -m meckano_bot fill --verbose
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    fill_parser = subparsers.add_parser(
        'fill',
        help='Fill empty entrance/exit cells of the current monthly report'
    )

    fill_parser.add_argument(
        '--env-file',
        type=str,
        metavar='PATH',
        help='Path to a .env file (default: .env in the working directory)'
    )

    fill_parser.add_argument(
        '--headless',
        action='store_true',
        help='Run browser in headless mode (no GUI)'
    )

    fill_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate configuration and show a sample entry without opening a browser'
    )

    fill_parser.add_argument(
        '--skip-connectivity-check',
        action='store_true',
        help='Do not check that the portal answers before logging in'
    )

    fill_parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )

    return parser


def validate_args(args: argparse.Namespace) -> bool:
    """
    Validate command-line arguments.

    Args:
        args: Parsed arguments

    Returns:
        True if valid, False otherwise
    """
    logger = get_logger()

    if args.env_file is not None and not Path(args.env_file).exists():
        log_error(f"Env file not found: {args.env_file}", logger)
        return False

    return True


def cmd_fill(args: argparse.Namespace) -> int:
    """
    Execute the fill command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger = get_logger()

    log_section("Loading Configuration", logger)

    try:
        config = Config.from_env(
            env_file=args.env_file,
            headless=args.headless,
            dry_run=args.dry_run,
            verbose=args.verbose,
            check_connectivity=not args.skip_connectivity_check
        )
    except ConfigError as e:
        log_error(f"Configuration error: {e}", logger)
        return 1

    register_secret(config.password)

    window = config.time
    logger.info(f"Account: {config.email}")
    logger.info(f"Portal: {config.base_url}")
    logger.info(
        f"Entrance window: {window.min_entrance_hour:02d}:{window.min_entrance_minute:02d}"
        f"-{window.max_entrance_hour:02d}:{window.max_entrance_minute:02d}, "
        f"work hours: {window.min_work_hours}-{window.max_work_hours}"
    )

    # Dry run mode - stop here
    if config.dry_run:
        sample = generate_time_entry(window, random)
        logger.info(f"Sample entry: entrance={sample.entrance}, exit={sample.exit}")
        log_section("Dry Run Complete", logger)
        logger.info("No browser operations performed.")
        logger.info("Run without --dry-run to fill the report.")
        return 0

    log_section("Starting Fill Run", logger)

    try:
        summary = run_fill_operation(config)

        logger.info(summary.format_summary())

        # Row-level errors do not fail the run
        if summary.errors > 0:
            logger.warning(f"Run completed with {summary.errors} row error(s)")
        elif summary.is_noop:
            logger.info("Run completed: nothing needed filling")
        else:
            logger.info("Run completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("")
        logger.warning("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT

    except BootstrapError as e:
        logger.info("")
        log_error(f"Could not reach the monthly report: {e}", logger)
        return 1

    except Exception as e:
        logger.info("")
        log_error(f"Operation failed: {e}", logger)
        logger.debug("Traceback:", exc_info=True)
        return 1


def main(argv=None):
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=getattr(args, 'verbose', False))

    logger = get_logger()

    logger.info("")
    logger.info("=" * 70)
    logger.info("  Meckano Report Filler")
    logger.info("=" * 70)

    if not args.command:
        parser.print_help()
        return 1

    if not validate_args(args):
        return 1

    if args.command == 'fill':
        return cmd_fill(args)
    else:
        log_error(f"Unknown command: {args.command}", logger)
        return 1


if __name__ == '__main__':
    sys.exit(main())
