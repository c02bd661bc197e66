#!/usr/bin/env python3
import sys
import logging
import argparse
import signal
from dataclasses import replace
from datetime import datetime

from chstatus import __version__
from chstatus.services.logging_config import setup_main_logging
from chstatus.services.config_loader import load_filter_settings
from chstatus import workflows
from chstatus.workflows.helpers import build_service, collect_event_paths

logger = logging.getLogger(__name__)


def _handle_termination_signal(signum, frame):
    """Handle termination signals (SIGTERM, SIGINT) and log before exiting."""
    signal_names = {
        signal.SIGTERM: "SIGTERM",
        signal.SIGINT: "SIGINT (Ctrl+C)",
    }
    signal_name = signal_names.get(signum, f"signal {signum}")
    logger.warning(f"{'='*70}")
    logger.warning(f"⚠️  Process received {signal_name} - Terminating gracefully")
    logger.warning(f"{'='*70}")
    logging.shutdown()
    sys.exit(128 + signum)


def _setup_arguments():
    """Configures command-line arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="chstatus: channel status tracking and noisy-channel filter.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process every event file in a directory (Warning level)
  ./chstatus_cli.py -i events/

  # Run with INFO level logging and write a per-cycle summary
  ./chstatus_cli.py -i events/ -v --summary-csv output/summary.csv

  # Force noisy-channel detection on, whatever the config says
  ./chstatus_cli.py -i run1.npz run2.npz --find-noisy -vv

  # Check configuration and the status source, then exit
  ./chstatus_cli.py --check-config
"""
    )
    parser.add_argument(
        "-i", "--input",
        dest="inputs",
        metavar="PATH",
        nargs='+',
        default=None,
        help="Event files (.npz) or directories containing them."
    )
    parser.add_argument(
        "-c", "--config",
        default="config.ini",
        help="Config file name in config/ or an absolute path. (Default: config.ini)"
    )
    parser.add_argument(
        "--summary-csv",
        metavar="FILE",
        default=None,
        help="Write a per-cycle summary of noisy channels to this CSV file."
    )
    parser.add_argument(
        "--find-noisy",
        action="store_true",
        help="Enable noisy-channel detection regardless of the config."
    )
    parser.add_argument(
        "-p", "--processes",
        type=int,
        default=None,
        help="Worker processes for baseline computation (Default: config cpu_number_used)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (default: WARNING, -v: INFO, -vv: DEBUG)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show the program's version number and exit"
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Check all configuration, test the status source, and exit."
    )
    return parser


# --- Main Execution ---
if __name__ == "__main__":

    parser = _setup_arguments()
    args = parser.parse_args()

    if not args.inputs and not args.check_config:
        parser.print_help()
        sys.exit(0)

    # 1. Setup Logging
    if args.check_config:
        log_name = f"config_{datetime.now().strftime('%Y%m%d')}"
        log_level, log_file_path = setup_main_logging(args.verbose + 1, log_name, log_dir="logs/log")
    else:
        log_name = f"chstatus_{datetime.now().strftime('%Y%m%d_%H%M')}"
        log_level, log_file_path = setup_main_logging(args.verbose, log_name, log_dir="logs/log")

    signal.signal(signal.SIGTERM, _handle_termination_signal)
    signal.signal(signal.SIGINT, _handle_termination_signal)

    logger.info(f"--- {sys.argv[0]} Starting ---")
    logger.info(f"Arguments: {vars(args)}")
    logger.info(f"Log level set to: {logging.getLevelName(log_level)}")

    if args.check_config:
        logger.info("Running configuration and connection check...")
        try:
            from chstatus.services.health_check import check_configurations
            if check_configurations(args.config):
                logger.info("--- ✅ All checks passed ---")
                sys.exit(0)
            logger.error("--- ❌ One or more checks FAILED ---")
            sys.exit(1)
        except Exception as e:
            logger.critical(f"A fatal error occurred during config check: {e}", exc_info=True)
            sys.exit(1)

    # 2. Build the service
    try:
        settings = load_filter_settings(args.config)
        if args.find_noisy:
            settings = replace(settings, find_noisy_channels=True)
        service = build_service(args.config, settings=settings,
                                log_level=log_level, log_file_path=log_file_path)
        if args.processes:
            service.processes = max(1, args.processes)
    except Exception as e:
        logger.critical(f"Failed to set up the channel filter: {e}. Exiting.", exc_info=True)
        sys.exit(1)

    event_paths = collect_event_paths(args.inputs)
    if not event_paths:
        logger.error("No event files found. Exiting.")
        sys.exit(1)
    logger.info(f"Found {len(event_paths)} event files.")

    # 3. Dispatch to the main workflow
    try:
        workflows.run_processing_workflow(event_paths, service, summary_csv=args.summary_csv)
    except Exception as e:
        logger.critical(f"A fatal error occurred in the workflow: {e}", exc_info=True)
        sys.exit(1)

    logger.info(f"--- {sys.argv[0]} Finished ---")
