#!/usr/bin/env python3
"""
Cookbook Mirror Script

Mirrors externally hosted Chef cookbooks into a Gerrit server and keeps
each mirrored project's configuration in line with central policy:

1. Project configuration: merges the configured sections into the
   project.config file of refs/meta/config (existing sections only)
   and pushes the commit back to Gerrit.

2. Mirroring: pushes the source repository's default branch to Gerrit
   as "upstream" and moves Gerrit's "master" to the same commit.

Plan mode (or default.debug: true) simulates every push.
"""

import argparse
import logging
import signal
import sys

from cookbook_mirror.config_manager import ConfigLoadError, MirrorConfig, create_example_config
from cookbook_mirror.exporter import DataExporter
from cookbook_mirror.logger_setup import setup_logging
from cookbook_mirror.mirror_pipeline import CookbookMirrorPipeline


def setup_signal_handlers():
    """Setup signal handlers to gracefully handle broken pipes and interrupts."""
    def handle_broken_pipe(signum, frame):
        sys.exit(0)

    def handle_interrupt(signum, frame):
        print("\n\nOperation interrupted by user.", file=sys.stderr)
        sys.exit(1)

    # SIGPIPE is not available on every platform
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, handle_broken_pipe)
    signal.signal(signal.SIGINT, handle_interrupt)


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Mirror Chef cookbooks into Gerrit and sync their project configuration",
        epilog="""
Examples:
  # Simulate every push
  %(prog)s --mode plan

  # Mirror for real, without the confirmation prompt
  %(prog)s --mode apply --yes

  # Only some cookbooks
  %(prog)s --cookbooks apache,nginx --mode plan

  # View configuration
  %(prog)s --show-config
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Configuration file path"
    )

    parser.add_argument(
        "--mode",
        choices=["plan", "apply"],
        default=None,
        help="Execution mode: plan (simulate pushes) or apply (push to Gerrit). "
             "Defaults to plan when default.debug is true, apply otherwise"
    )

    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt in apply mode (non-interactive)"
    )

    parser.add_argument(
        "--cookbooks",
        help="Comma-separated list of cookbooks to process"
    )

    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show current configuration and exit"
    )

    parser.add_argument(
        "--create-example-config",
        action="store_true",
        help="Write config.example.yaml next to the configuration file and exit"
    )

    parser.add_argument(
        "--export",
        action="store_true",
        help="Export the run report in the configured formats"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser.parse_args(argv)


def resolve_dry_run(mode, config: MirrorConfig) -> bool:
    """Decide whether pushes are simulated: --mode wins over default.debug."""
    if mode == "plan":
        return True
    if mode == "apply":
        return False
    return config.debug


def show_config(config: MirrorConfig, dry_run: bool):
    """Print the configuration summary."""
    summary = config.get_config_summary()
    print("\n===== Current Configuration =====")
    print(f"Config file: {summary['config_path']}")
    print(f"Mode: {'plan (dry-run)' if dry_run else 'apply'}")
    print(f"Commit message: {summary['commit_message_text']}")
    if summary['commit_message_variables']:
        print(f"Commit message variables: {', '.join(summary['commit_message_variables'])}")
    print(f"Project config sections ({len(summary['project_config_sections'])}):")
    for section in summary['project_config_sections']:
        print(f"  - [{section}]")
    print(f"Cookbooks ({len(summary['cookbooks'])}):")
    for cookbook in summary['cookbooks']:
        print(f"  - {cookbook['name']}")
        print(f"      source: {cookbook['source_url'] or '<missing>'}")
        print(f"      mirror: {cookbook['local_url'] or '<missing>'}")
    print("===== End of Configuration =====\n")


def confirm_apply(cookbook_count: int) -> bool:
    """Ask the user to confirm pushing to Gerrit."""
    print(f"\nYou are about to push {cookbook_count} cookbook(s) and their project configuration to Gerrit.")
    confirm = input("Proceed? Type 'apply' to continue: ").strip().lower()
    return confirm == "apply"


def main(argv=None):
    """Main execution function."""
    setup_signal_handlers()

    args = parse_arguments(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(level=log_level)
    logger = logging.getLogger(__name__)

    if args.create_example_config:
        path = create_example_config(args.config, force=True)
        print(f"Example configuration written to {path}")
        return 0

    try:
        config = MirrorConfig(args.config)
    except ConfigLoadError as e:
        logger.error(str(e))
        return 1

    # Re-apply logging with the configured level and file
    if not args.verbose:
        log_level = getattr(logging, str(config.log_level).upper(), logging.INFO)
    setup_logging(level=log_level, log_file=config.log_file)

    config.check_config_warnings()
    dry_run = resolve_dry_run(args.mode, config)
    logger.info("Configuration loaded successfully")

    if args.show_config:
        show_config(config, dry_run)
        return 0

    cookbook_names = None
    if args.cookbooks:
        cookbook_names = [name.strip() for name in args.cookbooks.split(",") if name.strip()]

    try:
        if not dry_run and not args.yes:
            if not confirm_apply(len(config.get_cookbooks(cookbook_names))):
                logger.warning("Aborted by user before applying changes")
                return 1

        pipeline = CookbookMirrorPipeline(config, dry_run=dry_run)
        summary = pipeline.run(cookbook_names)

        if args.export:
            exporter = DataExporter(config)
            for path in exporter.export(summary):
                print(f"Report written to {path}")

        if summary["failed"]:
            logger.warning(
                f"FINAL RESULT: {summary['succeeded']}/{summary['cookbooks_found']} cookbooks mirrored "
                f"({summary['failed']} failed)"
            )
            return 1

        logger.info(f"FINAL RESULT: All {summary['succeeded']} cookbooks mirrored")
        return 0

    except BrokenPipeError:
        return 0
    except KeyboardInterrupt:
        logger.info("\nOperation interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
