"""
assetflow command line.

Usage:
    # List the main tasks
    assetflow

    # Build everything into the public directory
    assetflow build

    # Build, watch, live reload and run the app
    assetflow develop

    # Run a single task with another manifest
    assetflow styles --config site/build.config.yaml

    # Show all registered tasks
    assetflow --list
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from assetflow.config import CONFIG_FILENAME, load_app_settings, load_config, load_env_file
from assetflow.errors import ConfigError, DependencyError
from assetflow.notify import Notifier
from assetflow.pipeline.orchestrator import PipelineOrchestrator, RunReport, TaskRegistry
from assetflow.tasks.catalog import build_registry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def print_tasks(registry: TaskRegistry) -> None:
    print("\nAvailable Tasks:")
    print("=" * 60)

    for task in registry.tasks():
        stages = []
        for stage in task.prerequisites:
            stages.append(stage if isinstance(stage, str) else "[" + ", ".join(stage) + "]")
        deps = " -> ".join(stages) if stages else "none"
        print(f"  {task.name}: {task.description}")
        print(f"    Depends on: {deps}")


def print_summary(report: RunReport) -> None:
    if report.task == "default":
        return

    print("\n" + "=" * 60)
    print("BUILD SUMMARY")
    print("=" * 60)
    print(f"Task: {report.task}")
    print(f"Status: {report.status.upper()}")
    print(f"Duration: {report.duration_seconds:.2f}s")

    if report.runs:
        print("\nTask Details:")
        for name, run in report.runs.items():
            detail = f" - {run.result.summary()}" if run.result is not None else ""
            print(f"  {name}: {run.status.value} ({run.duration_seconds:.2f}s){detail}")

    if report.errors:
        print("\nErrors:")
        for error in report.errors:
            print(f"  - {error}")

    print("=" * 60)


def _install_signal_handlers(orchestrator: PipelineOrchestrator) -> None:
    def handle(signum, _frame) -> None:
        logger.info(f"Signal {signum} received, shutting down...")
        orchestrator.context.stop()

    signal.signal(signal.SIGINT, handle)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, handle)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="assetflow",
        description="Asset build pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "task",
        nargs="?",
        default="default",
        help="Task to run (default: list the main tasks)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path(CONFIG_FILENAME),
        help=f"Manifest path (default: {CONFIG_FILENAME})",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List all registered tasks and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    registry = build_registry()
    if args.list:
        print_tasks(registry)
        return EXIT_OK

    load_env_file(args.config.resolve().parent / ".env")
    try:
        config = load_config(args.config)
        settings = load_app_settings()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    orchestrator = PipelineOrchestrator(
        registry,
        config,
        app_settings=settings,
        notifier=Notifier(config.notifications),
    )
    context = orchestrator.context

    try:
        report = orchestrator.run(args.task)
    except DependencyError as e:
        logger.error(str(e))
        return EXIT_CONFIG

    print_summary(report)

    if context.services and not report.succeeded:
        context.shutdown()
    elif context.services:
        _install_signal_handlers(orchestrator)
        logger.info("Watching for changes. Press Ctrl+C to stop.")
        try:
            # Short timeouts keep the main thread responsive to signals.
            while not context.wait(timeout=1.0):
                pass
        finally:
            context.shutdown()
            logger.info("Bye.")

    return EXIT_OK if not report.failures else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
