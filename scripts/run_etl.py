"""
Command line entry point.

    lab-etl run [<pipeline>|all|list]   Process pipelines (default: all)
    lab-etl extract <extractor>|list    Pull data from an external system
    lab-etl schedule                    Run all pipelines every ETL_SCHEDULE_MINUTES

Exit status is 0 when the run completes and 1 on a fatal error, an
unknown pipeline or an unknown extractor.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from core.config import settings
from core.database import check_connection
from core.exceptions import ETLException
from core.logging import setup_logging
from ingestion.extractors import available_extractors
from ingestion.registry import PipelineRegistry
from ingestion.runner import ShutdownFlag
from ingestion.scheduler import ETLScheduler
from ingestion.service import ETLService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lab-etl", description="Lab orders ETL service")
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Process pipelines")
    run.add_argument("target", nargs="?", default="all", help="Pipeline name, 'all' or 'list'")
    run.add_argument("--skip-extract", action="store_true", help="Do not run feeding extractors first")

    extract = subparsers.add_parser("extract", help="Run an extractor")
    extract.add_argument("name", nargs="?", default="list", help="Extractor name or 'list'")

    subparsers.add_parser("schedule", help="Run all pipelines periodically")
    return parser


def print_pipelines(registry: PipelineRegistry) -> None:
    print("\nAvailable pipelines:")
    for name in registry.names():
        print(f"  - {name}")
    print("\nUsage: lab-etl run <pipeline-name>")
    print("       lab-etl run all")
    print("       lab-etl extract <extractor-name>\n")


def print_extractors() -> None:
    print("\nAvailable extractors:")
    for name in available_extractors():
        print(f"  - {name}")
    print("\nUsage: lab-etl extract <extractor-name>\n")


def install_signal_handlers(shutdown: ShutdownFlag, stop_event: Optional[asyncio.Event] = None) -> None:
    loop = asyncio.get_running_loop()

    def handle(sig: signal.Signals) -> None:
        shutdown.request(sig.name)
        if stop_event is not None:
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle, sig)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda signum, frame: handle(signal.Signals(signum)))


async def run_command(args: argparse.Namespace, service: ETLService) -> int:
    if args.command == "extract":
        result = await service.extract(args.name)
        if result.skipped:
            print(f"\nNo records found for {args.name}, nothing uploaded\n")
        else:
            print("\nExtraction complete!")
            print(f"  Records: {result.record_count}")
            print(f"  File: s3://{service.storage.bucket}/{result.key}\n")
        return 0

    if args.command == "schedule":
        stop_event = asyncio.Event()
        install_signal_handlers(service.shutdown, stop_event)
        scheduler = ETLScheduler(service)
        scheduler.start()
        await scheduler.run_etl_job()
        await stop_event.wait()
        scheduler.stop()
        return 0

    install_signal_handlers(service.shutdown)
    with_extractors = not args.skip_extract

    if args.target == "all":
        logger.info("Processing all pipelines...")
        summary = await service.run_all(with_extractors=with_extractors)
        for pipeline in summary.pipelines:
            logger.info(
                f"{pipeline.pipeline}: files={pipeline.total_files} successful={pipeline.successful_files} "
                f"failed={pipeline.failed_files} skipped={pipeline.skipped_files}"
                + ("" if pipeline.configured else " (not configured)")
                + (f" error={pipeline.error}" if pipeline.error else "")
            )
        return 0

    logger.info(f"Processing pipeline: {args.target}")
    summary = await service.run_pipeline(args.target, with_extractor=with_extractors)
    logger.info(
        f"Pipeline {args.target} completed: files={summary.total_files} "
        f"successful={summary.successful_files} failed={summary.failed_files}"
    )
    return 0


async def main_async(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["run", *(argv or [])])

    registry = PipelineRegistry.default()

    # Commands answered without touching storage or the database
    if args.command == "run" and args.target == "list":
        print_pipelines(registry)
        return 0
    if args.command == "run" and args.target != "all" and args.target not in registry:
        print(f"\nUnknown pipeline: {args.target}", file=sys.stderr)
        print_pipelines(registry)
        return 1
    if args.command == "extract" and args.name == "list":
        print_extractors()
        return 0
    if args.command == "extract" and args.name not in available_extractors():
        print(f"\nUnknown extractor: {args.name}", file=sys.stderr)
        print_extractors()
        return 1

    setup_logging()
    service = ETLService.from_settings(settings, registry=registry)
    try:
        if args.command != "extract" and not await check_connection(service.db_engine):
            logger.error("Database is unreachable, aborting")
            return 1
        return await run_command(args, service)
    except ETLException as e:
        logger.error(f"Fatal error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1
    finally:
        logger.info("Shutting down gracefully...")
        await service.close()


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(asyncio.run(main_async(argv)))


if __name__ == "__main__":
    main()
