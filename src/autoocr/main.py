import argparse
import asyncio
import logging
import math
import sys
from pathlib import Path
from typing import Callable

import uvicorn

from autoocr.config import Settings, get_settings, parse_permissions
from autoocr.conversion import ConverterGateway, Processor
from autoocr.conversion.adapters import DoclingConverter
from autoocr.logs import setup_logging
from autoocr.retention import RetentionCleaner
from autoocr.supervisor import Supervisor, WebServer
from autoocr.watcher import DirectoryWatcher
from autoocr.webapi import create_app

logger = logging.getLogger("autoocr")


async def serve(
    settings: Settings,
    converter_factory: Callable[[], ConverterGateway] = DoclingConverter,
) -> int:
    """Run every component until a termination signal; returns the exit code."""
    supervisor = Supervisor(shutdown_timeout=settings.shutdown_timeout_sec)

    try:
        for d in (settings.input_dir, settings.output_dir):
            d.mkdir(mode=0o755, parents=True, exist_ok=True)
        converter = converter_factory()
        watcher = DirectoryWatcher(settings.input_dir, settings.watch_delay_sec, supervisor.shutdown)
        processor = Processor(
            settings.input_dir,
            settings.output_dir,
            converter,
            supervisor.shutdown,
            out_permissions=settings.out_permissions,
        )
        cleaner = RetentionCleaner(
            [settings.input_dir, settings.output_dir],
            max_age=settings.retention_sec,
            interval=settings.cleanup_interval_sec,
            shutdown=supervisor.shutdown,
        )
        server = WebServer(
            uvicorn.Config(
                create_app(settings),
                host=settings.host,
                port=settings.port,
                log_config=None,
                timeout_graceful_shutdown=math.ceil(settings.shutdown_timeout_sec),
            )
        )
    except Exception:
        logger.critical("Startup failed", exc_info=True)
        return 1

    supervisor.install_signal_handlers()
    supervisor.spawn("watcher", watcher.run())
    supervisor.spawn("processor", processor.run())
    web = supervisor.spawn("webserver", supervisor.serve_web(server))
    supervisor.spawn("triggers", supervisor.coordinate(watcher.trigger, processor))
    supervisor.spawn("cleaner", cleaner.run())
    supervisor.spawn("shutdown", supervisor.stop_server_on_shutdown(server, web))

    await supervisor.join()
    supervisor.remove_signal_handlers()
    logger.info("All done. Exiting.")
    return 1 if supervisor.failed else 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert scans dropped into a directory and serve the results")
    parser.add_argument("-i", "--input", help="directory watched for new documents (INPUT_DIR)")
    parser.add_argument("-o", "--output", help="directory receiving results and progress logs (OUTPUT_DIR)")
    parser.add_argument("--permissions", type=parse_permissions, help="octal mode of output files (OUT_PERMISSIONS)")
    parser.add_argument("--delay", type=float, help="seconds of quiet before a run is triggered (WATCH_DELAY_SEC)")
    parser.add_argument("--host", help="listen address (HOST)")
    parser.add_argument("--port", type=int, help="listen port (PORT)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR (LOG_LEVEL)")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> None:
    """Console entry point.

    Flags override the matching environment variables.
    """
    args = parse_args(argv)
    settings = get_settings().with_overrides(
        input_dir=Path(args.input).resolve() if args.input else None,
        output_dir=Path(args.output).resolve() if args.output else None,
        out_permissions=args.permissions,
        watch_delay_sec=args.delay,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )
    setup_logging(settings.log_level)
    logger.debug("Input: %s", settings.input_dir)
    logger.debug("Output: %s", settings.output_dir)
    logger.debug("Permissions: %s", oct(settings.out_permissions))

    sys.exit(asyncio.run(serve(settings)))


if __name__ == "__main__":
    run()
