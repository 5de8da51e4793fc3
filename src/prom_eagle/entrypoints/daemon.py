import argparse
import asyncio
import logging
import sys
from contextlib import suppress
from typing import Optional, Sequence

import uvicorn

from prom_eagle import __version__
from prom_eagle.adapters.eagle import EagleAdapter
from prom_eagle.adapters.mocks import MockEagleAdapter
from prom_eagle.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from prom_eagle.domain.errors import ConfigError
from prom_eagle.entrypoints.api.main import create_app
from prom_eagle.ports.telemetry import TelemetryPort
from prom_eagle.services.collector import CollectorService
from prom_eagle.services.registry import PowerGauge

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="prom-eagle",
        description="Exports power usage to Prometheus from an Eagle power monitor",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="File to use for configuration (default: %(default)s)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def build_telemetry(settings: Settings) -> TelemetryPort:
    if settings.mode == "mock":
        logger.info("Running in MOCK mode. Using simulated Eagle readings.")
        return MockEagleAdapter()

    return EagleAdapter(
        user=settings.eagle.user,
        password=settings.eagle.password.get_secret_value(),
        cloud_id=settings.eagle.cloud_id,
        url=settings.eagle.url,
        timeout=settings.eagle.request_timeout_secs,
    )


async def serve(settings: Settings) -> None:
    gauge = PowerGauge()
    telemetry = build_telemetry(settings)
    service = CollectorService(telemetry=telemetry, gauge=gauge)
    app = create_app(gauge)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.server.host,
            port=settings.server.port,
            log_config=None,
            access_log=False,
        )
    )

    stop = asyncio.Event()
    poll_task = asyncio.create_task(service.run(settings.eagle.update_interval_secs, stop))

    logger.info(f"Starting server for {settings.server.host}:{settings.server.port}")
    try:
        await server.serve()
    finally:
        # In-flight scrapes are done once serve() returns; an in-flight poll is abandoned
        stop.set()
        poll_task.cancel()
        with suppress(asyncio.CancelledError):
            await poll_task
        await telemetry.close()
        logger.info("Daemon stopped")

    if not server.started:
        logger.error(f"Could not start server on {settings.server.host}:{settings.server.port}")
        sys.exit(1)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        setup_logging("INFO")
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(settings.log_level)
    logger.info(f"Starting Prom Eagle {__version__} (Mode: {settings.mode})")

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
