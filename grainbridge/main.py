"""
Grainbridge

Localhost control plane for the instrument: sessions, action bundles,
musical-time scheduling and the live event stream.
"""
from __future__ import annotations

import asyncio
import logging
import signal

from grainbridge.bridge import ControlBridge
from grainbridge.config import Settings, settings
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.memory import simulated_instrument
from grainbridge.transport.server import BridgeServer

logger = logging.getLogger(__name__)


def configure_logging(config: Settings = settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_bridge(config: Settings = settings) -> ControlBridge:
    """A bridge wired to in-memory collaborators, or to none at all."""
    if config.simulate:
        instrument = simulated_instrument(sample_rate=config.sample_rate)
        logger.info("Using in-memory instrument collaborators")
    else:
        instrument = Instrument(fallback_sample_rate=config.sample_rate)
        logger.info("No instrument collaborators attached; reads will use defaults")
    return ControlBridge(instrument, config)


async def serve(config: Settings = settings) -> None:
    """Run the server until SIGINT/SIGTERM."""
    logger.info(f"Starting {config.app_name} v{config.app_version}")
    server = BridgeServer(build_bridge(config), config.host, config.port)
    await server.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            logger.debug(f"Signal handlers unavailable for {sig.name}")

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down...")
        await server.stop()


def run() -> None:
    configure_logging()
    asyncio.run(serve())
