"""timesync daemon.

Loads the configured listeners, starts the scheduler and keeps running until
SIGINT/SIGTERM, then stops every alarm and shuts down.
"""
import asyncio
import signal
import sys

from loguru import logger

from .config import Settings, settings
from .scheduler import ConfigurationError, ListenerRegistry, TimeSyncService


def setup_logging(config: Settings) -> None:
    """Configure loguru sinks from settings."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=config.log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{extra[module]}</cyan> - <level>{message}</level>",
    )
    if config.log_file:
        logger.add(
            config.log_file,
            level=config.log_level,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
    logger.configure(extra={"module": "timesync"})


def load_registry(config: Settings) -> ListenerRegistry:
    """Resolve the configured listeners; an empty list is a configuration error."""
    if not config.listeners:
        raise ConfigurationError(
            "No listeners configured, set TIMESYNC_LISTENERS=package.module:ClassName[,...]"
        )
    return ListenerRegistry.from_names(config.listeners)


async def main(config: Settings = settings) -> None:
    """Run the daemon until a termination signal arrives."""
    setup_logging(config)

    logger.info("=" * 50)
    logger.info("  TimeSync")
    logger.info(f"  Data dir: {config.data_dir}")
    logger.info(f"  Store: {config.store_backend}")
    logger.info(f"  Listeners: {', '.join(config.listeners) or '-'}")
    logger.info("=" * 50)

    registry = load_registry(config)

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers, Ctrl+C still raises
            pass

    async with TimeSyncService(registry, settings=config) as service:
        await service.start()
        logger.info("TimeSync started")

        await stop_requested.wait()

        logger.info("Shutting down...")
        await service.stop()

    logger.info("Goodbye!")


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        pass
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)


if __name__ == "__main__":
    run()
