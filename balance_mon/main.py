import os
import sys
import asyncio
import logging
import signal
from aiohttp import web
from .config import Config, ConfigError, parse_log_level
from .metrics import PrometheusMetrics
from .monitor import BalanceMonitor
from .rpc import Web3Rpc
from .web import create_web_app

logger = logging.getLogger(__name__)


async def main_async():
    monitor = None
    rpc = None
    runner = None
    stop_requested = False

    async def shutdown():
        nonlocal stop_requested
        logger.info("Received shutdown signal")
        stop_requested = True
        if monitor:
            await monitor.shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(shutdown()))

    # Bad configuration is fatal before anything is scheduled
    config = Config(os.getenv('CONFIG_PATH', 'config.yaml'))
    logging.getLogger().setLevel(config.log_level)

    metrics = PrometheusMetrics()
    rpc = Web3Rpc(config.rpc_url, timeout=config.rpc_timeout)
    monitor = BalanceMonitor(config.accounts, rpc, metrics, config.loop_interval_ms)

    try:
        app = create_web_app(monitor, metrics)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        logger.info(f"Server started on {config.host}:{config.port}")

        await rpc.check_connection()
        # a signal may have arrived before the monitor existed
        if stop_requested:
            await monitor.shutdown()
        await monitor.run()
    finally:
        if runner:
            logger.info("Cleaning up runner...")
            await runner.cleanup()
        await rpc.close()


def main():
    try:
        # Configure logging
        logging.basicConfig(
            level=parse_log_level(os.getenv('LOG_LEVEL', 'INFO')),
            format='%(asctime)s - %(levelname)s - %(message)s'
        )
        asyncio.run(main_async())
    except ConfigError as e:
        logging.basicConfig(format='%(asctime)s - %(levelname)s - %(message)s')
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except Exception as e:
        logger.error(f"Fatal error in main: {e}")
        sys.exit(1)
    finally:
        logger.info("Program terminated")


if __name__ == "__main__":
    main()
