"""
Main entry point for the BTC price dashboard.

This module implements the DashboardApp class that wires configuration,
logging, the exchange client and the DashboardEngine together and runs the
engine until the process is interrupted.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from btc_dashboard.core.binance_service import BinanceServiceClient
from btc_dashboard.core.dashboard_engine import DashboardEngine
from btc_dashboard.core.exceptions import ConfigurationError
from btc_dashboard.core.live_merger import LiveMerger
from btc_dashboard.core.renderer_protocol import IRenderer, LogRenderer
from btc_dashboard.utils.config import ConfigManager
from btc_dashboard.utils.logger import DashboardLogger


class DashboardApp:
    """
    Application bootstrap.

    Lifecycle:
        1. __init__() - Minimal constructor setup
        2. initialize() - Load config, set up logging, build components
        3. run() - Start the engine and block until stop is requested
        4. shutdown() - Release every engine resource (idempotent)

    Attributes:
        config_manager: Loaded configuration
        client: Binance REST client
        engine: Dashboard controller
        renderer: Model consumer (LogRenderer when none is injected)
    """

    def __init__(self, config_dir: str = "configs", renderer: Optional[IRenderer] = None) -> None:
        self.config_dir = config_dir
        self.renderer = renderer

        # Components (initialized in initialize())
        self.config_manager: Optional[ConfigManager] = None
        self.client: Optional[BinanceServiceClient] = None
        self.engine: Optional[DashboardEngine] = None
        self.logger = logging.getLogger(__name__)

        self._stop_event: Optional[asyncio.Event] = None

    def initialize(self) -> None:
        """
        Initialize components in dependency order.

        Initialization Sequence:
            1. ConfigManager - Load configs/dashboard_config.yaml + env overrides
            2. DashboardLogger - Setup logging infrastructure
            3. Startup Banner - Log environment information
            4. BinanceServiceClient - REST client
            5. LiveMerger + DashboardEngine

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        # Step 1: Load configurations (fail fast)
        self.config_manager = ConfigManager(self.config_dir)
        binance_config = self.config_manager.binance_config
        dashboard_config = self.config_manager.dashboard_config
        logging_config = self.config_manager.logging_config

        # Step 2: Setup logging infrastructure
        DashboardLogger(logging_config.__dict__)

        # Step 3: Startup banner
        self.logger.info("=" * 50)
        self.logger.info("BTC Price Dashboard Starting...")
        self.logger.info(f"Environment: {'TESTNET' if binance_config.use_testnet else 'MAINNET'}")
        self.logger.info(f"Symbol: {dashboard_config.symbol}")
        self.logger.info(f"Default interval: {dashboard_config.default_interval}")
        self.logger.info(f"Timezone: {dashboard_config.timezone}")
        self.logger.info("=" * 50)

        # Step 4: REST client
        self.client = BinanceServiceClient(
            is_testnet=binance_config.use_testnet,
            base_url=binance_config.rest_url,
        )

        # Step 5: Engine
        live_merger = LiveMerger(
            symbol=dashboard_config.symbol,
            is_testnet=binance_config.use_testnet,
            ws_url=binance_config.ws_url,
        )
        if self.renderer is None:
            self.renderer = LogRenderer()
        self.engine = DashboardEngine(
            client=self.client,
            renderer=self.renderer,
            config=dashboard_config,
            live_merger=live_merger,
        )

        self.logger.info("All components initialized successfully")

    def request_stop(self) -> None:
        """Ask run() to return. Safe to call from a signal handler."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> None:
        """Start the engine and block until request_stop(); always shuts down."""
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.request_stop))

        try:
            await self.engine.start()
            await self._stop_event.wait()
            self.logger.info("Shutdown requested")
        finally:
            await self.shutdown()
            for sig in installed:
                loop.remove_signal_handler(sig)

    async def shutdown(self) -> None:
        """Graceful shutdown - delegate to DashboardEngine."""
        if self.engine is None:
            return
        await self.engine.shutdown()
        self.logger.info("Shutdown complete")


def main() -> None:
    """
    Application entry point.

    Exits with status 2 on configuration errors and 1 on any other fatal
    error.
    """
    app = DashboardApp()

    try:
        app.initialize()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logging.error(f"Invalid configuration: {e}")
        sys.exit(2)

    try:
        asyncio.run(app.run())
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
