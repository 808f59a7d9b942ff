"""Main application entry point for the target status operator."""

import argparse
import asyncio
import logging
import signal
import sys

from prometheus_client import start_http_server

from .config.loader import ConfigLoader
from .config.models import OperatorConfig
from .config.settings import Settings
from .scheduler import PollScheduler
from .services.kube_client import KubeClient
from .utils.logger import setup_logger
from .workflow import TargetStatusWorkflow


class OperatorApp:
    """
    Target status application.

    Wires configuration, the Kubernetes client, the workflow and the poll
    scheduler together and handles graceful shutdown.
    """

    def __init__(self, config_path: str = "config/config.yaml", log_level: str = None):
        """
        Initialize the application.

        Args:
            config_path: Path to configuration file
            log_level: Overrides the configured log level
        """
        self.config_path = config_path
        self.settings = Settings()
        self.config = self._load_config()

        self.logger = setup_logger("gmp_operator", log_level or self.config.logging.level)
        self.logger.info(f"Configuration loaded from {self.config_path}")

        self.kube = KubeClient(self.logger, kubeconfig=self.settings.KUBECONFIG)
        self.workflow = TargetStatusWorkflow(self.config, self.kube, self.logger)
        self.scheduler = None

    def _load_config(self) -> OperatorConfig:
        """
        Load and validate configuration.

        Raises:
            SystemExit: If configuration is invalid
        """
        try:
            config = ConfigLoader.load_from_file(self.config_path)
        except FileNotFoundError:
            logging.error(f"Configuration file not found: {self.config_path}")
            sys.exit(1)
        except Exception as e:
            logging.error(f"Failed to load configuration: {e}", exc_info=True)
            sys.exit(1)

        if self.settings.OPERATOR_NAMESPACE:
            config.operator.operator_namespace = self.settings.OPERATOR_NAMESPACE
        return config

    def _start_metrics_server(self):
        if self.config.metrics.enabled:
            start_http_server(self.config.metrics.port)
            self.logger.info(f"Serving metrics on :{self.config.metrics.port}")

    async def run_once(self):
        """
        Run a single cycle.

        Raises:
            Exception: Any failure of the cycle, logged before re-raising
        """
        try:
            if not await self.workflow.should_poll():
                self.logger.info("Target status polling not applicable, nothing to do")
                return
            await self.workflow.poll_and_update()
        except Exception:
            self.logger.error("Target status cycle failed", exc_info=True)
            raise

    async def run_forever(self):
        """Run the poll scheduler until SIGTERM/SIGINT."""
        self._start_metrics_server()

        self.scheduler = PollScheduler(
            self.workflow.reconcile,
            self.config.target_status.min_poll_interval_seconds,
            self.logger
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._shutdown, sig)

        await self.scheduler.run()

    def _shutdown(self, signum):
        self.logger.info(f"Received {signal.Signals(signum).name}, initiating graceful shutdown...")
        if self.scheduler:
            self.scheduler.stop()


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts the operator.
    """
    parser = argparse.ArgumentParser(
        description='Managed Prometheus target status operator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll continuously
  python -m gmp_operator.main

  # Run one cycle and exit
  python -m gmp_operator.main --run-once

  # Use custom config file
  python -m gmp_operator.main --config /path/to/config.yaml
        """
    )

    parser.add_argument(
        '--config',
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run one target status cycle and exit'
    )

    parser.add_argument(
        '--log-level',
        default=Settings().LOG_LEVEL or None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: configured level or LOG_LEVEL env var)'
    )

    args = parser.parse_args()

    try:
        app = OperatorApp(config_path=args.config, log_level=args.log_level)

        if args.run_once:
            exit_code = 0
            try:
                asyncio.run(app.run_once())
            except Exception:
                exit_code = 1
            sys.exit(exit_code)

        asyncio.run(app.run_forever())

    except Exception as e:
        logging.error(f"Application startup failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
