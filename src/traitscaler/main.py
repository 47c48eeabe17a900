#!/usr/bin/env python3
"""
Traitscaler - Main Entry Point
Reconciles autoscaler traits into KEDA scaled objects
"""

import os
import signal
import sys
import threading
import time
from typing import Optional

from prometheus_client import start_http_server

from .api.server import APIServer
from .config import Settings, settings as default_settings
from .core.controller import TraitController
from .core.errors import ClientConfigError
from .core.logging_config import get_logger, setup_logging
from .core.reconciler import AutoscalerReconciler
from .events.recorder import ConditionReporter
from .kube import ResourceStore, build_api_client, build_dynamic_client


class ControllerService:
    """Main service that wires the store, reconciler, controller and status API together"""

    def __init__(self, config_path: Optional[str] = None, settings: Optional[Settings] = None):
        """Initialize the controller service"""
        if settings is not None:
            self.settings = settings
        elif config_path and os.path.exists(config_path):
            self.settings = Settings.load_from_yaml_with_env_override(config_path)
        else:
            self.settings = default_settings

        self.config = self.settings.get_config_dict()

        setup_logging(
            level=self.settings.logging.level,
            log_file=self.settings.logging.file,
            enable_colors=True,
            console_format=self.settings.logging.format
        )
        self.logger = get_logger(__name__)
        self.running = True

        self.store = self._init_store()

        controller_settings = self.settings.controller
        self.reporter = ConditionReporter(self.store, component=controller_settings.event_component)
        self.reconciler = AutoscalerReconciler(
            self.store,
            reporter=self.reporter,
            trait_api_version=controller_settings.trait_api_version,
            trait_kind=controller_settings.trait_kind,
            requeue_after=controller_settings.requeue_after_seconds,
        )
        self.controller = TraitController(
            self.store,
            self.reconciler,
            workers=controller_settings.workers,
            namespace=self.settings.kubernetes.watch_namespace or None,
            watch_timeout=controller_settings.watch_timeout_seconds,
        )
        self.api_server = APIServer(self.controller, self.config)

        self.logger.info("Traitscaler service initialized")
        if self.settings.debug:
            self.logger.info(f"Debug mode enabled. Settings: {self.settings.model_dump()}")

    def _init_store(self) -> ResourceStore:
        """Connect to the cluster"""
        try:
            api_client = build_api_client(self.settings.kubernetes)
            store = ResourceStore(build_dynamic_client(api_client))
            self.logger.info("Kubernetes resource store initialized successfully")
            return store
        except ClientConfigError as e:
            self.logger.error(f"Failed to initialize Kubernetes client: {e}")
            sys.exit(1)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    def reconcile_once(self, key: str) -> bool:
        """Reconcile a single NAMESPACE/NAME trait and report whether it succeeded"""
        namespace, _, name = key.partition("/")
        if not name:
            namespace, name = self.settings.kubernetes.watch_namespace or "default", namespace
        result = self.reconciler.reconcile(namespace, name)
        for warning in result.warnings:
            self.logger.warning(f"{result.key}: {warning}")
        if result.succeeded:
            self.logger.info(f"{result.key} reconciled (stage {result.stage.value})")
        else:
            self.logger.error(f"{result.key} failed after {result.failed_after.value}: {result.error}")
        return result.succeeded

    def run(self):
        """Main run loop"""
        self.logger.info("Starting Traitscaler service...")

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        api_settings = self.settings.api
        start_http_server(api_settings.metrics_port)
        self.logger.info(f"Prometheus metrics server started on :{api_settings.metrics_port}")

        if api_settings.enabled:
            api_thread = threading.Thread(
                target=self.api_server.run,
                kwargs={'host': api_settings.host, 'port': api_settings.port}
            )
            api_thread.daemon = True
            api_thread.start()
            self.logger.info(f"API server started on :{api_settings.port}")

        self.controller.start()
        while self.running:
            time.sleep(1)

        self.logger.info("Traitscaler service stopped")

    def cleanup(self):
        """Cleanup resources"""
        try:
            self.controller.stop()
            self.logger.info("Cleanup completed")
        except Exception as e:
            self.logger.error(f"Error during cleanup: {e}")


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Autoscaler trait controller')
    parser.add_argument(
        '--config',
        default=os.getenv('CONFIG_PATH', '/app/config/config.yaml'),
        help='Path to configuration file'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Number of concurrent reconcile workers'
    )
    parser.add_argument(
        '--namespace',
        help='Only watch traits in this namespace'
    )
    parser.add_argument(
        '--once',
        metavar='NAMESPACE/NAME',
        help='Reconcile a single trait and exit'
    )

    args = parser.parse_args()

    if args.config and os.path.exists(args.config):
        settings = Settings.load_from_yaml_with_env_override(args.config)
    else:
        settings = default_settings
    if args.workers:
        settings.controller.workers = args.workers
    if args.namespace:
        settings.kubernetes.watch_namespace = args.namespace

    service = ControllerService(settings=settings)

    if args.once:
        sys.exit(0 if service.reconcile_once(args.once) else 1)

    try:
        service.run()
    except KeyboardInterrupt:
        service.logger.info("Received keyboard interrupt")
    except Exception as e:
        service.logger.error(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        service.cleanup()


if __name__ == "__main__":
    main()
