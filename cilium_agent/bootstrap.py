"""Runtime bootstrap for the agent metrics subsystem.

Centralizes startup so entrypoints remain thin:
- settings load from the environment
- logging initialization (optional)
- registry + agent metric catalog construction
- metrics server startup when a serve address is configured

Returns a BootContext holding the explicitly constructed registry handle;
business logic receives `ctx.metrics` and never reaches for a global.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from cilium_agent.config import MetricsSettings
from cilium_agent.metrics import AgentMetrics, MetricsRegistry, MetricsServer, enable

from .utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class BootContext:
    settings: MetricsSettings
    metrics: AgentMetrics
    server: MetricsServer | None

    @property
    def registry(self) -> MetricsRegistry:
        return self.metrics.registry


def bootstrap(settings: MetricsSettings | None = None, *, configure_logging: bool = False) -> BootContext:
    """Build the registry and catalog, then start exposition if configured.

    Configuration errors (duplicate metrics, malformed bind address) raise;
    a later bind failure is only logged by the server thread.
    """
    if settings is None:
        settings = MetricsSettings.from_env()
    if configure_logging:
        setup_logging(settings.log_level, json_logs=settings.json_logs)

    registry = MetricsRegistry(settings.namespace, process_metrics=settings.process_metrics)
    metrics = AgentMetrics(registry)
    logger.info("Initialized %d agent metrics under namespace %s", len(registry), registry.namespace)

    server = None
    if settings.serving_enabled:
        server = enable(registry, settings.serve_addr)
    else:
        logger.info("Metrics exposition disabled (CILIUM_PROMETHEUS_SERVE_ADDR unset)")
    return BootContext(settings=settings, metrics=metrics, server=server)


__all__ = ["BootContext", "bootstrap"]
