"""Agent metric catalog bound to a registry.

`AgentMetrics` is the object business logic receives: one attribute per
catalog entry, plus a few helpers for the common update sites.

    metrics = build_agent_metrics()
    metrics.endpoint_count.set(len(endpoints))
    metrics.record_regeneration(success=True)
"""
from __future__ import annotations

from .descriptors import NAMESPACE, OUTCOME_FAIL, OUTCOME_SUCCESS, agent_descriptors
from .instances import Counter, Gauge
from .registry import MetricsRegistry

__all__ = ["AgentMetrics", "build_agent_metrics"]


class AgentMetrics:
    """Metrics for the Cilium agent."""

    endpoint_count: Gauge
    endpoint_regenerating: Gauge
    endpoint_regenerations: Counter
    policy_count: Gauge
    policy_max_revision: Gauge
    policy_import_errors: Counter

    def __init__(self, registry: MetricsRegistry, *, seal: bool = True):
        self.registry = registry
        for name, instance in registry.register_all(agent_descriptors(registry.namespace)).items():
            setattr(self, name, instance)
        if seal:
            registry.seal()

    def record_regeneration(self, success: bool) -> None:
        """Count one completed endpoint regeneration by outcome."""
        outcome = OUTCOME_SUCCESS if success else OUTCOME_FAIL
        self.endpoint_regenerations.labels(outcome).inc()

    def record_policy_import_error(self) -> None:
        self.policy_import_errors.inc()

    def set_policy_revision(self, revision: int) -> None:
        self.policy_max_revision.set(revision)


def build_agent_metrics(namespace: str = NAMESPACE, *, process_metrics: bool = True) -> AgentMetrics:
    return AgentMetrics(MetricsRegistry(namespace, process_metrics=process_metrics))
