"""Metric descriptor system.

Data-driven description of every measurement the agent exposes. Names are
stable across restarts: scrapers persist history keyed by the full name
(`<namespace>_<name>`), so renaming an entry here is a breaking change.

Adding a metric: append a descriptor to `agent_descriptors` and give it a
matching attribute on `AgentMetrics`.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from cilium_agent.utils.exceptions import MetricsConfigError

__all__ = [
    "NAMESPACE",
    "OUTCOME_SUCCESS",
    "OUTCOME_FAIL",
    "MetricKind",
    "MetricDescriptor",
    "agent_descriptors",
]

# Scopes agent metrics away from other processes scraped by the same collector.
NAMESPACE = "cilium"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"

_METRIC_NAME_RE = re.compile(r'^[a-zA-Z_:][a-zA-Z0-9_:]*$')
_LABEL_NAME_RE = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDescriptor:
    namespace: str
    name: str
    documentation: str
    kind: MetricKind
    labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence for labels but store an immutable tuple.
        object.__setattr__(self, 'labels', tuple(self.labels))
        try:
            object.__setattr__(self, 'kind', MetricKind(self.kind))
        except ValueError:
            raise MetricsConfigError(f"unsupported metric kind {self.kind!r} for {self.name}") from None
        if self.namespace and not _METRIC_NAME_RE.match(self.namespace):
            raise MetricsConfigError(f"invalid metric namespace: {self.namespace!r}")
        if not _METRIC_NAME_RE.match(self.name):
            raise MetricsConfigError(f"invalid metric name: {self.name!r}")
        seen: set[str] = set()
        for label in self.labels:
            if not _LABEL_NAME_RE.match(label) or label.startswith('__'):
                raise MetricsConfigError(f"invalid label name {label!r} on {self.full_name}")
            if label in seen:
                raise MetricsConfigError(f"duplicate label name {label!r} on {self.full_name}")
            seen.add(label)

    @property
    def full_name(self) -> str:
        if not self.namespace:
            return self.name
        return f"{self.namespace}_{self.name}"


def _gauge(namespace: str, name: str, doc: str, labels: Sequence[str] = ()) -> MetricDescriptor:
    return MetricDescriptor(namespace, name, doc, MetricKind.GAUGE, tuple(labels))


def _counter(namespace: str, name: str, doc: str, labels: Sequence[str] = ()) -> MetricDescriptor:
    return MetricDescriptor(namespace, name, doc, MetricKind.COUNTER, tuple(labels))


def agent_descriptors(namespace: str = NAMESPACE) -> list[MetricDescriptor]:
    """Return the fixed agent metric catalog scoped under `namespace`."""
    return [
        # Endpoint
        _gauge(namespace, "endpoint_count", "Number of endpoints managed by this agent"),
        _gauge(namespace, "endpoint_regenerating", "Number of endpoints currently regenerating"),
        _counter(namespace, "endpoint_regenerations",
                 "Count of all endpoint regenerations that have completed, tagged by outcome",
                 ["outcome"]),
        # Policy
        _gauge(namespace, "policy_count", "Number of policies currently loaded"),
        _gauge(namespace, "policy_max_revision", "Highest policy revision number in the agent"),
        _counter(namespace, "policy_import_errors", "Number of times a policy import has failed"),
    ]
