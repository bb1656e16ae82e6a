"""Metrics registry.

`MetricsRegistry` is constructed once during agent initialization and handed
by reference to everything that registers or updates metrics; there is no
module-level singleton. Membership is write-once: descriptors are registered
during the single-threaded startup phase, then `seal()` freezes the set and
only values change for the rest of the process lifetime.

Storage is a `prometheus_client.CollectorRegistry`, which also carries the
built-in process self-metrics collector (`<namespace>_process_*`).
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from prometheus_client import CollectorRegistry, ProcessCollector
from prometheus_client.samples import Sample

from cilium_agent.utils.exceptions import DuplicateMetricError, MetricsConfigError

from .descriptors import NAMESPACE, MetricDescriptor
from .instances import MetricInstance, instance_for

logger = logging.getLogger(__name__)

__all__ = ["MetricSnapshot", "MetricsRegistry"]


@dataclass(frozen=True)
class MetricSnapshot:
    """Point-in-time view of one metric family."""

    name: str
    documentation: str
    kind: str
    samples: tuple[Sample, ...]


class MetricsRegistry:
    """Registry for agent metrics scoped under one namespace."""

    def __init__(self, namespace: str = NAMESPACE, *, process_metrics: bool = True):
        self.namespace = namespace
        self._collectors = CollectorRegistry(auto_describe=True)
        self._instances: dict[str, MetricInstance] = {}
        self._sealed = False
        self.process_collector: ProcessCollector | None = None
        if process_metrics:
            self.process_collector = ProcessCollector(namespace=namespace, registry=self._collectors)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Freeze membership; later register() calls are configuration errors."""
        self._sealed = True
        logger.debug("metrics registry sealed namespace=%s metrics=%d", self.namespace, len(self._instances))

    def register(self, descriptor: MetricDescriptor) -> MetricInstance:
        if self._sealed:
            raise MetricsConfigError(
                f"cannot register {descriptor.full_name}: registry is sealed after initialization"
            )
        if descriptor.namespace != self.namespace:
            raise MetricsConfigError(
                f"descriptor {descriptor.name} has namespace {descriptor.namespace!r}, "
                f"registry expects {self.namespace!r}"
            )
        name = descriptor.full_name
        if name in self._instances:
            raise DuplicateMetricError(f"metric {name} is already registered")
        instance = instance_for(descriptor)
        try:
            self._collectors.register(instance)
        except ValueError as e:
            # Name clash with another collector (e.g. process self-metrics).
            raise DuplicateMetricError(f"metric {name} collides with an existing collector: {e}") from e
        self._instances[name] = instance
        logger.debug("registered metric %s (%s)", name, descriptor.kind.value)
        return instance

    def register_all(self, descriptors: Iterable[MetricDescriptor]) -> dict[str, MetricInstance]:
        """Register each descriptor; returns instances keyed by short name."""
        return {d.name: self.register(d) for d in descriptors}

    def get(self, full_name: str) -> MetricInstance | None:
        return self._instances.get(full_name)

    def names(self) -> list[str]:
        return sorted(self._instances)

    def __contains__(self, full_name: object) -> bool:
        return full_name in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def snapshot(self) -> list[MetricSnapshot]:
        """Current values of every registered family, sorted by exposed name.

        Each instance is read atomically; the snapshot as a whole is not a
        single transaction across instances.
        """
        out: list[MetricSnapshot] = []
        for family in self._collectors.collect():
            created = family.name + '_created'
            samples = tuple(s for s in family.samples if s.name != created)
            out.append(MetricSnapshot(
                name=_exposed_name(family.name, family.type, samples),
                documentation=family.documentation,
                kind=family.type,
                samples=samples,
            ))
        out.sort(key=lambda m: m.name)
        return out


def _exposed_name(name: str, kind: str, samples: tuple[Sample, ...]) -> str:
    # prometheus_client counter families strip `_total` from the family name
    # while their samples keep it; expose the sample name in that case.
    if kind == 'counter' and samples and all(s.name == name + '_total' for s in samples):
        return name + '_total'
    return name
